"""Request loading with config discovery."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from . import context
from .effort import days_from_size_class, parse_whiteboard_size
from .exceptions import ParseError
from .logger import get_logger
from .messages import OptimizeRequest
from .unified_config import CONFIG_FILENAME, UnifiedConfig, load_unified_config

logger = get_logger()


def discover_config(
    request_path: Path | None = None,
    config_path: Path | None = None,
) -> UnifiedConfig | None:
    """Discover unified config from various locations.

    Search order:
    1. Explicit config_path argument
    2. Global context (set via CLI --config)
    3. request directory / gaplan_config.yaml
    4. Current directory / gaplan_config.yaml
    """
    # 1. Explicit argument
    if config_path and config_path.exists():
        return load_unified_config(config_path)

    # 2. Global context
    ctx_config = context.get_config_path()
    if ctx_config and ctx_config.exists():
        return load_unified_config(ctx_config)

    # 3. Request directory
    if request_path is not None:
        dir_config = Path(request_path).parent / CONFIG_FILENAME
        if dir_config.exists():
            return load_unified_config(dir_config)

    # 4. Current directory
    cwd_config = Path(CONFIG_FILENAME)
    if cwd_config.exists():
        return load_unified_config(cwd_config)

    return None


def _apply_whiteboard_sizes(bugs: list[Any]) -> None:
    """Fill in missing sizes from ``[size=N]`` whiteboard tags."""
    for bug in bugs:
        if not isinstance(bug, dict) or bug.get("size") is not None:
            continue
        size_class = parse_whiteboard_size(bug.get("whiteboard"))
        if size_class is not None:
            bug["size"] = days_from_size_class(size_class)


def parse_request(data: Any, source: str = "<request>") -> OptimizeRequest:
    """Validate raw request data.

    Raises:
        ParseError: If the data is not a mapping or fails validation
    """
    if not isinstance(data, dict):
        raise ParseError(f"{source}: request must be a mapping")
    if isinstance(data.get("bugs"), list):
        _apply_whiteboard_sizes(data["bugs"])
    try:
        return OptimizeRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"{source}: invalid request: {e}") from e


def apply_config(request: OptimizeRequest, config: UnifiedConfig) -> OptimizeRequest:
    """Fill a request's missing resources and milestones from the config.

    Global unavailability periods apply to the request's own resources too.
    """
    if request.resources:
        resources = UnifiedConfig(
            resources=request.resources, global_unavailability=config.global_unavailability
        ).effective_resources()
    else:
        resources = config.effective_resources()
    milestones = request.milestones or list(config.milestones)
    return request.model_copy(update={"resources": resources, "milestones": milestones})


def load_request(
    path: Path | str,
    config_path: Path | None = None,
    *,
    config: UnifiedConfig | None = None,
) -> tuple[OptimizeRequest, UnifiedConfig | None]:
    """Load a request file (YAML or JSON) and merge in the discovered config.

    Args:
        path: Path to the request file
        config_path: Optional explicit path to config file
        config: Optional explicit unified config (overrides discovery)

    Returns:
        The request and the config that was applied to it, if any
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Request file not found: {path}")

    with path.open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(f"{path}: {e}") from e

    request = parse_request(data, str(path))

    if config is None:
        config = discover_config(path, config_path)
    if config is not None:
        request = apply_config(request, config)
        logger.checks(
            f"Applied config: {len(request.resources)} resources, "
            f"{len(request.milestones)} milestones"
        )
    return request, config
