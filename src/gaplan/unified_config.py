"""Unified configuration loader for resources, milestones and optimizer settings.

This module provides a single configuration file format (gaplan_config.yaml)
that combines the resource pool, the milestone calendar and optimizer
parameters shared by every request.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .models import Milestone, Resource, UnavailabilityPeriod
from .scheduler import OptimizerConfig

CONFIG_FILENAME = "gaplan_config.yaml"


class UnifiedConfig(BaseModel):
    """Unified configuration: resources, milestones and optimizer settings."""

    resources: list[Resource] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)
    global_unavailability: list[UnavailabilityPeriod] = Field(
        default_factory=list
    )  # Company holidays etc., applied to every declared resource
    optimizer: OptimizerConfig = Field(default_factory=OptimizerConfig)

    def effective_resources(self) -> list[Resource]:
        """Declared resources with the global unavailability periods added."""
        if not self.global_unavailability:
            return list(self.resources)
        extra = tuple(self.global_unavailability)
        return [
            resource
            if resource.external
            else resource.model_copy(update={"unavailability": resource.unavailability + extra})
            for resource in self.resources
        ]


def load_unified_config(config_path: Path | str) -> UnifiedConfig:
    """Load unified configuration from YAML file.

    Args:
        config_path: Path to gaplan_config.yaml file

    Returns:
        UnifiedConfig with every section validated

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        data: dict[str, Any] | None = yaml.safe_load(f)

    if not data:
        raise ValueError("Empty configuration file")
    if not isinstance(data, dict):
        raise ValueError("Config must be a mapping of sections")

    unknown = set(data) - set(UnifiedConfig.model_fields)
    if unknown:
        raise ValueError(f"Unknown config sections: {', '.join(sorted(unknown))}")

    # Optimizer section may be omitted or left empty
    if data.get("optimizer") is None:
        data.pop("optimizer", None)
    for section in ("resources", "milestones", "global_unavailability"):
        if section in data and data[section] is None:
            data[section] = []

    return UnifiedConfig.model_validate(data)
