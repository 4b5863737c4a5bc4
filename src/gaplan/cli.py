"""Command-line interface for gaplan."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Annotated, Any

import typer

from . import context
from .exceptions import ParseError
from .graph import PrecedenceGraph, id_sort_key
from .loader import load_request
from .logger import setup_logger
from .messages import CompleteResponse, OptimizeRequest, ProgressResponse, Response
from .scheduler import OptimizerConfig
from .scheduler.service import OptimizationService

app = typer.Typer(
    name="gaplan",
    help="Milestone-driven schedule optimization for dependency-linked work items",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to unified config file (default: gaplan_config.yaml)",
        ),
    ] = None,
) -> None:
    """Global options for gaplan commands."""
    setup_logger(verbose)
    context.set_config_path(config)


def _parse_date_option(date_str: str | None, option_name: str) -> date | None:
    """Parse a date string from CLI option.

    Args:
        date_str: Date string in YYYY-MM-DD format or None
        option_name: Name of the option for error messages

    Returns:
        Parsed date object or None if date_str is None
    """
    if date_str is None:
        return None

    try:
        return date.fromisoformat(date_str)
    except ValueError:
        typer.echo(
            f"Error: Invalid {option_name} '{date_str}'. Use YYYY-MM-DD format.",
            err=True,
        )
        raise typer.Exit(1) from None


def _load(file: Path) -> tuple[OptimizeRequest, OptimizerConfig]:
    """Load a request and the base optimizer config, exiting on errors."""
    try:
        request, config = load_request(file)
    except (FileNotFoundError, ParseError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    return request, config.optimizer if config else OptimizerConfig()


def _display_response(response: Response) -> None:
    """Display an optimization response as text."""
    if not isinstance(response, CompleteResponse):
        typer.echo(f"Request {response.type}: {response.to_dict()}")
        return

    typer.echo("Optimization Results")
    typer.echo("=" * 80)
    typer.echo(f"Deadlines met:    {response.deadlines_met}/{len(response.milestones)}")
    typer.echo(f"Total lateness:   {response.total_lateness} working days")
    typer.echo(f"Makespan:         {response.makespan} working days")
    typer.echo(
        f"Best run:         {response.run_id} "
        f"(generation {response.best_found_at_generation} of {response.generations_run})"
    )
    typer.echo("")

    for milestone in response.milestones:
        status = "met" if milestone.met else f"LATE by {milestone.lateness} working days"
        typer.echo(
            f"{milestone.name}: done {milestone.completion_date or 'already'} "
            f"(deadline {milestone.deadline}) - {status}"
        )
    typer.echo("")

    for entry in response.schedule:
        estimated = " (size estimated)" if entry.size_estimated else ""
        typer.echo(
            f"{entry.item_id:>10}  {entry.start_date} -> {entry.end_date}  "
            f"{entry.resource_id or '-'}{estimated}"
        )

    if response.at_risk:
        typer.echo("\nAt risk:", err=True)
        for risk in response.at_risk:
            typer.echo(
                f"  - {risk.item_id} ends {risk.end_date}, after {risk.milestone} {risk.kind}",
                err=True,
            )
    if response.warnings:
        typer.echo("\nWarnings:", err=True)
        for warning in response.warnings:
            typer.echo(f"  - {warning}", err=True)


@app.command()
def optimize(  # noqa: PLR0913 - CLI command needs multiple options
    file: Annotated[Path, typer.Argument(help="Path to the request YAML or JSON file")] = Path(
        "request.yaml"
    ),
    *,
    start_date: Annotated[
        str | None,
        typer.Option("--start-date", "-s", help="Scheduling start date (YYYY-MM-DD)"),
    ] = None,
    generations: Annotated[
        int | None, typer.Option("--generations", "-g", help="Generations per run")
    ] = None,
    population_size: Annotated[
        int | None, typer.Option("--population-size", "-p", help="Population size")
    ] = None,
    runs: Annotated[int | None, typer.Option("--runs", "-r", help="Independent runs")] = None,
    workers: Annotated[
        int | None, typer.Option("--workers", "-w", help="Worker processes for multiple runs")
    ] = None,
    seed: Annotated[int | None, typer.Option("--seed", help="Base random seed")] = None,
    output_json: Annotated[
        bool, typer.Option("--json", help="Print the response as JSON")
    ] = False,
    progress: Annotated[
        bool, typer.Option("--progress", help="Print progress messages to stderr")
    ] = False,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write the JSON response to a file")
    ] = None,
) -> None:
    """Optimize the schedule of a request file."""
    request, config = _load(file)

    overrides: dict[str, Any] = {
        "start_date": _parse_date_option(start_date, "start-date"),
        "generations": generations,
        "population_size": population_size,
        "runs": runs,
        "max_workers": workers,
        "seed": seed,
    }
    request = request.model_copy(
        update={name: value for name, value in overrides.items() if value is not None}
    )

    def report(message: ProgressResponse) -> None:
        typer.echo(
            f"run {message.run_id} gen {message.generation}: "
            f"{message.deadlines_met} met, lateness {message.total_lateness}, "
            f"makespan {message.makespan}",
            err=True,
        )

    response = OptimizationService(config).handle(request, progress=report if progress else None)

    if output:
        output.write_text(json.dumps(response.to_dict(), indent=2), encoding="utf-8")
        typer.echo(f"Response written to {output}")
    elif output_json:
        typer.echo(json.dumps(response.to_dict(), indent=2))
    else:
        _display_response(response)

    if not isinstance(response, CompleteResponse):
        raise typer.Exit(1)


@app.command()
def check(
    file: Annotated[Path, typer.Argument(help="Path to the request YAML or JSON file")] = Path(
        "request.yaml"
    ),
    *,
    output_json: Annotated[bool, typer.Option("--json", help="Print findings as JSON")] = False,
) -> None:
    """Report data-quality problems: cycles, orphaned dependencies, missing data."""
    request, config = _load(file)
    report = OptimizationService(config).diagnose(request.items, request.milestones, request.graph)

    if output_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        for cycle in report.cycles:
            typer.echo(f"Cycle: {' -> '.join(cycle)}")
        for orphan in report.orphaned:
            typer.echo(f"Orphaned dependency: {orphan.from_id} -> {orphan.to_id}")
        for duplicate in report.duplicates:
            ids = ", ".join(duplicate.item_ids)
            typer.echo(f"Duplicate summary: {ids} ({duplicate.summary!r})")
        if report.missing_assignees:
            typer.echo(f"Missing assignee: {', '.join(report.missing_assignees)}")
        if report.missing_sizes:
            typer.echo(f"Missing size: {', '.join(report.missing_sizes)}")
        if report.untriaged:
            typer.echo(f"Untriaged: {', '.join(report.untriaged)}")
        for mismatch in report.milestone_mismatches:
            typer.echo(
                f"Milestone mismatch: {mismatch.item_id} targets {mismatch.target_milestone}, "
                f"needed by {mismatch.dependency_milestone or 'no milestone'}"
            )
        if report.excluded:
            typer.echo(f"Excluded from scheduling: {', '.join(report.excluded)}")
        if report.stats:
            typer.echo(
                f"\n{report.stats.node_count} items, {report.stats.edge_count} dependencies"
            )

    if report.has_errors:
        raise typer.Exit(1)


@app.command()
def order(
    file: Annotated[Path, typer.Argument(help="Path to the request YAML or JSON file")] = Path(
        "request.yaml"
    ),
    *,
    critical_path: Annotated[
        bool, typer.Option("--critical-path", help="Print the longest dependency chain instead")
    ] = False,
) -> None:
    """Print items in dependency order (dependencies first)."""
    request, _ = _load(file)
    graph = PrecedenceGraph.build(request.items, request.graph)

    if critical_path:
        for item_id in graph.critical_path():
            typer.echo(item_id)
        return

    topo = graph.topological_sort()
    for item_id in topo.ordered:
        typer.echo(item_id)
    if not topo.valid:
        excluded = ", ".join(sorted(topo.excluded, key=id_sort_key))
        typer.echo(f"Excluded (in or blocked by a dependency cycle): {excluded}", err=True)


def main() -> int:
    """Main entry point."""
    # Typer handles sys.exit() internally
    app()
    return 0


if __name__ == "__main__":
    main()
