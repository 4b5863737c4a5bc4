"""High-level optimization service."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

from gaplan.exceptions import RequestRejected
from gaplan.graph import (
    DuplicateSummary,
    GraphStats,
    OrphanedDependency,
    PrecedenceGraph,
    id_sort_key,
)
from gaplan.logger import get_logger
from gaplan.messages import (
    CompleteResponse,
    FailedResponse,
    OptimizeRequest,
    ProgressResponse,
    RejectedResponse,
    Response,
)
from gaplan.models import Milestone, Resource, WorkItem, make_external_resource

from .config import OptimizerConfig
from .core import ProgressUpdate
from .orchestrator import pick_best, run_many
from .protocols import CancellationToken, ProgressSink
from .validator import RequestValidator

logger = get_logger()

UNSET_MILESTONE_LABELS = frozenset({"", "---"})


def discover_external_resources(
    items: Iterable[WorkItem], resources: Sequence[Resource]
) -> list[Resource]:
    """Add an external resource for every assignee missing from the pool.

    Returns the declared resources followed by the synthesized ones, one per
    distinct unknown assignee, in order of first appearance.
    """
    discovered: list[Resource] = list(resources)
    for item in items:
        assignee = item.fixed_assignee
        if assignee is None or item.is_resolved:
            continue
        if any(resource.answers_to(assignee) for resource in discovered):
            continue
        external = make_external_resource(assignee)
        logger.checks(
            f"Assignee {assignee} of item {item.id} is not in the pool; adding {external.id}"
        )
        discovered.append(external)
    return discovered


@dataclass(frozen=True)
class MilestoneMismatch:
    """An item whose tracker milestone disagrees with its dependency milestone."""

    item_id: str
    target_milestone: str
    dependency_milestone: str | None  # None when no milestone depends on the item


@dataclass
class DiagnosticsReport:
    """Data-quality findings for a set of work items."""

    cycles: list[list[str]] = field(default_factory=list)
    orphaned: list[OrphanedDependency] = field(default_factory=list)
    duplicates: list[DuplicateSummary] = field(default_factory=list)
    missing_assignees: list[str] = field(default_factory=list)
    missing_sizes: list[str] = field(default_factory=list)
    untriaged: list[str] = field(default_factory=list)
    milestone_mismatches: list[MilestoneMismatch] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)
    stats: GraphStats | None = None

    @property
    def has_errors(self) -> bool:
        """Cycles and orphaned dependencies change what can be scheduled."""
        return bool(self.cycles or self.orphaned)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def find_milestone_mismatches(
    graph: PrecedenceGraph, milestones: Sequence[Milestone]
) -> list[MilestoneMismatch]:
    """Items whose ``target_milestone`` names a different milestone than the one needing them.

    An item belongs to the earliest-deadline milestone whose anchor is the
    item or (transitively) depends on it. Labels that name no known milestone
    are ignored.
    """
    owner: dict[str, Milestone] = {}
    for milestone in sorted(milestones, key=lambda m: m.deadline):
        if milestone.anchor_id not in graph:
            continue
        tree = {milestone.anchor_id} | graph.transitive_dependencies(milestone.anchor_id)
        for item_id in tree:
            owner.setdefault(item_id, milestone)

    mismatches: list[MilestoneMismatch] = []
    for item_id in sorted(graph.nodes, key=id_sort_key):
        item = graph.get(item_id)
        label = (item.target_milestone or "").strip() if item else ""
        if label in UNSET_MILESTONE_LABELS:
            continue
        target = next((m for m in milestones if m.matches(label)), None)
        if target is None:
            continue
        needed_by = owner.get(item_id)
        if needed_by is None or needed_by.key != target.key:
            mismatches.append(
                MilestoneMismatch(
                    item_id=item_id,
                    target_milestone=target.name,
                    dependency_milestone=needed_by.name if needed_by else None,
                )
            )
    return mismatches


class OptimizationService:
    """Coordinates resource discovery, validation and optimizer runs for requests.

    Every request gets exactly one terminal response: rejected (a
    precondition failed, nothing ran), failed (every run failed) or complete
    (the best of the completed runs).
    """

    def __init__(self, config: OptimizerConfig | None = None):
        """Initialize the service.

        Args:
            config: Base optimizer parameters; requests may override some of them
        """
        self.config = config or OptimizerConfig()

    def handle(
        self,
        request: OptimizeRequest,
        progress: Callable[[ProgressResponse], None] | None = None,
        cancel: CancellationToken | None = None,
    ) -> Response:
        """Run one optimization request to completion.

        Args:
            request: The request to handle
            progress: Optional callback receiving progress messages
            cancel: Optional cancellation token checked once per generation

        Returns:
            A complete, failed or rejected response echoing the request id
        """
        config = request.apply_to(self.config)
        start_date = request.start_date or date.today()  # noqa: DTZ011
        resources = discover_external_resources(request.items, request.resources)

        try:
            problem = RequestValidator(config).validate(
                request.items, resources, request.milestones, start_date, request.graph
            )
        except RequestRejected as e:
            logger.warning(f"Request {request.label} rejected: {e}")
            return RejectedResponse(id=request.id, reason=e.reason.value, detail=e.detail)

        sink: ProgressSink | None = None
        if progress is not None:
            forward = progress

            def _forward(update: ProgressUpdate) -> None:
                forward(
                    ProgressResponse(
                        id=request.id,
                        run_id=update.run_id,
                        generation=update.generation,
                        deadlines_met=update.best.deadlines_met,
                        total_lateness=update.best.total_lateness,
                        makespan=update.best.makespan,
                        average_makespan=update.average_makespan,
                    )
                )

            sink = _forward

        results = run_many(problem, config, cancel=cancel, progress=sink)
        failed = [result for result in results if not result.completed]
        best = pick_best(results)
        if best is None:
            error = "; ".join(f"run {r.run_id}: {r.error}" for r in failed) or "no runs executed"
            return FailedResponse(
                id=request.id, run_id=failed[0].run_id if failed else None, error=error
            )

        logger.changes(
            f"Request {request.label}: best run {best.run_id} met "
            f"{best.score.deadlines_met if best.score else 0}/{len(problem.milestones)} deadlines"
        )
        return CompleteResponse.from_result(
            request.id,
            best,
            excluded=sorted(problem.excluded, key=id_sort_key),
            failed_runs=len(failed),
        )

    def diagnose(
        self,
        items: Sequence[WorkItem],
        milestones: Sequence[Milestone] = (),
        extra_edges: Mapping[str, Iterable[str]] | None = None,
    ) -> DiagnosticsReport:
        """Collect data-quality findings without optimizing anything."""
        graph = PrecedenceGraph.build(items, extra_edges)
        topo = graph.topological_sort()
        report = DiagnosticsReport(
            cycles=graph.find_cycles(),
            orphaned=graph.find_orphaned_dependencies(),
            duplicates=graph.find_duplicate_summaries(),
            missing_assignees=[
                item.id for item in graph.find_missing_assignees() if not item.is_resolved
            ],
            missing_sizes=[item.id for item in graph.find_missing_sizes()],
            untriaged=[item.id for item in graph.find_untriaged_items()],
            milestone_mismatches=find_milestone_mismatches(graph, milestones),
            excluded=sorted(topo.excluded, key=id_sort_key),
            stats=graph.stats(),
        )
        if report.has_errors:
            logger.warning(
                f"Found {len(report.cycles)} cycles and "
                f"{len(report.orphaned)} orphaned dependencies"
            )
        return report
