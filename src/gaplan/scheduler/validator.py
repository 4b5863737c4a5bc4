"""Request validation and problem construction."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date

from gaplan.effort import Effort, calculate_effort
from gaplan.exceptions import RejectionReason, RequestRejected
from gaplan.graph import PrecedenceGraph
from gaplan.logger import get_logger
from gaplan.models import Milestone, Resource, WorkItem

from .config import OptimizerConfig
from .core import Problem

logger = get_logger()


class RequestValidator:
    """Checks an optimization request and turns it into an immutable ``Problem``.

    Every precondition is checked before any generation runs. The first
    violated precondition raises ``RequestRejected``; a request that passes
    can still contain cycles or orphaned dependencies, which only exclude the
    affected items.
    """

    def __init__(self, config: OptimizerConfig | None = None):
        """Initialize validator.

        Args:
            config: Optimizer parameters; also checked for range errors
        """
        self.config = config or OptimizerConfig()

    def validate(
        self,
        items: Sequence[WorkItem],
        resources: Sequence[Resource],
        milestones: Sequence[Milestone],
        start_date: date,
        extra_edges: Mapping[str, Iterable[str]] | None = None,
    ) -> Problem:
        """Validate inputs and build the problem.

        Args:
            items: Work items in input order
            resources: Declared resources, including synthesized external ones
            milestones: Milestones with deadlines and freeze dates
            start_date: Day zero of the working-day axis
            extra_edges: Optional ``item id -> dependency ids`` merged with the
                items' own dependencies

        Returns:
            The validated problem

        Raises:
            RequestRejected: If any precondition fails
        """
        self.check_parameters()
        self.check_items(items, resources)
        self.check_resources(resources)
        self.check_milestones(milestones, items)

        graph = PrecedenceGraph.build(items, extra_edges)
        topo = graph.topological_sort()
        if topo.excluded:
            logger.warning(
                f"Excluding {len(topo.excluded)} items involved in or blocked by dependency cycles"
            )

        by_id = {item.id: item for item in graph.items()}
        order = tuple(item_id for item_id in topo.ordered if not by_id[item_id].is_resolved)
        schedulable = set(order)

        efforts: dict[str, Effort] = {}
        dependencies: dict[str, tuple[str, ...]] = {}
        fixed: dict[str, str | None] = {}
        candidates: dict[str, tuple[str | None, ...]] = {}
        pool = self.resource_pool(resources)
        for item_id in order:
            item = by_id[item_id]
            efforts[item_id] = calculate_effort(item, self.config.default_size_days)
            dependencies[item_id] = tuple(
                dep_id for dep_id in graph.dependencies(item_id) if dep_id in schedulable
            )
            fixed[item_id] = None if item.meta else self.resolve_assignee(item, resources)
            candidates[item_id] = self.candidates_for(item, fixed[item_id], pool)

        estimated = sum(1 for effort in efforts.values() if effort.size_estimated)
        logger.checks(
            f"Validated request: {len(order)} items to schedule "
            f"({estimated} with default size), {len(resources)} resources, "
            f"{len(milestones)} milestones"
        )
        return Problem(
            start_date=start_date,
            order=order,
            items={item_id: by_id[item_id] for item_id in order},
            efforts=efforts,
            dependencies=dependencies,
            candidates=candidates,
            fixed=fixed,
            resources=tuple(resources),
            milestones=tuple(milestones),
            graph=graph,
            excluded=topo.excluded,
            skip_weekends=self.config.skip_weekends,
        )

    def check_parameters(self) -> None:
        errors = self.config.validation_errors()
        if errors:
            raise RequestRejected(RejectionReason.INVALID_PARAMETERS, "; ".join(errors))

    def check_items(self, items: Sequence[WorkItem], resources: Sequence[Resource]) -> None:
        if not items:
            raise RequestRejected(RejectionReason.EMPTY_ITEM_SET, "Request contains no work items")
        seen: set[str] = set()
        for item in items:
            if item.id in seen:
                raise RequestRejected(
                    RejectionReason.DUPLICATE_ITEM, f"Item {item.id} appears twice"
                )
            seen.add(item.id)

        needs_pool = any(
            not item.is_resolved and not item.meta and not item.external for item in items
        )
        if needs_pool and not resources:
            raise RequestRejected(
                RejectionReason.NO_RESOURCES, "Open work items need at least one resource"
            )

    def check_resources(self, resources: Sequence[Resource]) -> None:
        seen: set[str] = set()
        for resource in resources:
            if resource.id in seen:
                raise RequestRejected(
                    RejectionReason.INVALID_PARAMETERS, f"Resource {resource.id} appears twice"
                )
            seen.add(resource.id)
            if not 0.0 < resource.capacity <= 1.0:
                raise RequestRejected(
                    RejectionReason.INVALID_CAPACITY,
                    f"Resource {resource.id} has capacity {resource.capacity}; "
                    "expected a value in (0, 1]",
                )

    def check_milestones(self, milestones: Sequence[Milestone], items: Sequence[WorkItem]) -> None:
        item_ids = {item.id for item in items}
        names: dict[str, str] = {}
        for milestone in milestones:
            if milestone.key in names:
                raise RequestRejected(
                    RejectionReason.DUPLICATE_MILESTONE,
                    f"Milestone {milestone.name!r} duplicates {names[milestone.key]!r}",
                )
            names[milestone.key] = milestone.name
            if milestone.freeze_date >= milestone.deadline:
                raise RequestRejected(
                    RejectionReason.INVALID_MILESTONE_DATES,
                    f"Milestone {milestone.name!r}: freeze date {milestone.freeze_date} "
                    f"is not before deadline {milestone.deadline}",
                )
            if milestone.anchor_id not in item_ids:
                raise RequestRejected(
                    RejectionReason.UNKNOWN_MILESTONE_ANCHOR,
                    f"Milestone {milestone.name!r} is anchored on unknown item "
                    f"{milestone.anchor_id}",
                )

    @staticmethod
    def resource_pool(resources: Sequence[Resource]) -> tuple[str, ...]:
        """Resources free items may be assigned to: the declared, non-external ones.

        When every resource is external, all of them form the pool.
        """
        pool = tuple(resource.id for resource in resources if not resource.external)
        return pool or tuple(resource.id for resource in resources)

    @staticmethod
    def resolve_assignee(item: WorkItem, resources: Sequence[Resource]) -> str | None:
        """Resource id named by the item's assignee, if any."""
        assignee = item.fixed_assignee
        if assignee is None:
            return None
        for resource in resources:
            if resource.answers_to(assignee):
                return resource.id
        logger.warning(f"Item {item.id}: assignee {assignee} is not a known resource; ignoring")
        return None

    @staticmethod
    def candidates_for(
        item: WorkItem, fixed: str | None, pool: tuple[str, ...]
    ) -> tuple[str | None, ...]:
        """Feasible resources of an item; ``(None,)`` for resource-less items."""
        if item.meta:
            return (None,)
        if item.external and fixed is None:
            return (None,)
        options = list(pool)
        if fixed is not None and fixed not in options:
            options.append(fixed)
        if not options:
            raise RequestRejected(
                RejectionReason.NO_RESOURCES, f"Item {item.id} has no resource to be assigned to"
            )
        return tuple(options)
