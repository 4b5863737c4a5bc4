"""Greedy baseline schedule: milestone by milestone, earliest finish first."""

from __future__ import annotations

import math

from gaplan.calendars import CalendarSet
from gaplan.logger import get_logger

from .core import Chromosome, Problem
from .protocols import AvailabilityModel

logger = get_logger()


class GreedyScheduler:
    """Deterministic list scheduler used as the optimizer's baseline.

    Milestones are handled in deadline order. Each one schedules the items
    of its dependency tree that no earlier milestone claimed, dependencies
    first; items outside every milestone come last. Every item goes to the
    feasible resource that would finish it earliest, with ties going to the
    first candidate. Items with a fixed assignee keep it.
    """

    def __init__(self, problem: Problem, calendars: AvailabilityModel | None = None) -> None:
        self.problem = problem
        self.calendars: AvailabilityModel = calendars or CalendarSet.build(
            problem.resources, problem.start_date, problem.skip_weekends
        )

    def milestone_order(self) -> tuple[str, ...]:
        """Schedulable items grouped by owning milestone, earliest deadline first.

        Within a group items keep the problem's topological order. An item's
        dependencies are in its milestone's tree too, so they are owned by
        that milestone or an earlier one and the result stays precedence-valid.
        """
        problem = self.problem
        schedulable = set(problem.order)
        owner: dict[str, int] = {}
        milestones = sorted(problem.milestones, key=lambda m: m.deadline)
        for rank, milestone in enumerate(milestones):
            if milestone.anchor_id not in problem.graph:
                continue
            tree = {milestone.anchor_id} | problem.graph.transitive_dependencies(
                milestone.anchor_id
            )
            for item_id in tree & schedulable:
                owner.setdefault(item_id, rank)

        unowned = len(milestones)
        position = {item_id: i for i, item_id in enumerate(problem.order)}
        return tuple(
            sorted(problem.order, key=lambda i: (owner.get(i, unowned), position[i]))
        )

    def build(self) -> Chromosome:
        """Build the baseline chromosome."""
        problem = self.problem
        order = self.milestone_order()
        finish: dict[str, int] = {}
        resource_free: dict[str, int] = {}
        assignment: dict[str, str | None] = {}

        for item_id in order:
            earliest = max((finish[dep] for dep in problem.dependencies[item_id]), default=0)
            effort = problem.efforts[item_id]
            fixed = problem.fixed.get(item_id)
            candidates = (fixed,) if fixed is not None else problem.candidates[item_id]

            if effort.is_meta or candidates == (None,):
                assignment[item_id] = None
                finish[item_id] = earliest + math.ceil(effort.days)
                continue

            ends = {
                resource_id: self._finish_on(resource_id, earliest, resource_free, effort.days)
                for resource_id in candidates
                if resource_id is not None
            }
            resource_id = min(ends, key=ends.__getitem__)
            end = ends[resource_id]
            assignment[item_id] = resource_id
            resource_free[resource_id] = end
            finish[item_id] = end

        logger.checks(
            f"Greedy baseline places {len(order)} items, last finishing on working day "
            f"{max(finish.values(), default=0)}"
        )
        return Chromosome(order=order, assignment=assignment)

    def _finish_on(
        self, resource_id: str, earliest: int, resource_free: dict[str, int], days: float
    ) -> int:
        start = max(earliest, resource_free.get(resource_id, 0))
        start = self.calendars.earliest_available(resource_id, start, days)
        return start + self.calendars.span_for(resource_id, days)

