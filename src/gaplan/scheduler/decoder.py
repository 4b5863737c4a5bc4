"""Schedule builder: decodes chromosomes into concrete schedules."""

from __future__ import annotations

import math

from gaplan.calendars import CalendarSet, date_of_working_day
from gaplan.exceptions import InvariantViolationError, PrecedenceViolationError

from .core import Chromosome, Problem, Schedule, ScheduledItem, ScheduleEntry
from .protocols import AvailabilityModel


class ScheduleBuilder:
    """Deterministic decoder from chromosome to schedule.

    Items are placed in chromosome order. Each item starts at the latest of
    its dependencies' finish, the moment its resource frees up, and the first
    slot in the resource's calendar where the whole task fits.
    """

    def __init__(self, problem: Problem, calendars: AvailabilityModel | None = None) -> None:
        self.problem = problem
        self.calendars: AvailabilityModel = calendars or CalendarSet.build(
            problem.resources, problem.start_date, problem.skip_weekends
        )
        self._expected = frozenset(problem.order)

    def decode(self, chromosome: Chromosome) -> Schedule:
        """Decode a chromosome into a schedule.

        Raises:
            PrecedenceViolationError: If an item comes before one of its dependencies
            InvariantViolationError: If the order does not cover the problem's items
                or a placement comes out with a negative duration
        """
        if len(chromosome.order) != len(self._expected) or set(chromosome.order) != self._expected:
            raise InvariantViolationError(
                "Chromosome order is not a permutation of the schedulable items"
            )

        finish: dict[str, int] = {}
        resource_free: dict[str, int] = {}
        placed: dict[str, ScheduledItem] = {}

        for item_id in chromosome.order:
            earliest = 0
            for dep_id in self.problem.dependencies[item_id]:
                if dep_id not in finish:
                    raise PrecedenceViolationError(
                        f"Item {item_id} is ordered before its dependency {dep_id}"
                    )
                earliest = max(earliest, finish[dep_id])

            effort = self.problem.efforts[item_id]
            resource_id = None if effort.is_meta else chromosome.assignment.get(item_id)

            if resource_id is None:
                start = earliest
                end = start + math.ceil(effort.days)
            else:
                start = max(earliest, resource_free.get(resource_id, 0))
                start = self.calendars.earliest_available(resource_id, start, effort.days)
                end = start + self.calendars.span_for(resource_id, effort.days)
                resource_free[resource_id] = end

            if end < start:
                raise InvariantViolationError(
                    f"Item {item_id} decoded with negative duration ({start} -> {end})"
                )
            finish[item_id] = end
            placed[item_id] = ScheduledItem(
                item_id=item_id, resource_id=resource_id, start=start, finish=end
            )

        return Schedule(items=placed)

    def to_entries(self, schedule: Schedule) -> list[ScheduleEntry]:
        return schedule_entries(self.problem, schedule)


def schedule_entries(problem: Problem, schedule: Schedule) -> list[ScheduleEntry]:
    """Attach calendar dates to a schedule, in start order."""
    entries: list[ScheduleEntry] = []
    for placed in sorted(schedule.items.values(), key=lambda p: (p.start, p.finish, p.item_id)):
        last_day = max(placed.start, placed.finish - 1)
        entries.append(
            ScheduleEntry(
                item_id=placed.item_id,
                resource_id=placed.resource_id,
                start=placed.start,
                finish=placed.finish,
                start_date=date_of_working_day(
                    problem.start_date, placed.start, problem.skip_weekends
                ),
                end_date=date_of_working_day(problem.start_date, last_day, problem.skip_weekends),
                size_estimated=problem.efforts[placed.item_id].size_estimated,
            )
        )
    return entries
