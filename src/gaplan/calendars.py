"""Working-day calendar and per-resource availability.

Scheduling runs on an integer axis of working days counted from the request's
start date. Working day ``k`` is the k-th working day on or after the start
date; a task starting at ``s`` with span ``n`` occupies days ``s .. s+n-1``
and finishes at the exclusive boundary ``s+n``.
"""

from __future__ import annotations

import bisect
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta

from .logger import get_logger
from .models import Resource, UnavailabilityPeriod

logger = get_logger()

SATURDAY = 5


def is_working_day(day: date, skip_weekends: bool = True) -> bool:
    return not skip_weekends or day.weekday() < SATURDAY


def working_days_between(start: date, end: date, skip_weekends: bool = True) -> int:
    """Count working days in the half-open interval ``[start, end)``."""
    if end <= start:
        return 0
    total = (end - start).days
    if not skip_weekends:
        return total
    full_weeks, remainder = divmod(total, 7)
    count = full_weeks * 5
    weekday = start.weekday()
    for offset in range(remainder):
        if (weekday + offset) % 7 < SATURDAY:
            count += 1
    return count


def date_of_working_day(start: date, index: int, skip_weekends: bool = True) -> date:
    """Return the date of working day ``index`` (0-based) counted from ``start``."""
    if not skip_weekends:
        return start + timedelta(days=index)
    current = start
    while not is_working_day(current):
        current += timedelta(days=1)
    full_weeks, remainder = divmod(index, 5)
    current += timedelta(weeks=full_weeks)
    while remainder > 0:
        current += timedelta(days=1)
        if is_working_day(current):
            remainder -= 1
    return current


def deadline_offset(start: date, deadline: date, skip_weekends: bool = True) -> int:
    """Latest finish boundary that still meets ``deadline``.

    Equals the number of working days in ``[start, deadline]``; a task with
    finish ``f`` meets the deadline iff ``f <= deadline_offset(...)``.
    """
    return working_days_between(start, deadline + timedelta(days=1), skip_weekends)


def blocked_range(
    period: UnavailabilityPeriod, start: date, skip_weekends: bool = True
) -> tuple[int, int] | None:
    """Convert an inclusive date period to an inclusive working-day range.

    Returns None when the period covers no working day at or after ``start``.
    """
    first = working_days_between(start, period.start, skip_weekends)
    last = working_days_between(start, period.end + timedelta(days=1), skip_weekends) - 1
    if last < first:
        return None
    return (first, last)


@dataclass
class ResourceCalendar:
    """Availability of one resource on the working-day axis.

    Blocked ranges are inclusive, sorted by start and non-overlapping, which
    keeps lookups at O(log n) with binary search.
    """

    resource_id: str
    capacity: float = 1.0
    blocked: list[tuple[int, int]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.blocked = self._merge_ranges(self.blocked)

    @staticmethod
    def _merge_ranges(ranges: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
        """Merge overlapping or adjacent ranges into a sorted, non-overlapping list."""
        ordered = sorted(ranges)
        if not ordered:
            return []
        merged: list[tuple[int, int]] = [ordered[0]]
        for first, last in ordered[1:]:
            prev_first, prev_last = merged[-1]
            if first <= prev_last + 1:
                merged[-1] = (prev_first, max(prev_last, last))
            else:
                merged.append((first, last))
        return merged

    @classmethod
    def from_resource(
        cls, resource: Resource, start: date, skip_weekends: bool = True
    ) -> ResourceCalendar:
        """Build the calendar of a resource relative to the scheduling start date.

        External resources are full-time and never unavailable.
        """
        if resource.external:
            return cls(resource_id=resource.id)
        ranges: list[tuple[int, int]] = []
        for period in resource.unavailability:
            converted = blocked_range(period, start, skip_weekends)
            if converted is not None:
                ranges.append(converted)
        return cls(resource_id=resource.id, capacity=resource.capacity, blocked=ranges)

    def span_for(self, effort_days: float) -> int:
        """Working days needed to absorb ``effort_days`` at this resource's capacity."""
        if effort_days <= 0:
            return 0
        # Round before ceil so 0.3/0.1 does not become 4
        return math.ceil(round(effort_days / self.capacity, 9))

    def _next_blocked_index(self, day: int) -> int:
        """Index of the first blocked range whose end is at or after ``day``."""
        return bisect.bisect_left(self.blocked, day, key=lambda r: r[1])

    def is_available(self, start: int, span: int) -> bool:
        """Check that days ``start .. start+span-1`` touch no blocked range."""
        if span <= 0:
            return True
        idx = self._next_blocked_index(start)
        if idx >= len(self.blocked):
            return True
        return self.blocked[idx][0] > start + span - 1

    def earliest_available(self, from_day: int, effort_days: float) -> int:
        """Earliest start at or after ``from_day`` where the whole task fits.

        A task is never split across a blocked range: if it cannot finish
        before the next blocked range begins, the search resumes after that
        range ends.
        """
        span = self.span_for(effort_days)
        candidate = max(0, from_day)
        if span == 0:
            return candidate

        idx = self._next_blocked_index(candidate)
        while idx < len(self.blocked):
            first, last = self.blocked[idx]
            if candidate + span - 1 < first:
                break
            candidate = max(candidate, last + 1)
            idx += 1
        return candidate


class CalendarSet:
    """Calendars for every resource of one optimization problem."""

    def __init__(self, calendars: Mapping[str, ResourceCalendar]) -> None:
        self._calendars = dict(calendars)

    @classmethod
    def build(
        cls, resources: Iterable[Resource], start: date, skip_weekends: bool = True
    ) -> CalendarSet:
        calendars = {
            resource.id: ResourceCalendar.from_resource(resource, start, skip_weekends)
            for resource in resources
        }
        for calendar in calendars.values():
            if calendar.blocked:
                logger.debug(f"Resource {calendar.resource_id} blocked on days {calendar.blocked}")
        return cls(calendars)

    def __getitem__(self, resource_id: str) -> ResourceCalendar:
        return self._calendars[resource_id]

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._calendars

    def earliest_available(self, resource_id: str, from_day: int, effort_days: float) -> int:
        return self._calendars[resource_id].earliest_available(from_day, effort_days)

    def span_for(self, resource_id: str, effort_days: float) -> int:
        return self._calendars[resource_id].span_for(effort_days)
