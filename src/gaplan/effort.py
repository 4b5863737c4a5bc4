"""Effort estimation for work items.

Item sizes are efforts in working days at full capacity. Trackers that use a
coarse 1-5 size scale (``[size=N]`` in the whiteboard) are converted with
``days_from_size_class`` before the item reaches the scheduler.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from .models import WorkItem

# Size class -> working days
SIZE_CLASS_DAYS = {
    1: 1,
    2: 5,
    3: 10,
    4: 20,
    5: 60,
}

DEFAULT_SIZE_DAYS = 10.0

_WHITEBOARD_SIZE = re.compile(r"\[size=(\d)\]", re.IGNORECASE)


@dataclass(frozen=True)
class Effort:
    """Effort needed to finish a work item."""

    days: float  # Working days at full capacity
    size_estimated: bool  # True if the item had no size and the default was used
    is_meta: bool = False  # Tracking items take no time and no resource


def days_from_size_class(size: float) -> int:
    """Convert a 1-5 size class to working days.

    Fractional classes interpolate linearly between neighbours; values
    outside the scale clamp to its ends.
    """
    if size == int(size) and int(size) in SIZE_CLASS_DAYS:
        return SIZE_CLASS_DAYS[int(size)]

    lower = math.floor(size)
    upper = math.ceil(size)
    if lower < 1:
        return SIZE_CLASS_DAYS[1]
    if upper > 5:
        return SIZE_CLASS_DAYS[5]

    lower_days = SIZE_CLASS_DAYS[lower]
    upper_days = SIZE_CLASS_DAYS[upper]
    return round(lower_days + (upper_days - lower_days) * (size - lower))


def parse_whiteboard_size(whiteboard: str | None) -> int | None:
    """Extract a ``[size=N]`` size class (1-5) from a tracker whiteboard."""
    if not whiteboard:
        return None
    match = _WHITEBOARD_SIZE.search(whiteboard)
    if not match:
        return None
    size = int(match.group(1))
    if 1 <= size <= 5:
        return size
    return None


def calculate_effort(item: WorkItem, default_days: float = DEFAULT_SIZE_DAYS) -> Effort:
    """Compute the effort of a work item, substituting the default for unestimated ones."""
    if item.meta:
        return Effort(days=0.0, size_estimated=False, is_meta=True)
    if item.size is None:
        return Effort(days=default_days, size_estimated=True)
    return Effort(days=float(item.size), size_estimated=False)
