"""Protocol definitions for the genetic scheduler.

The optimizer depends on these narrow interfaces rather than on concrete
classes, so tests can substitute simple doubles for any collaborator.
"""

from typing import Protocol

from .core import Chromosome, ProgressUpdate, Schedule, ScoreTriple


class AvailabilityModel(Protocol):
    """Per-resource calendar queries on the working-day axis."""

    def earliest_available(self, resource_id: str, from_day: int, effort_days: float) -> int:
        """Earliest start at or after from_day where the whole task fits.

        Args:
            resource_id: Resource the task is assigned to
            from_day: Earliest acceptable start
            effort_days: Effort at full capacity

        Returns:
            Working-day index of the start
        """
        ...

    def span_for(self, resource_id: str, effort_days: float) -> int:
        """Working days the resource needs to absorb effort_days."""
        ...


class ScheduleDecoder(Protocol):
    """Turns a chromosome into a concrete schedule, deterministically."""

    def decode(self, chromosome: Chromosome) -> Schedule:
        """Decode a chromosome.

        Raises:
            PrecedenceViolationError: If the order puts an item before a dependency
        """
        ...


class FitnessModel(Protocol):
    """Scores decoded schedules."""

    def score(self, schedule: Schedule) -> ScoreTriple:
        """Score a schedule against the problem's milestones."""
        ...


class CancellationToken(Protocol):
    """Checked by a run once per generation."""

    def is_cancelled(self) -> bool: ...


class ProgressSink(Protocol):
    """Receives progress updates; purely observational."""

    def __call__(self, update: ProgressUpdate) -> None: ...
