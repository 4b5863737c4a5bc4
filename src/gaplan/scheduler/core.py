"""Core dataclasses for the genetic scheduler."""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gaplan.effort import Effort
    from gaplan.graph import PrecedenceGraph
    from gaplan.models import Milestone, Resource, WorkItem

    from .protocols import CancellationToken, ProgressSink


@dataclass(frozen=True)
class Problem:
    """Validated, immutable input of one optimization request.

    Built once by the request validator and handed, unchanged, to every run.
    All mappings are keyed by item id and cover exactly the schedulable items
    (open items that are not excluded by a dependency cycle).
    """

    start_date: date
    order: tuple[str, ...]  # Schedulable ids in deterministic topological order
    items: Mapping[str, WorkItem]
    efforts: Mapping[str, Effort]
    dependencies: Mapping[str, tuple[str, ...]]  # Schedulable dependencies only
    candidates: Mapping[str, tuple[str | None, ...]]  # Feasible resources per item
    fixed: Mapping[str, str | None]  # Fixed resource per item, if any
    resources: tuple[Resource, ...]
    milestones: tuple[Milestone, ...]
    graph: PrecedenceGraph
    excluded: frozenset[str] = frozenset()
    skip_weekends: bool = True

    @property
    def size(self) -> int:
        return len(self.order)


@dataclass(frozen=True)
class Chromosome:
    """One candidate schedule: an item order plus a resource per item.

    ``order`` is a topological refinement of the problem's dependency graph.
    Operators always return new chromosomes; a chromosome is never mutated
    in place.
    """

    order: tuple[str, ...]
    assignment: Mapping[str, str | None]

    def with_assignment(self, item_id: str, resource_id: str | None) -> Chromosome:
        assignment = dict(self.assignment)
        assignment[item_id] = resource_id
        return Chromosome(order=self.order, assignment=assignment)

    def to_dict(self) -> dict[str, object]:
        return {"order": list(self.order), "assignment": dict(self.assignment)}


@dataclass(frozen=True)
class ScheduledItem:
    """Placement of one item on the working-day axis."""

    item_id: str
    resource_id: str | None
    start: int
    finish: int  # Exclusive boundary; equals start for zero-span items


@dataclass(frozen=True)
class Schedule:
    """A decoded chromosome: every schedulable item with its placement."""

    items: Mapping[str, ScheduledItem]

    def finish_of(self, item_id: str) -> int | None:
        placed = self.items.get(item_id)
        return placed.finish if placed else None

    @property
    def latest_finish(self) -> int:
        return max((placed.finish for placed in self.items.values()), default=0)


@dataclass(frozen=True)
class ScheduleEntry:
    """A scheduled item with calendar dates, as reported to callers."""

    item_id: str
    resource_id: str | None
    start: int
    finish: int
    start_date: date
    end_date: date  # Last worked day (inclusive)
    size_estimated: bool


@dataclass(frozen=True)
class ScoreTriple:
    """Fitness of a schedule, compared lexicographically.

    More deadlines met is better; then less total lateness; then a smaller
    makespan. Lateness and makespan are in working days.
    """

    deadlines_met: int
    total_lateness: int
    makespan: int

    def sort_key(self) -> tuple[int, int, int]:
        """Key under which smaller means better."""
        return (-self.deadlines_met, self.total_lateness, self.makespan)

    def is_better_than(self, other: ScoreTriple | None) -> bool:
        if other is None:
            return True
        return self.sort_key() < other.sort_key()


@dataclass(frozen=True)
class MilestoneResult:
    """How one milestone fares in a schedule."""

    name: str
    anchor_id: str
    completion: int  # Finish boundary of the anchor's dependency tree
    completion_date: date | None  # None when nothing remained to schedule
    deadline: date
    freeze_date: date
    met: bool
    lateness: int


@dataclass(frozen=True)
class AtRiskItem:
    """An item finishing after its milestone's freeze date or deadline."""

    item_id: str
    milestone: str
    kind: str  # "freeze" or "deadline"
    end_date: date


class RunState(str, Enum):
    """Lifecycle of one optimizer run."""

    INITIALIZING = "initializing"
    EVOLVING = "evolving"
    CONVERGED = "converged"  # Stopped early: no improvement for the patience window
    EXHAUSTED = "exhausted"  # Ran every configured generation
    CANCELLED = "cancelled"  # Stopped at a generation boundary on request
    FAILED = "failed"


class RunStatus(str, Enum):
    """Outcome of a run as seen by callers."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressUpdate:
    """Observational progress report, at most one per generation."""

    run_id: str
    generation: int
    best: ScoreTriple
    improved: bool
    average_makespan: float


@dataclass
class RunResult:
    """Result of one optimizer run."""

    run_id: str
    status: RunStatus
    state: RunState
    score: ScoreTriple | None = None
    chromosome: Chromosome | None = None
    entries: list[ScheduleEntry] = field(default_factory=list)
    milestones: list[MilestoneResult] = field(default_factory=list)
    at_risk: list[AtRiskItem] = field(default_factory=list)
    best_found_at_generation: int = 0
    generations_run: int = 0
    history: list[ScoreTriple] = field(default_factory=list)
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @classmethod
    def failure(cls, run_id: str, error: str) -> RunResult:
        return cls(run_id=run_id, status=RunStatus.FAILED, state=RunState.FAILED, error=error)


class CancellationFlag:
    """Simple in-process cancellation token."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def is_cancelled(self) -> bool:
        return self._cancelled


@dataclass
class RunContext:
    """Everything a run needs from its environment.

    Each run owns its random source; nothing here is shared between runs.
    """

    run_id: str = "0"
    rng: random.Random = field(default_factory=random.Random)
    cancel: CancellationToken | None = None
    progress: ProgressSink | None = None

    @classmethod
    def seeded(cls, run_id: str, seed: int | None) -> RunContext:
        return cls(run_id=run_id, rng=random.Random(seed))
