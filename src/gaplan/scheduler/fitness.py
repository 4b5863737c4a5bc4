"""Fitness evaluation for decoded schedules.

Scores are compared lexicographically: more milestone deadlines met, then
less total lateness, then a smaller makespan.
"""

from __future__ import annotations

from dataclasses import dataclass

from gaplan.calendars import date_of_working_day, deadline_offset
from gaplan.logger import get_logger

from .config import MakespanScope
from .core import AtRiskItem, MilestoneResult, Problem, Schedule, ScoreTriple

logger = get_logger()


def is_better_score(a: ScoreTriple, b: ScoreTriple | None) -> bool:
    """Return True if ``a`` is strictly better than ``b``.

    Any score beats a missing one. Equal scores are not better than each
    other, which makes this a strict weak order.
    """
    return a.is_better_than(b)


@dataclass(frozen=True)
class _MilestoneBounds:
    """Precomputed view of one milestone on the working-day axis."""

    name: str
    anchor_id: str
    members: frozenset[str]  # Anchor and its transitive dependencies still to schedule
    deadline_bound: int
    freeze_bound: int


class FitnessEvaluator:
    """Scores schedules against the problem's milestones."""

    def __init__(
        self, problem: Problem, makespan_scope: MakespanScope = MakespanScope.ALL_ITEMS
    ) -> None:
        self.problem = problem
        self.makespan_scope = makespan_scope
        self._bounds = [self._bounds_for(index) for index in range(len(problem.milestones))]
        self._owner = self._assign_owners()

    def _bounds_for(self, index: int) -> _MilestoneBounds:
        milestone = self.problem.milestones[index]
        tree = {milestone.anchor_id} | self.problem.graph.transitive_dependencies(
            milestone.anchor_id
        )
        members = frozenset(item_id for item_id in tree if item_id in self.problem.efforts)
        start = self.problem.start_date
        skip = self.problem.skip_weekends
        return _MilestoneBounds(
            name=milestone.name,
            anchor_id=milestone.anchor_id,
            members=members,
            deadline_bound=deadline_offset(start, milestone.deadline, skip),
            freeze_bound=deadline_offset(start, milestone.freeze_date, skip),
        )

    def _assign_owners(self) -> dict[str, int]:
        """Map each item to the milestone with the earliest deadline that needs it."""
        owner: dict[str, int] = {}
        ranked = sorted(
            range(len(self._bounds)),
            key=lambda i: (self.problem.milestones[i].deadline, i),
        )
        for index in ranked:
            for item_id in self._bounds[index].members:
                owner.setdefault(item_id, index)
        return owner

    @staticmethod
    def _completion(bounds: _MilestoneBounds, schedule: Schedule) -> int:
        finishes = (schedule.finish_of(item_id) for item_id in bounds.members)
        return max((finish for finish in finishes if finish is not None), default=0)

    def score(self, schedule: Schedule) -> ScoreTriple:
        """Score a schedule.

        A milestone whose dependency tree has nothing left to schedule has
        completion 0 and counts as met. Such milestones are not skipped, so
        ``deadlines_met`` is always out of the full milestone list and a
        request whose work is already done scores every deadline as met.
        """
        met = 0
        lateness = 0
        latest_completion = 0
        for bounds in self._bounds:
            completion = self._completion(bounds, schedule)
            latest_completion = max(latest_completion, completion)
            if completion <= bounds.deadline_bound:
                met += 1
            else:
                lateness += completion - bounds.deadline_bound

        if self.makespan_scope == MakespanScope.MILESTONE_ANCHORS:
            makespan = latest_completion
        else:
            makespan = schedule.latest_finish
        return ScoreTriple(deadlines_met=met, total_lateness=lateness, makespan=makespan)

    def milestone_results(self, schedule: Schedule) -> list[MilestoneResult]:
        """Per-milestone completion details, in milestone input order."""
        results: list[MilestoneResult] = []
        for milestone, bounds in zip(self.problem.milestones, self._bounds):
            completion = self._completion(bounds, schedule)
            completion_date = None
            if bounds.members:
                completion_date = date_of_working_day(
                    self.problem.start_date, max(completion - 1, 0), self.problem.skip_weekends
                )
            results.append(
                MilestoneResult(
                    name=milestone.name,
                    anchor_id=milestone.anchor_id,
                    completion=completion,
                    completion_date=completion_date,
                    deadline=milestone.deadline,
                    freeze_date=milestone.freeze_date,
                    met=completion <= bounds.deadline_bound,
                    lateness=max(0, completion - bounds.deadline_bound),
                )
            )
        return results

    def find_at_risk(self, schedule: Schedule) -> list[AtRiskItem]:
        """Items finishing after their own milestone's deadline or freeze date.

        Each item is checked only against the earliest-deadline milestone
        whose dependency tree contains it. Items outside every milestone tree
        are never at risk.
        """
        risks: list[AtRiskItem] = []
        for placed in sorted(schedule.items.values(), key=lambda p: (p.finish, p.item_id)):
            index = self._owner.get(placed.item_id)
            if index is None:
                continue
            bounds = self._bounds[index]
            if placed.finish > bounds.deadline_bound:
                kind = "deadline"
            elif placed.finish > bounds.freeze_bound:
                kind = "freeze"
            else:
                continue
            end_date = date_of_working_day(
                self.problem.start_date,
                max(placed.start, placed.finish - 1),
                self.problem.skip_weekends,
            )
            risks.append(
                AtRiskItem(
                    item_id=placed.item_id,
                    milestone=bounds.name,
                    kind=kind,
                    end_date=end_date,
                )
            )
        if risks:
            logger.checks(
                f"{len(risks)} items finish after their milestone freeze date or deadline"
            )
        return risks
