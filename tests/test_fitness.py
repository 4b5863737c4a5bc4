"""Tests for schedule scoring and at-risk detection."""

from collections.abc import Callable
from datetime import date

import pytest

from gaplan.models import Milestone, WorkItem
from gaplan.scheduler import (
    Chromosome,
    FitnessEvaluator,
    MakespanScope,
    Problem,
    Schedule,
    ScheduleBuilder,
    ScoreTriple,
    is_better_score,
)


def _chain() -> list[WorkItem]:
    return [
        WorkItem(id="A", size=1, depends_on=("B",)),
        WorkItem(id="B", size=1, depends_on=("C",)),
        WorkItem(id="C", size=1),
    ]


def _milestone(name: str, anchor: str, deadline: date, freeze: date) -> Milestone:
    return Milestone(name=name, anchor_id=anchor, deadline=deadline, freeze_date=freeze)


def _decode(problem: Problem, order: tuple[str, ...] | None = None) -> Schedule:
    order = order or problem.order
    return ScheduleBuilder(problem).decode(
        Chromosome(order=order, assignment={item_id: "alice" for item_id in order})
    )


class TestScoreComparison:
    """Tests for the lexicographic score order."""

    def test_more_deadlines_met_wins_over_everything(self) -> None:
        assert is_better_score(ScoreTriple(2, 50, 100), ScoreTriple(1, 0, 1))

    def test_less_lateness_wins_on_equal_met(self) -> None:
        assert is_better_score(ScoreTriple(1, 2, 100), ScoreTriple(1, 3, 1))

    def test_makespan_breaks_remaining_ties(self) -> None:
        assert is_better_score(ScoreTriple(1, 2, 9), ScoreTriple(1, 2, 10))

    def test_equal_scores_are_not_better(self) -> None:
        score = ScoreTriple(1, 2, 3)

        assert not is_better_score(score, ScoreTriple(1, 2, 3))

    def test_any_score_beats_none(self) -> None:
        assert is_better_score(ScoreTriple(0, 100, 100), None)

    def test_order_is_asymmetric_and_transitive(self) -> None:
        scores = [ScoreTriple(m, late, s) for m in range(2) for late in range(2) for s in range(2)]
        for a in scores:
            for b in scores:
                assert not (is_better_score(a, b) and is_better_score(b, a))
                for c in scores:
                    if is_better_score(a, b) and is_better_score(b, c):
                        assert is_better_score(a, c)


class TestScore:
    """Tests for FitnessEvaluator.score."""

    def test_deadline_met_on_the_deadline_day(self, make_problem: Callable[..., Problem]) -> None:
        # A finishes at the end of Wednesday
        problem = make_problem(
            _chain(), milestones=[_milestone("M", "A", date(2025, 1, 8), date(2025, 1, 7))]
        )

        score = FitnessEvaluator(problem).score(_decode(problem))

        assert score == ScoreTriple(deadlines_met=1, total_lateness=0, makespan=3)

    def test_lateness_in_working_days(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem(
            _chain(), milestones=[_milestone("M", "A", date(2025, 1, 7), date(2025, 1, 6))]
        )

        score = FitnessEvaluator(problem).score(_decode(problem))

        assert score == ScoreTriple(deadlines_met=0, total_lateness=1, makespan=3)

    def test_milestone_covers_anchor_dependencies(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        # B anchors the milestone but C is part of its tree too
        problem = make_problem(
            _chain(), milestones=[_milestone("M", "B", date(2025, 1, 7), date(2025, 1, 6))]
        )
        evaluator = FitnessEvaluator(problem)

        (result,) = evaluator.milestone_results(_decode(problem))

        assert result.completion == 2
        assert result.completion_date == date(2025, 1, 7)
        assert result.met

    def test_nothing_left_to_schedule_counts_as_met(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(
            [WorkItem(id="R", status="RESOLVED"), WorkItem(id="x", size=1)],
            milestones=[_milestone("Done", "R", date(2025, 1, 6), date(2025, 1, 3))],
        )
        evaluator = FitnessEvaluator(problem)
        schedule = _decode(problem)

        (result,) = evaluator.milestone_results(schedule)

        assert evaluator.score(schedule).deadlines_met == 1
        assert result.completion == 0
        assert result.completion_date is None
        assert result.met

    def test_makespan_scope(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem(
            [WorkItem(id="A", size=1), WorkItem(id="X", size=5)],
            milestones=[_milestone("M", "A", date(2025, 1, 31), date(2025, 1, 24))],
        )
        schedule = _decode(problem, ("A", "X"))

        assert FitnessEvaluator(problem).score(schedule).makespan == 6
        scoped = FitnessEvaluator(problem, MakespanScope.MILESTONE_ANCHORS)
        assert scoped.score(schedule).makespan == 1

    def test_without_milestones_only_makespan_counts(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(_chain())

        assert FitnessEvaluator(problem).score(_decode(problem)) == ScoreTriple(0, 0, 3)


class TestAtRisk:
    """Tests for freeze-date and deadline risk flags."""

    def test_freeze_and_deadline_flags(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem(
            _chain(), milestones=[_milestone("M", "A", date(2025, 1, 7), date(2025, 1, 6))]
        )

        risks = FitnessEvaluator(problem).find_at_risk(_decode(problem))

        assert [(r.item_id, r.kind, r.end_date) for r in risks] == [
            ("B", "freeze", date(2025, 1, 7)),
            ("A", "deadline", date(2025, 1, 8)),
        ]
        assert {r.milestone for r in risks} == {"M"}

    def test_items_checked_only_against_their_own_milestone(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(
            _chain(),
            milestones=[
                _milestone("Late", "A", date(2025, 1, 31), date(2025, 1, 20)),
                _milestone("Early", "B", date(2025, 1, 7), date(2025, 1, 6)),
            ],
        )

        risks = FitnessEvaluator(problem).find_at_risk(_decode(problem))

        # C and B belong to Early, A only to Late
        assert [(r.item_id, r.milestone, r.kind) for r in risks] == [("B", "Early", "freeze")]

    def test_items_outside_milestones_are_never_at_risk(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(
            [WorkItem(id="A", size=1), WorkItem(id="X", size=30)],
            milestones=[_milestone("M", "A", date(2025, 1, 8), date(2025, 1, 7))],
        )

        assert FitnessEvaluator(problem).find_at_risk(_decode(problem, ("A", "X"))) == []


@pytest.mark.parametrize(
    ("deadline", "met", "lateness"),
    [
        (date(2025, 1, 10), 1, 0),
        (date(2025, 1, 8), 1, 0),
        (date(2025, 1, 7), 0, 1),
        (date(2025, 1, 6), 0, 2),
    ],
)
def test_deadline_bounds(
    make_problem: Callable[..., Problem], deadline: date, met: int, lateness: int
) -> None:
    problem = make_problem(
        _chain(), milestones=[_milestone("M", "A", deadline, date(2025, 1, 3))]
    )

    score = FitnessEvaluator(problem).score(_decode(problem))

    assert (score.deadlines_met, score.total_lateness) == (met, lateness)
