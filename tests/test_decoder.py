"""Tests for decoding chromosomes into schedules."""

from collections.abc import Callable
from datetime import date

import pytest

from gaplan.exceptions import InvariantViolationError, PrecedenceViolationError
from gaplan.models import Resource, UnavailabilityPeriod, WorkItem
from gaplan.scheduler import Chromosome, Problem, ScheduleBuilder


def _chain() -> list[WorkItem]:
    """A depends on B, which depends on C; one day each."""
    return [
        WorkItem(id="A", size=1, depends_on=("B",)),
        WorkItem(id="B", size=1, depends_on=("C",)),
        WorkItem(id="C", size=1),
    ]


def _assign_all(problem: Problem, resource_id: str | None) -> dict[str, str | None]:
    return {item_id: resource_id for item_id in problem.order}


class TestDecode:
    """Tests for ScheduleBuilder.decode."""

    def test_chain_runs_back_to_back(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem(_chain())
        assert problem.order == ("C", "B", "A")

        schedule = ScheduleBuilder(problem).decode(
            Chromosome(order=problem.order, assignment=_assign_all(problem, "alice"))
        )

        assert [(schedule.items[i].start, schedule.items[i].finish) for i in "CBA"] == [
            (0, 1),
            (1, 2),
            (2, 3),
        ]
        assert schedule.latest_finish == 3

    def test_dependency_after_dependent_is_rejected(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(_chain())
        chromosome = Chromosome(order=("B", "C", "A"), assignment=_assign_all(problem, "alice"))

        with pytest.raises(PrecedenceViolationError, match="before its dependency C"):
            ScheduleBuilder(problem).decode(chromosome)

    @pytest.mark.parametrize("order", [("C", "B"), ("C", "B", "A", "A"), ("C", "B", "X")])
    def test_order_must_be_a_permutation(
        self, make_problem: Callable[..., Problem], order: tuple[str, ...]
    ) -> None:
        problem = make_problem(_chain())
        chromosome = Chromosome(order=order, assignment=_assign_all(problem, "alice"))

        with pytest.raises(InvariantViolationError):
            ScheduleBuilder(problem).decode(chromosome)

    def test_resource_works_one_item_at_a_time(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem([WorkItem(id="x", size=2), WorkItem(id="y", size=3)])

        schedule = ScheduleBuilder(problem).decode(
            Chromosome(order=("y", "x"), assignment=_assign_all(problem, "alice"))
        )

        assert (schedule.items["y"].start, schedule.items["y"].finish) == (0, 3)
        assert (schedule.items["x"].start, schedule.items["x"].finish) == (3, 5)

    def test_separate_resources_work_in_parallel(
        self, make_problem: Callable[..., Problem], alice: Resource
    ) -> None:
        problem = make_problem(
            [WorkItem(id="x", size=2), WorkItem(id="y", size=3)],
            resources=[alice, Resource(id="bob")],
        )

        schedule = ScheduleBuilder(problem).decode(
            Chromosome(order=("x", "y"), assignment={"x": "alice", "y": "bob"})
        )

        assert schedule.items["x"].start == 0
        assert schedule.items["y"].start == 0
        assert schedule.latest_finish == 3

    def test_partial_capacity_stretches_span(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem(
            [WorkItem(id="x", size=2)], resources=[Resource(id="half", capacity=0.5)]
        )

        schedule = ScheduleBuilder(problem).decode(
            Chromosome(order=("x",), assignment={"x": "half"})
        )

        assert schedule.items["x"].finish == 4

    def test_unavailability_pushes_start(self, make_problem: Callable[..., Problem]) -> None:
        resource = Resource(
            id="alice",
            unavailability=(UnavailabilityPeriod(start=date(2025, 1, 7), end=date(2025, 1, 7)),),
        )
        problem = make_problem([WorkItem(id="x", size=2)], resources=[resource])

        schedule = ScheduleBuilder(problem).decode(
            Chromosome(order=("x",), assignment={"x": "alice"})
        )

        # Two days do not fit before the Tuesday off, and tasks are never split
        assert (schedule.items["x"].start, schedule.items["x"].finish) == (2, 4)

    def test_meta_item_takes_no_time_or_resource(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(
            [WorkItem(id="C", size=2), WorkItem(id="M", meta=True, depends_on=("C",))]
        )

        schedule = ScheduleBuilder(problem).decode(
            Chromosome(order=("C", "M"), assignment={"C": "alice", "M": "alice"})
        )

        placed = schedule.items["M"]
        assert placed.resource_id is None
        assert (placed.start, placed.finish) == (2, 2)

    def test_unassigned_external_item_needs_no_resource(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(
            [WorkItem(id="e", size=2.5, external=True), WorkItem(id="x", size=1)]
        )
        assert problem.candidates["e"] == (None,)

        schedule = ScheduleBuilder(problem).decode(
            Chromosome(order=("e", "x"), assignment={"e": None, "x": "alice"})
        )

        assert (schedule.items["e"].start, schedule.items["e"].finish) == (0, 3)
        assert schedule.items["x"].start == 0

    def test_decoding_is_deterministic(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem(_chain())
        chromosome = Chromosome(order=problem.order, assignment=_assign_all(problem, "alice"))
        builder = ScheduleBuilder(problem)

        assert builder.decode(chromosome) == builder.decode(chromosome)


class TestEntries:
    """Tests for calendar dates attached to a schedule."""

    def test_entries_in_start_order_with_dates(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem([WorkItem(id="x", size=6), WorkItem(id="y")])
        builder = ScheduleBuilder(problem)

        entries = builder.to_entries(
            builder.decode(Chromosome(order=("x", "y"), assignment=_assign_all(problem, "alice")))
        )

        assert [e.item_id for e in entries] == ["x", "y"]
        x, y = entries
        assert x.start_date == date(2025, 1, 6)
        # Six working days from Monday end on the following Monday
        assert x.end_date == date(2025, 1, 13)
        assert not x.size_estimated
        # y had no size and took the default ten days
        assert y.size_estimated
        assert y.start_date == date(2025, 1, 14)
        assert y.end_date == date(2025, 1, 27)

    def test_zero_span_entry_ends_on_its_start(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem([WorkItem(id="m", meta=True)])
        builder = ScheduleBuilder(problem)

        (entry,) = builder.to_entries(
            builder.decode(Chromosome(order=("m",), assignment={"m": None}))
        )

        assert entry.start_date == entry.end_date == date(2025, 1, 6)
