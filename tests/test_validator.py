"""Tests for request validation."""

from collections.abc import Callable
from datetime import date

import pytest

from gaplan.exceptions import RejectionReason, RequestRejected
from gaplan.models import Milestone, Resource, WorkItem, make_external_resource
from gaplan.scheduler import OptimizerConfig, Problem, RequestValidator

START = date(2025, 1, 6)


def _milestone(name: str = "Beta", anchor: str = "1", **kwargs: date) -> Milestone:
    dates = {"deadline": date(2025, 3, 31), "freeze_date": date(2025, 3, 17)} | kwargs
    return Milestone(name=name, anchor_id=anchor, **dates)


def _reject(
    items: list[WorkItem],
    resources: list[Resource],
    milestones: list[Milestone] | None = None,
    config: OptimizerConfig | None = None,
) -> RequestRejected:
    with pytest.raises(RequestRejected) as exc_info:
        RequestValidator(config).validate(items, resources, milestones or [], START)
    return exc_info.value


class TestRejections:
    """Tests for each precondition a request can violate."""

    def test_empty_item_set(self, alice: Resource) -> None:
        assert _reject([], [alice]).reason == RejectionReason.EMPTY_ITEM_SET

    def test_duplicate_item(self, alice: Resource) -> None:
        error = _reject([WorkItem(id="1"), WorkItem(id="2"), WorkItem(id=1)], [alice])  # type: ignore[arg-type]

        assert error.reason == RejectionReason.DUPLICATE_ITEM
        assert "1" in error.detail

    def test_no_resources_for_open_work(self) -> None:
        assert _reject([WorkItem(id="1")], []).reason == RejectionReason.NO_RESOURCES

    @pytest.mark.parametrize("capacity", [0.0, -0.5, 1.5])
    def test_invalid_capacity(self, capacity: float) -> None:
        error = _reject([WorkItem(id="1")], [Resource(id="r", capacity=capacity)])

        assert error.reason == RejectionReason.INVALID_CAPACITY

    def test_duplicate_resource(self, alice: Resource) -> None:
        error = _reject([WorkItem(id="1")], [alice, alice])

        assert error.reason == RejectionReason.INVALID_PARAMETERS

    def test_unknown_milestone_anchor(self, alice: Resource) -> None:
        error = _reject([WorkItem(id="1")], [alice], [_milestone(anchor="404")])

        assert error.reason == RejectionReason.UNKNOWN_MILESTONE_ANCHOR

    def test_duplicate_milestone_ignores_case_and_spaces(self, alice: Resource) -> None:
        error = _reject(
            [WorkItem(id="1")], [alice], [_milestone("Customer Pilot"), _milestone("customerpilot")]
        )

        assert error.reason == RejectionReason.DUPLICATE_MILESTONE

    @pytest.mark.parametrize("freeze", [date(2025, 3, 31), date(2025, 4, 1)])
    def test_freeze_must_precede_deadline(self, alice: Resource, freeze: date) -> None:
        error = _reject([WorkItem(id="1")], [alice], [_milestone(freeze_date=freeze)])

        assert error.reason == RejectionReason.INVALID_MILESTONE_DATES

    @pytest.mark.parametrize(
        "update",
        [
            {"population_size": 1},
            {"generations": -1},
            {"mutation_rate": 1.5},
            {"crossover_rate": -0.1},
            {"elite_count": 0},
            {"runs": 0},
        ],
    )
    def test_invalid_parameters(self, alice: Resource, update: dict[str, object]) -> None:
        config = OptimizerConfig().model_copy(update=update)

        error = _reject([WorkItem(id="1")], [alice], config=config)

        assert error.reason == RejectionReason.INVALID_PARAMETERS

    def test_rejection_message_names_reason(self) -> None:
        error = _reject([], [])

        assert str(error).startswith("empty_item_set:")


class TestProblem:
    """Tests for the problem built from a valid request."""

    def test_resolved_items_are_not_scheduled(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(
            [
                WorkItem(id="1", size=1, depends_on=("2",)),
                WorkItem(id="2", size=1, status="RESOLVED"),
                WorkItem(id="3", size=1, status="closed"),
            ]
        )

        assert problem.order == ("1",)
        assert problem.dependencies["1"] == ()
        assert "2" in problem.graph

    def test_all_resolved_needs_no_resources(self) -> None:
        problem = RequestValidator().validate(
            [WorkItem(id="1", status="VERIFIED")], [], [], START
        )

        assert problem.order == ()

    def test_cycles_exclude_items_without_rejecting(
        self, make_problem: Callable[..., Problem]
    ) -> None:
        problem = make_problem(
            [
                WorkItem(id="1", depends_on=("2",)),
                WorkItem(id="2", depends_on=("1",)),
                WorkItem(id="3", depends_on=("2", "4")),
                WorkItem(id="4"),
                WorkItem(id="5", depends_on=("1",)),
            ]
        )

        assert problem.order == ("4", "3")
        assert problem.excluded == frozenset({"1", "2", "5"})
        assert problem.dependencies["3"] == ("4",)

    def test_default_size_from_config(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem([WorkItem(id="1")], config=OptimizerConfig(default_size_days=3))

        assert problem.efforts["1"].days == 3.0
        assert problem.efforts["1"].size_estimated

    def test_candidates(self, make_problem: Callable[..., Problem], alice: Resource) -> None:
        external = make_external_resource("dave@partner.example")
        problem = make_problem(
            [
                WorkItem(id="free"),
                WorkItem(id="mine", assignee="Alice@Example.com"),
                WorkItem(id="partner", assignee="dave@partner.example"),
                WorkItem(id="outside", external=True),
                WorkItem(id="meta", meta=True, assignee="alice@example.com"),
            ],
            resources=[alice, Resource(id="bob"), external],
        )

        assert problem.candidates["free"] == ("alice", "bob")
        assert problem.fixed["mine"] == "alice"
        assert problem.candidates["mine"] == ("alice", "bob")
        assert problem.fixed["partner"] == external.id
        assert problem.candidates["partner"] == ("alice", "bob", external.id)
        assert problem.candidates["outside"] == (None,)
        assert problem.fixed["meta"] is None
        assert problem.candidates["meta"] == (None,)

    def test_unknown_assignee_is_ignored(self, make_problem: Callable[..., Problem]) -> None:
        problem = make_problem([WorkItem(id="1", assignee="stranger@example.com")])

        assert problem.fixed["1"] is None
        assert problem.candidates["1"] == ("alice",)

    def test_only_external_resources_form_the_pool(self) -> None:
        external = make_external_resource("dave@partner.example")

        assert RequestValidator.resource_pool([external]) == (external.id,)

    def test_extra_edges(self, alice: Resource) -> None:
        problem = RequestValidator().validate(
            [WorkItem(id="a"), WorkItem(id="b")], [alice], [], START, extra_edges={"a": ["b"]}
        )

        assert problem.order == ("b", "a")
        assert problem.dependencies["a"] == ("b",)
