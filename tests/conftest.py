"""Pytest configuration and fixtures for gaplan tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from datetime import date

import pytest

from gaplan.logger import reset_logger
from gaplan.models import Milestone, Resource, WorkItem
from gaplan.scheduler import OptimizerConfig, Problem, RequestValidator

# A Monday, so working day k is plain weekday arithmetic for the first week
START = date(2025, 1, 6)


@pytest.fixture(autouse=True)
def clean_logger() -> Iterator[None]:
    """Leave the gaplan logger silent between tests."""
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def start() -> date:
    return START


@pytest.fixture
def alice() -> Resource:
    return Resource(id="alice", name="Alice", email="alice@example.com")


@pytest.fixture
def make_problem() -> Callable[..., Problem]:
    """Factory validating items, resources and milestones into a Problem."""

    def _make(
        items: Sequence[WorkItem],
        resources: Sequence[Resource] | None = None,
        milestones: Sequence[Milestone] = (),
        config: OptimizerConfig | None = None,
        start_date: date = START,
    ) -> Problem:
        if resources is None:
            resources = [Resource(id="alice", name="Alice", email="alice@example.com")]
        return RequestValidator(config).validate(items, resources, milestones, start_date)

    return _make
