"""Request and response records exchanged with callers.

Field names follow the dashboard's camelCase wire format; every field is
also accepted under its snake_case name. Responses serialize with
``to_dict()``, which emits the camelCase form.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import Milestone, Resource, WorkItem, parse_iso_date
from .scheduler.config import OptimizerConfig
from .scheduler.core import AtRiskItem, MilestoneResult, RunResult, ScheduleEntry


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class OptimizeRequest(_Message):
    """One optimization request.

    Optimizer parameters left unset fall back to the configured defaults.
    """

    id: Any = None
    items: list[WorkItem] = Field(default_factory=list, alias="bugs")
    resources: list[Resource] = Field(default_factory=list, alias="engineers")
    graph: dict[str, list[str]] = Field(default_factory=dict)
    milestones: list[Milestone] = Field(default_factory=list)
    population_size: int | None = Field(default=None, alias="populationSize")
    generations: int | None = None
    start_date: date | None = Field(default=None, alias="startDate")
    seed: int | None = None
    runs: int | None = None
    max_workers: int | None = Field(default=None, alias="maxWorkers")
    mutation_rate: float | None = Field(default=None, alias="mutationRate")
    local_search_swaps: int | None = Field(default=None, alias="localSearchSwaps")
    greedy_seed: bool | None = Field(default=None, alias="greedySeed")
    seed_population: list[dict[str, Any]] = Field(default_factory=list, alias="seedPopulation")

    @field_validator("graph", mode="before")
    @classmethod
    def coerce_graph(cls, value: object) -> object:
        """Graph keys and dependency ids may arrive as integers."""
        if isinstance(value, dict):
            return {str(k): [str(dep) for dep in (v or [])] for k, v in value.items()}
        return value

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start(cls, value: object) -> object:
        return parse_iso_date(value)

    @property
    def label(self) -> str:
        """The request id as text for log messages."""
        return "<unnamed>" if self.id is None else str(self.id)

    def apply_to(self, config: OptimizerConfig) -> OptimizerConfig:
        """Overlay the request's optimizer parameters on a base config."""
        overrides: dict[str, Any] = {
            name: getattr(self, name)
            for name in (
                "population_size",
                "generations",
                "seed",
                "runs",
                "max_workers",
                "mutation_rate",
                "local_search_swaps",
                "greedy_seed",
            )
            if getattr(self, name) is not None
        }
        if self.seed_population:
            overrides["seed_population"] = list(self.seed_population)
        return config.model_copy(update=overrides)


class ScheduleEntryMessage(_Message):
    item_id: str = Field(alias="bugId")
    resource_id: str | None = Field(default=None, alias="engineerId")
    start_day: int = Field(alias="startDay")
    end_day: int = Field(alias="endDay")
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    size_estimated: bool = Field(default=False, alias="sizeEstimated")

    @classmethod
    def from_entry(cls, entry: ScheduleEntry) -> ScheduleEntryMessage:
        return cls(
            item_id=entry.item_id,
            resource_id=entry.resource_id,
            start_day=entry.start,
            end_day=entry.finish,
            start_date=entry.start_date,
            end_date=entry.end_date,
            size_estimated=entry.size_estimated,
        )


class MilestoneMessage(_Message):
    name: str
    anchor_id: str = Field(alias="bugId")
    completion_date: date | None = Field(default=None, alias="completionDate")
    deadline: date
    freeze_date: date = Field(alias="freezeDate")
    met: bool
    lateness: int

    @classmethod
    def from_result(cls, result: MilestoneResult) -> MilestoneMessage:
        return cls(
            name=result.name,
            anchor_id=result.anchor_id,
            completion_date=result.completion_date,
            deadline=result.deadline,
            freeze_date=result.freeze_date,
            met=result.met,
            lateness=result.lateness,
        )


class AtRiskMessage(_Message):
    item_id: str = Field(alias="bugId")
    milestone: str
    kind: str
    end_date: date = Field(alias="endDate")

    @classmethod
    def from_item(cls, item: AtRiskItem) -> AtRiskMessage:
        return cls(
            item_id=item.item_id, milestone=item.milestone, kind=item.kind, end_date=item.end_date
        )


class CompleteResponse(_Message):
    """Best schedule of a finished request."""

    type: Literal["complete"] = "complete"
    id: Any = None
    run_id: str = Field(alias="runId")
    deadlines_met: int = Field(alias="deadlinesMet")
    total_lateness: int = Field(alias="totalLateness")
    makespan: int
    best_found_at_generation: int = Field(alias="bestFoundAtGeneration")
    generations_run: int = Field(alias="generationsRun")
    schedule: list[ScheduleEntryMessage] = Field(default_factory=list)
    milestones: list[MilestoneMessage] = Field(default_factory=list)
    at_risk: list[AtRiskMessage] = Field(default_factory=list, alias="atRisk")
    excluded: list[str] = Field(default_factory=list)
    failed_runs: int = Field(default=0, alias="failedRuns")
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(
        cls,
        request_id: Any,
        result: RunResult,
        *,
        excluded: list[str] | None = None,
        failed_runs: int = 0,
    ) -> CompleteResponse:
        if result.score is None:
            raise ValueError(f"Run {result.run_id} has no score")
        return cls(
            id=request_id,
            run_id=result.run_id,
            deadlines_met=result.score.deadlines_met,
            total_lateness=result.score.total_lateness,
            makespan=result.score.makespan,
            best_found_at_generation=result.best_found_at_generation,
            generations_run=result.generations_run,
            schedule=[ScheduleEntryMessage.from_entry(e) for e in result.entries],
            milestones=[MilestoneMessage.from_result(m) for m in result.milestones],
            at_risk=[AtRiskMessage.from_item(r) for r in result.at_risk],
            excluded=excluded or [],
            failed_runs=failed_runs,
            warnings=list(result.warnings),
        )


class ProgressResponse(_Message):
    """Best score so far of one run."""

    type: Literal["progress"] = "progress"
    id: Any = None
    run_id: str = Field(alias="runId")
    generation: int
    deadlines_met: int = Field(alias="deadlinesMet")
    total_lateness: int = Field(alias="totalLateness")
    makespan: int
    average_makespan: float = Field(default=0.0, alias="avgMakespan")


class FailedResponse(_Message):
    """Every run of the request failed."""

    type: Literal["failed"] = "failed"
    id: Any = None
    run_id: str | None = Field(default=None, alias="runId")
    error: str


class RejectedResponse(_Message):
    """The request broke a precondition; nothing ran."""

    type: Literal["rejected"] = "rejected"
    id: Any = None
    reason: str
    detail: str


Response = CompleteResponse | FailedResponse | RejectedResponse
