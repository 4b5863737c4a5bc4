"""Data models for gaplan.

Work items, resources and milestones are supplied once per optimization
request and are read-only for its duration.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RESOLVED_STATUSES = frozenset({"RESOLVED", "VERIFIED", "CLOSED"})
UNTRIAGED_SEVERITIES = frozenset({"", "--", "N/A"})

# Placeholder assignee used by the tracker for unowned bugs
NOBODY_ASSIGNEE = "nobody@mozilla.org"

EXTERNAL_RESOURCE_PREFIX = "external:"


def normalize_milestone_label(label: str) -> str:
    """Normalize a free-form milestone label for comparison.

    Matching is case-insensitive and ignores all whitespace, so
    "Customer Pilot", "customer pilot " and "CustomerPilot" are the same label.
    """
    return re.sub(r"\s+", "", label).lower()


def normalize_assignee(assignee: str | None) -> str | None:
    """Normalize an assignee, mapping the tracker's placeholder to None."""
    if assignee is None:
        return None
    value = assignee.strip()
    if not value or value.lower() == NOBODY_ASSIGNEE:
        return None
    return value.lower() if "@" in value else value


def parse_iso_date(value: object) -> object:
    """Accept ISO dates and ISO date-times; date-times are truncated to their date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        text = value.strip()
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    return value


class WorkItem(BaseModel):
    """A unit of work (a bug) to be scheduled."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    summary: str = ""
    size: float | None = None  # Effort in working days at full capacity
    depends_on: tuple[str, ...] = Field(default=(), alias="dependsOn")
    status: str = "NEW"
    assignee: str | None = None
    external: bool = False
    meta: bool = Field(default=False, alias="isMeta")
    severity: str | None = None
    target_milestone: str | None = Field(default=None, alias="targetMilestone")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        """Tracker ids are often integers; the graph keys on strings."""
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("depends_on", mode="before")
    @classmethod
    def coerce_dependency_ids(cls, value: object) -> object:
        if isinstance(value, (list, tuple, set)):
            return tuple(str(v) for v in value)
        return value

    @property
    def is_resolved(self) -> bool:
        """True if the tracker considers the item done."""
        return self.status.strip().upper() in RESOLVED_STATUSES

    @property
    def is_untriaged(self) -> bool:
        """True if no severity has been set."""
        return self.severity is None or self.severity.strip().upper() in UNTRIAGED_SEVERITIES

    @property
    def fixed_assignee(self) -> str | None:
        """The normalized assignee, or None if the item is unowned."""
        return normalize_assignee(self.assignee)


class UnavailabilityPeriod(BaseModel):
    """A period during which a resource has zero capacity (inclusive dates)."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_dates(cls, value: object) -> object:
        return parse_iso_date(value)

    @model_validator(mode="after")
    def validate_end_after_start(self) -> UnavailabilityPeriod:
        """Ensure end date is not before start date."""
        if self.end < self.start:
            raise ValueError("end date must be after start date")
        return self


class Resource(BaseModel):
    """A resource (engineer) that work items are assigned to.

    Capacity is the fraction of each working day the resource spends on
    scheduled work. It is range-checked by the request validator so that an
    impossible value surfaces as a structured rejection.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    email: str | None = None
    capacity: float = Field(default=1.0, alias="availability")
    unavailability: tuple[UnavailabilityPeriod, ...] = ()
    external: bool = Field(default=False, alias="isExternal")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value

    def answers_to(self, assignee: str) -> bool:
        """True if an item's normalized assignee refers to this resource."""
        if assignee == self.id:
            return True
        if self.external and self.id == f"{EXTERNAL_RESOURCE_PREFIX}{assignee}":
            return True
        return self.email is not None and self.email.strip().lower() == assignee


class Milestone(BaseModel):
    """A hard deadline anchored on the completion of one work item."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    anchor_id: str = Field(alias="bugId")
    deadline: date
    freeze_date: date = Field(alias="freezeDate")

    @field_validator("anchor_id", mode="before")
    @classmethod
    def coerce_anchor(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("deadline", "freeze_date", mode="before")
    @classmethod
    def parse_dates(cls, value: object) -> object:
        return parse_iso_date(value)

    @property
    def key(self) -> str:
        """Normalized name used for uniqueness and label matching."""
        return normalize_milestone_label(self.name)

    def matches(self, label: str | None) -> bool:
        """Check whether a free-form label names this milestone."""
        if not label:
            return False
        return normalize_milestone_label(label) == self.key


def make_external_resource(assignee: str) -> Resource:
    """Synthesize a full-time, always-available resource for an unknown assignee."""
    return Resource(
        id=f"{EXTERNAL_RESOURCE_PREFIX}{assignee}",
        name="External",
        email=assignee if "@" in assignee else None,
        capacity=1.0,
        unavailability=(),
        external=True,
    )
