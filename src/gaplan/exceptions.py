"""Custom exceptions for gaplan."""

from __future__ import annotations

from enum import Enum


class GaplanError(Exception):
    """Base exception for all gaplan errors."""

    pass


class ValidationError(GaplanError):
    """Raised when validation fails."""

    pass


class RejectionReason(str, Enum):
    """Precondition violated by an optimization request."""

    EMPTY_ITEM_SET = "empty_item_set"
    DUPLICATE_ITEM = "duplicate_item"
    NO_RESOURCES = "no_resources"
    INVALID_CAPACITY = "invalid_capacity"
    UNKNOWN_MILESTONE_ANCHOR = "unknown_milestone_anchor"
    DUPLICATE_MILESTONE = "duplicate_milestone"
    INVALID_MILESTONE_DATES = "invalid_milestone_dates"
    INVALID_PARAMETERS = "invalid_parameters"


class RequestRejected(ValidationError):
    """Raised when an optimization request fails a precondition.

    Raised before any generation runs, so callers never see partial results.
    """

    def __init__(self, reason: RejectionReason, detail: str) -> None:
        super().__init__(f"{reason.value}: {detail}")
        self.reason = reason
        self.detail = detail


class ParseError(GaplanError):
    """Raised when a request or config file cannot be parsed."""

    pass


class OptimizationError(GaplanError):
    """Raised when an optimizer run breaks an internal invariant."""

    pass


class PrecedenceViolationError(OptimizationError):
    """Raised when a chromosome schedules an item before one of its dependencies."""

    pass


class InvariantViolationError(OptimizationError):
    """Raised when decoding produces an impossible schedule (e.g. negative duration)."""

    pass
