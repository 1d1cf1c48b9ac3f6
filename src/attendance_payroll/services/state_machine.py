"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from attendance_payroll.errors import PayrollError


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    CALCULATING = "calculating"
    CALCULATED = "calculated"
    REVIEW = "review"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → calculating
    - calculating → calculated
    - calculated → calculating (recalculate)
    - calculated → review → approved
    - calculated → approved
    - calculated | approved → processing → completed

    Cancellation is not a transition: cancellable runs are deleted.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.CALCULATING],
        PayrollRunStatus.CALCULATING: [PayrollRunStatus.CALCULATED],
        PayrollRunStatus.CALCULATED: [
            PayrollRunStatus.CALCULATING,
            PayrollRunStatus.REVIEW,
            PayrollRunStatus.APPROVED,
            PayrollRunStatus.PROCESSING,
        ],
        PayrollRunStatus.REVIEW: [PayrollRunStatus.APPROVED],
        PayrollRunStatus.APPROVED: [PayrollRunStatus.PROCESSING],
        PayrollRunStatus.PROCESSING: [PayrollRunStatus.COMPLETED],
        PayrollRunStatus.COMPLETED: [],  # Terminal state
    }

    # Statuses where (re)calculation is allowed
    CALCULATION_ALLOWED = {
        PayrollRunStatus.DRAFT,
        PayrollRunStatus.CALCULATING,
        PayrollRunStatus.CALCULATED,
    }

    # Statuses a run can be cancelled (deleted) from
    CANCELLABLE = {
        PayrollRunStatus.DRAFT,
        PayrollRunStatus.CALCULATED,
        PayrollRunStatus.REVIEW,
    }

    # Statuses whose results are final
    RESULTS_IMMUTABLE = {
        PayrollRunStatus.PROCESSING,
        PayrollRunStatus.COMPLETED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str, reason: str | None = None) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if calculation is allowed in this status."""
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def is_recalculation(cls, status: str) -> bool:
        return status == PayrollRunStatus.CALCULATED

    @classmethod
    def can_cancel(cls, status: str) -> bool:
        return status in cls.CANCELLABLE

    @classmethod
    def validate_cancel(cls, status: str) -> None:
        """Raise InvalidTransitionError unless the run can be cancelled."""
        if not cls.can_cancel(status):
            raise InvalidTransitionError(
                status,
                "cancelled",
                f"Cannot cancel payroll run in {status} status",
            )

    @classmethod
    def are_results_immutable(cls, status: str) -> bool:
        return status in cls.RESULTS_IMMUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
