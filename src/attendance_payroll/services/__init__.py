"""Payroll run services."""

from attendance_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

__all__ = [
    "InvalidTransitionError",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
]
