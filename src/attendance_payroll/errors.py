"""Exceptions shared across calculators and services."""

from __future__ import annotations

from uuid import UUID


class PayrollError(Exception):
    """Base class for payroll core errors."""


class PayrollConfigurationError(PayrollError):
    """Raised when data needed for one employee's calculation is missing or invalid.

    Caught at the per-employee boundary of a run and recorded on the
    payroll record; it never aborts the run.
    """

    def __init__(self, message: str, employee_id: UUID | None = None):
        self.employee_id = employee_id
        super().__init__(message)


class PayrollRunNotFoundError(PayrollError):
    """Raised when a payroll run does not exist for the client."""

    def __init__(self, run_id: UUID, client_id: UUID | None = None):
        self.run_id = run_id
        self.client_id = client_id
        super().__init__(f"Payroll run {run_id} not found")


class PayrollPeriodNotFoundError(PayrollError):
    """Raised when a payroll period does not exist for the client."""

    def __init__(self, period_id: UUID, client_id: UUID | None = None):
        self.period_id = period_id
        self.client_id = client_id
        super().__init__(f"Payroll period {period_id} not found")


class DuplicateRunError(PayrollError):
    """Raised when a run with the same run number already exists."""

    def __init__(self, run_number: str):
        self.run_number = run_number
        super().__init__(f"Payroll run {run_number} already exists for this period")
