"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for creating a new payroll run."""

    period_id: UUID
    run_type: str = "regular"
    run_name: str | None = None
    notes: str | None = None
    created_by: UUID | None = None
    department_ids: list[UUID] | None = None
    employee_types: list[str] | None = None
    employee_ids: list[UUID] | None = None


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    run_number: str
    period_id: UUID
    run_name: str
    run_type: str
    run_status: str
    total_employees: int
    processed_employees: int
    error_employees: int
    total_gross_amount: Decimal
    total_deductions_amount: Decimal
    total_net_amount: Decimal
    notes: str | None = None
    calculation_started_at: datetime | None = None
    calculation_completed_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: UUID | None = None
    approved_at: datetime | None = None
    approved_by: UUID | None = None
    processed_at: datetime | None = None
    processed_by: UUID | None = None
    created_at: datetime
    updated_at: datetime


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunResponse]
    total: int
    page: int
    page_size: int


class RunOperationResponse(BaseModel):
    """Outcome of a run-level operation."""

    success: bool
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Lifecycle request schemas
# ============================================================================


class CalculateRequest(BaseModel):
    """Schema for a calculation request."""

    user_id: UUID | None = None


class ApprovalRequest(BaseModel):
    """Schema for a review or approval request."""

    user_id: UUID | None = None
    level: Literal["review", "approve"] = "approve"


class ProcessRequest(BaseModel):
    """Schema for a processing request."""

    user_id: UUID | None = None
    payment_date: date | None = None
    payment_method: str | None = None


class CancelRequest(BaseModel):
    """Schema for a cancellation request."""

    user_id: UUID | None = None
    reason: str | None = None


# ============================================================================
# Payroll record schemas
# ============================================================================


class RecordComponentResponse(BaseModel):
    """Schema for a payroll record component line."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    component_code: str
    component_name: str
    component_type: str
    component_category: str
    calculated_amount: Decimal
    details: str | None = None
    source_type: str | None = None
    source_id: UUID | None = None


class PayrollRecordResponse(BaseModel):
    """Schema for a payroll record with its component lines."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    run_id: UUID
    employee_id: UUID
    employee_code: str
    employee_name: str
    department_name: str | None = None
    designation_name: str | None = None
    base_salary: Decimal
    attendance_affects_salary: bool
    employee_period_start_date: date | None = None
    employee_period_end_date: date | None = None
    uses_custom_cycle: bool
    weekday_working_days: int
    working_saturdays: int
    working_sundays: int
    weekday_daily_hours: Decimal
    saturday_daily_hours: Decimal
    sunday_daily_hours: Decimal
    daily_salary: Decimal
    weekday_hourly_rate: Decimal
    saturday_hourly_rate: Decimal
    sunday_hourly_rate: Decimal
    earned_salary: Decimal
    attendance_deduction: Decimal
    gross_salary: Decimal
    total_deductions: Decimal
    total_taxes: Decimal
    net_salary: Decimal
    calculation_status: str
    calculation_error: str | None = None
    payment_status: str
    components: list[RecordComponentResponse] = Field(default_factory=list)


class PayrollRecordListResponse(BaseModel):
    """Schema for listing a run's records."""

    items: list[PayrollRecordResponse]
    total: int


# ============================================================================
# Summary and live preview schemas
# ============================================================================


class PeriodGroupResponse(BaseModel):
    """Employees sharing one effective period."""

    start_date: date | None = None
    end_date: date | None = None
    uses_custom_cycle: bool
    employee_count: int


class RunSummaryResponse(BaseModel):
    """Schema for a run summary."""

    run_id: UUID
    run_number: str
    run_status: str
    period_start_date: date
    period_end_date: date
    total_employees: int
    processed_employees: int
    error_employees: int
    total_gross_amount: Decimal
    total_deductions_amount: Decimal
    total_net_amount: Decimal
    records_by_status: dict[str, int]
    cycle_summary: dict[str, int]
    period_groups: list[PeriodGroupResponse]


class LivePreviewResponse(BaseModel):
    """Schema for a live payroll preview; values change as time passes."""

    as_of: datetime
    earned: dict[str, Any]
    gross_salary: Decimal
    total_deductions: Decimal
    total_taxes: Decimal
    net_salary: Decimal
    components: list[dict[str, Any]]


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str
