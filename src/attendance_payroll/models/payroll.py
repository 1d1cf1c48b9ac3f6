"""Payroll period, run, record and component models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_payroll.models.base import (
    Base,
    Hours,
    JSONType,
    Money,
    Rate,
    TimestampMixin,
    UpdatedAtMixin,
    uuid_pk,
)


class PayrollPeriod(Base, TimestampMixin):
    """Immutable calendar window set up outside the payroll core."""

    __tablename__ = "payroll_periods"
    __table_args__ = (
        UniqueConstraint("client_id", "period_year", "period_number", "period_type", name="uq_period"),
    )

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    period_type: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)
    period_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class PayrollRun(Base, UpdatedAtMixin):
    """One calculation attempt for a payroll period."""

    __tablename__ = "payroll_runs"
    __table_args__ = (UniqueConstraint("client_id", "run_number", name="uq_run_client_number"),)

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    run_number: Mapped[str] = mapped_column(String(100), nullable=False)
    period_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_periods.id"), nullable=False)
    run_name: Mapped[str] = mapped_column(String(255), nullable=False)
    run_type: Mapped[str] = mapped_column(String(20), default="regular", nullable=False)
    run_status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    calculation_method: Mapped[str] = mapped_column(String(20), default="advanced", nullable=False)

    total_employees: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processed_employees: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_employees: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_gross_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_deductions_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_net_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    reviewed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    processed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    calculation_started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    calculation_completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    period: Mapped[PayrollPeriod] = relationship()
    records: Mapped[list[PayrollRecord]] = relationship(
        back_populates="run",
        passive_deletes=True,
        order_by="PayrollRecord.employee_code",
    )


class PayrollRecord(Base, UpdatedAtMixin):
    """One employee's payroll snapshot within a run.

    The rate block (day counts, daily hours, daily salary, hourly rates) is
    written once when the draft record is created and is never touched by
    calculation.
    """

    __tablename__ = "payroll_records"
    __table_args__ = (UniqueConstraint("run_id", "employee_id", name="uq_record_run_employee"),)

    id: Mapped[UUID] = uuid_pk()
    run_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_runs.id", ondelete="CASCADE"), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id"), nullable=False)

    # Snapshot
    employee_code: Mapped[str] = mapped_column(String(50), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    department_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    designation_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    base_salary: Mapped[Decimal] = mapped_column(Money, nullable=False)
    attendance_affects_salary: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Employee's effective period (differs from the run period on a custom cycle)
    employee_period_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    employee_period_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    uses_custom_cycle: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Rate block
    weekday_working_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    working_saturdays: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    working_sundays: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    weekday_daily_hours: Mapped[Decimal] = mapped_column(Hours, default=Decimal("0"), nullable=False)
    saturday_daily_hours: Mapped[Decimal] = mapped_column(Hours, default=Decimal("0"), nullable=False)
    sunday_daily_hours: Mapped[Decimal] = mapped_column(Hours, default=Decimal("0"), nullable=False)
    daily_salary: Mapped[Decimal] = mapped_column(Rate, default=Decimal("0"), nullable=False)
    weekday_hourly_rate: Mapped[Decimal] = mapped_column(Rate, default=Decimal("0"), nullable=False)
    saturday_hourly_rate: Mapped[Decimal] = mapped_column(Rate, default=Decimal("0"), nullable=False)
    sunday_hourly_rate: Mapped[Decimal] = mapped_column(Rate, default=Decimal("0"), nullable=False)

    # Outputs
    earned_salary: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    attendance_deduction: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_taxes: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    taxable_income: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    calculation_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    calculation_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Payment
    payment_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    run: Mapped[PayrollRun] = relationship(back_populates="records")
    components: Mapped[list[PayrollRecordComponent]] = relationship(
        back_populates="record",
        passive_deletes=True,
    )


class PayrollRecordComponent(Base, TimestampMixin):
    """Line item attached to a payroll record; recreated on every calculation."""

    __tablename__ = "payroll_record_components"

    id: Mapped[UUID] = uuid_pk()
    record_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    component_code: Mapped[str] = mapped_column(String(50), nullable=False)
    component_name: Mapped[str] = mapped_column(String(255), nullable=False)
    component_type: Mapped[str] = mapped_column(String(20), nullable=False)
    component_category: Mapped[str] = mapped_column(String(30), nullable=False)
    calculated_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Financial record the line came from (loan, advance, bonus, employee_component)
    source_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    source_id: Mapped[UUID | None] = mapped_column(nullable=True)

    record: Mapped[PayrollRecord] = relationship(back_populates="components")


class PayrollComponent(Base, UpdatedAtMixin):
    """Client-configured earning or deduction."""

    __tablename__ = "payroll_components"

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    component_code: Mapped[str] = mapped_column(String(50), nullable=False)
    component_name: Mapped[str] = mapped_column(String(255), nullable=False)
    component_type: Mapped[str] = mapped_column(String(20), nullable=False)  # earning | deduction
    category: Mapped[str] = mapped_column(String(30), default="allowance", nullable=False)
    calculation_type: Mapped[str] = mapped_column(String(20), default="fixed", nullable=False)
    calculation_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    formula: Mapped[str | None] = mapped_column(Text, nullable=True)
    applies_to: Mapped[str] = mapped_column(String(20), default="all", nullable=False)
    applies_to_ids: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class PayrollAuditLog(Base, TimestampMixin):
    """Audit trail for run lifecycle actions; not tied by FK so it survives cancellation."""

    __tablename__ = "payroll_audit_log"

    id: Mapped[UUID] = uuid_pk()
    run_id: Mapped[UUID | None] = mapped_column(nullable=True)
    record_id: Mapped[UUID | None] = mapped_column(nullable=True)
    employee_id: Mapped[UUID | None] = mapped_column(nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    new_value: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
