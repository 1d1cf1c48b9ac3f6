"""Employee, attendance and leave models."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from attendance_payroll.models.base import Base, Hours, JSONType, Money, UpdatedAtMixin, uuid_pk


class Employee(Base, UpdatedAtMixin):
    """Employee record as maintained by the HR module."""

    __tablename__ = "employees"

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    employee_code: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    designation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("designations.id", ondelete="SET NULL"),
        nullable=True,
    )
    employee_type: Mapped[str] = mapped_column(String(30), default="permanent", nullable=False)
    employment_status: Mapped[str] = mapped_column(String(30), default="active", nullable=False)

    base_salary: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    in_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    out_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    # {"saturday": {"working": bool, "in_time": "HH:MM", "out_time": "HH:MM"}, "sunday": {...}}
    weekend_working_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    attendance_affects_salary: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    payroll_cycle_override: Mapped[str] = mapped_column(String(20), default="default", nullable=False)
    payroll_cycle_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payroll_cycle_effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"


class AttendanceRecord(Base, UpdatedAtMixin):
    """One day of attendance for an employee."""

    __tablename__ = "attendance"
    __table_args__ = (Index("ix_attendance_employee_date", "employee_id", "date"),)

    id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    attendance_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    check_in_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    check_out_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    scheduled_in_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    scheduled_out_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    # Seconds of worked time overlapping the schedule
    payable_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # MySQL DAYOFWEEK convention: 1=Sunday ... 7=Saturday
    is_weekend: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overtime_hours: Mapped[Decimal] = mapped_column(Hours, default=Decimal("0"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="present", nullable=False)


class LeaveRequest(Base, UpdatedAtMixin):
    """Leave request; only approved rows affect payroll."""

    __tablename__ = "leave_requests"

    id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    leave_type: Mapped[str] = mapped_column(String(50), default="annual", nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    leave_duration: Mapped[str] = mapped_column(String(20), default="full_day", nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    days_requested: Mapped[Decimal] = mapped_column(Numeric(5, 1), default=Decimal("1"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
