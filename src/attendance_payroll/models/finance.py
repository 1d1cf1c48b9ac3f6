"""Employee financial records and employee-level pay components."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from attendance_payroll.models.base import Base, Money, UpdatedAtMixin, uuid_pk


class EmployeeLoan(Base, UpdatedAtMixin):
    """Loan repaid through fixed monthly payroll deductions."""

    __tablename__ = "employee_loans"

    id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    loan_type: Mapped[str] = mapped_column(String(50), default="personal", nullable=False)
    loan_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    monthly_deduction: Mapped[Decimal] = mapped_column(Money, nullable=False)
    remaining_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)


class EmployeeAdvance(Base, UpdatedAtMixin):
    """Salary advance recovered over one or more payroll periods."""

    __tablename__ = "employee_advances"

    id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    advance_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    deduction_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    deduction_months: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    monthly_deduction: Mapped[Decimal] = mapped_column(Money, nullable=False)
    remaining_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_deducted: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="approved", nullable=False)


class EmployeeBonus(Base, UpdatedAtMixin):
    """One-off bonus; ``payment_method='next_payroll'`` bonuses are paid by a run."""

    __tablename__ = "employee_bonuses"

    id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    bonus_type: Mapped[str] = mapped_column(String(50), default="performance", nullable=False)
    bonus_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), default="next_payroll", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="approved", nullable=False)
    paid_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class EmployeeAllowance(Base, UpdatedAtMixin):
    """Legacy per-employee allowance row."""

    __tablename__ = "employee_allowances"

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    allowance_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class EmployeeDeduction(Base, UpdatedAtMixin):
    """Legacy per-employee deduction row."""

    __tablename__ = "employee_deductions"

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    deduction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    is_percentage: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class EmployeePayComponent(Base, UpdatedAtMixin):
    """Employee-specific allowance or deduction.

    ``amount`` is a literal value, or a percentage of the earned base when
    ``is_percentage`` is set. Recurring deductions count down
    ``remaining_installments`` and deactivate at zero.
    """

    __tablename__ = "employee_pay_components"

    id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    component_code: Mapped[str] = mapped_column(String(50), nullable=False)
    component_name: Mapped[str] = mapped_column(String(255), nullable=False)
    component_type: Mapped[str] = mapped_column(String(20), nullable=False)  # earning | deduction
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    is_percentage: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    remaining_installments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
