"""Loans, advances and bonuses feeding payroll runs."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.calculators.types import ZERO, EmployeePeriod, FinancialItem
from attendance_payroll.models import (
    EmployeeAdvance,
    EmployeeBonus,
    EmployeeLoan,
    PayrollAuditLog,
    PayrollRecord,
    PayrollRecordComponent,
)
from attendance_payroll.run_log import PayrollEventLogger

logger = logging.getLogger(__name__)

SOURCE_LOAN = "loan"
SOURCE_ADVANCE = "advance"
SOURCE_BONUS = "bonus"


@dataclass
class FinancialAdjustments:
    """Financial items due for one employee in one period."""

    loans: list[FinancialItem] = field(default_factory=list)
    advances: list[FinancialItem] = field(default_factory=list)
    bonuses: list[FinancialItem] = field(default_factory=list)

    @property
    def loan_deductions(self) -> Decimal:
        return sum((i.amount for i in self.loans), ZERO)

    @property
    def advance_deductions(self) -> Decimal:
        return sum((i.amount for i in self.advances), ZERO)

    @property
    def bonus_additions(self) -> Decimal:
        return sum((i.amount for i in self.bonuses), ZERO)

    @property
    def net_adjustment(self) -> Decimal:
        return self.bonus_additions - self.loan_deductions - self.advance_deductions


@dataclass
class BalanceUpdateSummary:
    """Counts of financial records updated when a run is processed."""

    loans_updated: int = 0
    loans_completed: int = 0
    advances_updated: int = 0
    advances_completed: int = 0
    bonuses_paid: int = 0


class FinancialRecordsService:
    """Reads period deductions/additions and applies balance updates.

    Loans deduct ``min(monthly_deduction, remaining_amount)`` while active
    and started; advances do the same once their deduction start date is
    reached; approved ``next_payroll`` bonuses effective in the period are
    paid in full.
    """

    def __init__(self, session: AsyncSession, events: PayrollEventLogger | None = None):
        self.session = session
        self.events = events or PayrollEventLogger()

    async def get_active_loans(self, employee_id: UUID, period: EmployeePeriod) -> list[EmployeeLoan]:
        result = await self.session.execute(
            select(EmployeeLoan)
            .where(
                EmployeeLoan.employee_id == employee_id,
                EmployeeLoan.status == "active",
                EmployeeLoan.start_date <= period.end_date,
                or_(EmployeeLoan.end_date.is_(None), EmployeeLoan.end_date >= period.start_date),
            )
            .order_by(EmployeeLoan.start_date)
        )
        return list(result.scalars().all())

    async def get_active_advances(self, employee_id: UUID, period: EmployeePeriod) -> list[EmployeeAdvance]:
        result = await self.session.execute(
            select(EmployeeAdvance)
            .where(
                EmployeeAdvance.employee_id == employee_id,
                EmployeeAdvance.status.in_(("approved", "paid")),
                EmployeeAdvance.deduction_start_date <= period.end_date,
                EmployeeAdvance.remaining_amount > 0,
            )
            .order_by(EmployeeAdvance.deduction_start_date)
        )
        return list(result.scalars().all())

    async def get_approved_bonuses(self, employee_id: UUID, period: EmployeePeriod) -> list[EmployeeBonus]:
        result = await self.session.execute(
            select(EmployeeBonus)
            .where(
                EmployeeBonus.employee_id == employee_id,
                EmployeeBonus.status == "approved",
                EmployeeBonus.effective_date >= period.start_date,
                EmployeeBonus.effective_date <= period.end_date,
                EmployeeBonus.payment_method == "next_payroll",
            )
            .order_by(EmployeeBonus.effective_date)
        )
        return list(result.scalars().all())

    async def get_period_adjustments(self, employee_id: UUID, period: EmployeePeriod) -> FinancialAdjustments:
        """Installments and bonuses due for ``employee_id`` in ``period``."""
        adjustments = FinancialAdjustments()

        for loan in await self.get_active_loans(employee_id, period):
            amount = min(loan.monthly_deduction, loan.remaining_amount)
            if amount > 0:
                adjustments.loans.append(
                    FinancialItem(
                        source_type=SOURCE_LOAN,
                        source_id=loan.id,
                        code="LOAN_DEDUCTION",
                        name=f"Loan Deduction ({loan.loan_type})",
                        amount=amount,
                        balance_before=loan.remaining_amount,
                    )
                )

        for advance in await self.get_active_advances(employee_id, period):
            amount = min(advance.monthly_deduction, advance.remaining_amount)
            if amount > 0:
                adjustments.advances.append(
                    FinancialItem(
                        source_type=SOURCE_ADVANCE,
                        source_id=advance.id,
                        code="ADVANCE_DEDUCTION",
                        name="Salary Advance Deduction",
                        amount=amount,
                        balance_before=advance.remaining_amount,
                    )
                )

        for bonus in await self.get_approved_bonuses(employee_id, period):
            if bonus.bonus_amount > 0:
                adjustments.bonuses.append(
                    FinancialItem(
                        source_type=SOURCE_BONUS,
                        source_id=bonus.id,
                        code="BONUS",
                        name=f"Bonus ({bonus.bonus_type})",
                        amount=bonus.bonus_amount,
                    )
                )

        return adjustments

    async def update_financial_balances(
        self,
        run_id: UUID,
        user_id: UUID | None = None,
        paid_at: datetime | None = None,
    ) -> BalanceUpdateSummary:
        """Apply a processed run's installments and bonuses to the source records.

        Driven by the run's component lines (``source_type``/``source_id``)
        on calculated records, so only amounts actually charged are applied.
        """
        result = await self.session.execute(
            select(PayrollRecord.employee_id, PayrollRecordComponent)
            .join(PayrollRecord, PayrollRecord.id == PayrollRecordComponent.record_id)
            .where(
                PayrollRecord.run_id == run_id,
                PayrollRecord.calculation_status == "calculated",
                PayrollRecordComponent.source_type.in_((SOURCE_LOAN, SOURCE_ADVANCE, SOURCE_BONUS)),
            )
        )
        summary = BalanceUpdateSummary()
        per_employee: dict[UUID, dict[str, Decimal]] = defaultdict(
            lambda: {SOURCE_LOAN: ZERO, SOURCE_ADVANCE: ZERO, SOURCE_BONUS: ZERO}
        )
        paid_at = paid_at or datetime.now()

        for employee_id, component in result.all():
            amount = component.calculated_amount
            per_employee[employee_id][component.source_type] += amount

            if component.source_type == SOURCE_LOAN:
                loan = await self.session.get(EmployeeLoan, component.source_id)
                if loan is None:
                    logger.warning("Loan %s referenced by run %s no longer exists", component.source_id, run_id)
                    continue
                loan.remaining_amount = max(ZERO, loan.remaining_amount - amount)
                loan.total_paid = (loan.total_paid or ZERO) + amount
                summary.loans_updated += 1
                if loan.remaining_amount <= 0:
                    loan.status = "completed"
                    summary.loans_completed += 1

            elif component.source_type == SOURCE_ADVANCE:
                advance = await self.session.get(EmployeeAdvance, component.source_id)
                if advance is None:
                    logger.warning("Advance %s referenced by run %s no longer exists", component.source_id, run_id)
                    continue
                advance.remaining_amount = max(ZERO, advance.remaining_amount - amount)
                advance.total_deducted = (advance.total_deducted or ZERO) + amount
                summary.advances_updated += 1
                if advance.remaining_amount <= 0:
                    advance.status = "completed"
                    summary.advances_completed += 1
                else:
                    advance.status = "paid"

            else:
                bonus = await self.session.get(EmployeeBonus, component.source_id)
                if bonus is None:
                    logger.warning("Bonus %s referenced by run %s no longer exists", component.source_id, run_id)
                    continue
                bonus.status = "paid"
                bonus.paid_date = paid_at
                summary.bonuses_paid += 1

        for employee_id, totals in per_employee.items():
            self.session.add(
                PayrollAuditLog(
                    run_id=run_id,
                    employee_id=employee_id,
                    action="financial_adjustment",
                    user_id=user_id,
                    new_value={
                        "loan_deductions": str(totals[SOURCE_LOAN]),
                        "advance_deductions": str(totals[SOURCE_ADVANCE]),
                        "bonuses": str(totals[SOURCE_BONUS]),
                        "net_adjustment": str(
                            totals[SOURCE_BONUS] - totals[SOURCE_LOAN] - totals[SOURCE_ADVANCE]
                        ),
                    },
                )
            )

        await self.session.flush()
        self.events.info(
            "financial_balances_updated",
            run_id=run_id,
            loans_updated=summary.loans_updated,
            loans_completed=summary.loans_completed,
            advances_updated=summary.advances_updated,
            advances_completed=summary.advances_completed,
            bonuses_paid=summary.bonuses_paid,
        )
        return summary

    async def get_employee_financial_summary(self, employee_id: UUID) -> dict[str, Any]:
        """Open balances for an employee."""
        loans = (
            await self.session.execute(
                select(func.count(), func.coalesce(func.sum(EmployeeLoan.remaining_amount), 0)).where(
                    EmployeeLoan.employee_id == employee_id,
                    EmployeeLoan.status == "active",
                )
            )
        ).one()
        advances = (
            await self.session.execute(
                select(func.count(), func.coalesce(func.sum(EmployeeAdvance.remaining_amount), 0)).where(
                    EmployeeAdvance.employee_id == employee_id,
                    EmployeeAdvance.status.in_(("approved", "paid")),
                    EmployeeAdvance.remaining_amount > 0,
                )
            )
        ).one()
        bonuses = (
            await self.session.execute(
                select(func.count(), func.coalesce(func.sum(EmployeeBonus.bonus_amount), 0)).where(
                    EmployeeBonus.employee_id == employee_id,
                    EmployeeBonus.status == "approved",
                )
            )
        ).one()
        return {
            "active_loans": int(loans[0]),
            "total_loan_balance": Decimal(str(loans[1])),
            "active_advances": int(advances[0]),
            "total_advance_balance": Decimal(str(advances[1])),
            "pending_bonuses": int(bonuses[0]),
            "total_pending_bonuses": Decimal(str(bonuses[1])),
        }
