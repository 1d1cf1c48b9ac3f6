"""Read-only live payroll preview for an employee's record in a run."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.calculators.composition import ComposedPayroll
from attendance_payroll.calculators.earned_salary import EarnedSalaryEngine
from attendance_payroll.calculators.types import EarnedSalaryResult
from attendance_payroll.calculators.working_calendar import WorkingCalendar
from attendance_payroll.errors import PayrollConfigurationError, PayrollRunNotFoundError
from attendance_payroll.models import PayrollRecord, PayrollRun
from attendance_payroll.run_log import PayrollEventLogger
from attendance_payroll.services.financial_records import FinancialRecordsService
from attendance_payroll.services.payroll_run_service import RecordCalculator
from attendance_payroll.services.settings_service import SettingsService


@dataclass
class LivePayrollPreview:
    """Earned salary and component lines as of ``as_of``; never persisted."""

    as_of: datetime
    earned: EarnedSalaryResult
    payroll: ComposedPayroll

    def to_dict(self) -> dict[str, Any]:
        return {
            "as_of": self.as_of.isoformat(),
            "earned": self.earned.to_dict(),
            "gross_salary": str(self.payroll.gross_salary),
            "total_deductions": str(self.payroll.total_deductions),
            "total_taxes": str(self.payroll.total_taxes),
            "net_salary": str(self.payroll.net_salary),
            "components": [
                {
                    "code": line.code,
                    "name": line.name,
                    "type": line.component_type.value,
                    "category": line.category,
                    "amount": str(line.amount),
                }
                for line in self.payroll.lines
            ],
        }


class LivePayrollService:
    """Computes a record's payroll including today's open attendance session.

    Results change as the clock advances, so nothing here is written back;
    callers must not commit the session on the strength of a preview.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = datetime.now,
        events: PayrollEventLogger | None = None,
    ):
        self.session = session
        self.clock = clock
        self.events = events or PayrollEventLogger()
        settings = SettingsService(session)
        engine = EarnedSalaryEngine(
            session,
            settings,
            WorkingCalendar(session, settings),
            clock=clock,
            events=self.events,
        )
        self.calculator = RecordCalculator(
            session, settings, engine, FinancialRecordsService(session, self.events)
        )

    async def preview_employee(self, run_id: UUID, client_id: UUID, employee_id: UUID) -> LivePayrollPreview:
        """Live preview for ``employee_id``'s record in ``run_id``."""
        run_exists = await self.session.scalar(
            select(PayrollRun.id).where(PayrollRun.id == run_id, PayrollRun.client_id == client_id)
        )
        if run_exists is None:
            raise PayrollRunNotFoundError(run_id, client_id)

        record = await self.session.scalar(
            select(PayrollRecord).where(
                PayrollRecord.run_id == run_id,
                PayrollRecord.employee_id == employee_id,
            )
        )
        if record is None:
            raise PayrollConfigurationError(
                f"Payroll record not found for employee {employee_id} in run {run_id}",
                employee_id,
            )

        as_of = self.clock()
        context = await self.calculator.load_context(client_id)
        earned, payroll = await self.calculator.compute(record, context, include_live_session=True)
        self.events.debug(
            "live_preview_calculated",
            run_id=run_id,
            employee_id=employee_id,
            live=earned.live_session is not None,
            net_salary=payroll.net_salary,
        )
        return LivePayrollPreview(as_of=as_of, earned=earned, payroll=payroll)
