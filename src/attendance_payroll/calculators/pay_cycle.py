"""Employee-specific payroll cycle resolution.

An employee on a custom cycle with cycle day 23 is paid for 23 Feb - 22 Mar
in the February run, 23 Mar - 22 Apr in the March run, and so on. A cycle
day past the end of a month clamps to that month's last day.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.calculators.types import EmployeePeriod
from attendance_payroll.errors import PayrollConfigurationError
from attendance_payroll.models import Employee, PayrollRecord

DEFAULT_CYCLE = "default"


def clamp_day(year: int, month: int, day: int) -> date:
    """Date for ``day`` in the given month, clamped to the month's last day."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last_day))


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def custom_cycle_window(anchor: date, cycle_day: int) -> EmployeePeriod:
    """Custom window starting on ``cycle_day`` of the anchor's month.

    The window ends the day before the next month's (clamped) cycle day,
    so consecutive windows never overlap and never leave a gap.
    """
    start = clamp_day(anchor.year, anchor.month, cycle_day)
    next_year, next_month = _next_month(anchor.year, anchor.month)
    end = clamp_day(next_year, next_month, cycle_day) - timedelta(days=1)
    return EmployeePeriod(start_date=start, end_date=end, uses_custom_cycle=True)


def resolve_employee_period(
    cycle_override: str | None,
    cycle_day: int | None,
    effective_from: date | None,
    run_period_start: date,
    run_period_end: date,
) -> EmployeePeriod:
    """Map a run period onto an employee's effective payroll window."""
    default = EmployeePeriod(start_date=run_period_start, end_date=run_period_end)
    if (cycle_override or DEFAULT_CYCLE) == DEFAULT_CYCLE or not cycle_day:
        return default
    # Custom cycle not active yet
    if effective_from is not None and effective_from > run_period_end:
        return default
    return custom_cycle_window(run_period_start, cycle_day)


@dataclass
class PeriodGroup:
    """Employees in a run sharing the same effective period."""

    start_date: date | None
    end_date: date | None
    uses_custom_cycle: bool
    employees: list[dict[str, Any]] = field(default_factory=list)

    @property
    def employee_count(self) -> int:
        return len(self.employees)


class PayCycleResolver:
    """Resolves employee payroll windows and reports on them per run."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def calculate_employee_period(
        self,
        employee_id: UUID,
        run_period_start: date,
        run_period_end: date,
    ) -> EmployeePeriod:
        """Effective period for one employee within a run period."""
        row = (
            await self.session.execute(
                select(
                    Employee.payroll_cycle_override,
                    Employee.payroll_cycle_day,
                    Employee.payroll_cycle_effective_from,
                ).where(Employee.id == employee_id)
            )
        ).one_or_none()
        if row is None:
            raise PayrollConfigurationError(f"Employee not found: {employee_id}", employee_id)

        return resolve_employee_period(
            row.payroll_cycle_override,
            row.payroll_cycle_day,
            row.payroll_cycle_effective_from,
            run_period_start,
            run_period_end,
        )

    async def get_unique_period_groups(self, run_id: UUID) -> list[PeriodGroup]:
        """Group a run's records by their effective period, custom cycles first."""
        result = await self.session.execute(
            select(PayrollRecord)
            .where(PayrollRecord.run_id == run_id)
            .order_by(
                PayrollRecord.uses_custom_cycle.desc(),
                PayrollRecord.employee_period_start_date,
                PayrollRecord.employee_code,
            )
        )

        groups: dict[tuple[date | None, date | None], PeriodGroup] = {}
        for record in result.scalars().all():
            key = (record.employee_period_start_date, record.employee_period_end_date)
            group = groups.get(key)
            if group is None:
                group = PeriodGroup(
                    start_date=record.employee_period_start_date,
                    end_date=record.employee_period_end_date,
                    uses_custom_cycle=record.uses_custom_cycle,
                )
                groups[key] = group
            group.employees.append(
                {
                    "id": record.employee_id,
                    "code": record.employee_code,
                    "name": record.employee_name,
                }
            )
        return list(groups.values())

    async def get_run_cycle_summary(self, run_id: UUID) -> dict[str, int]:
        """Counts of custom vs default cycle employees in a run."""
        row = (
            await self.session.execute(
                select(
                    func.count().label("total_employees"),
                    func.coalesce(
                        func.sum(case((PayrollRecord.uses_custom_cycle.is_(True), 1), else_=0)), 0
                    ).label("custom_cycle_count"),
                    func.count(func.distinct(PayrollRecord.employee_period_start_date)).label(
                        "unique_start_dates"
                    ),
                    func.count(func.distinct(PayrollRecord.employee_period_end_date)).label(
                        "unique_end_dates"
                    ),
                ).where(PayrollRecord.run_id == run_id)
            )
        ).one()
        total = int(row.total_employees or 0)
        custom = int(row.custom_cycle_count or 0)
        return {
            "total_employees": total,
            "custom_cycle_count": custom,
            "default_cycle_count": total - custom,
            "unique_start_dates": int(row.unique_start_dates or 0),
            "unique_end_dates": int(row.unique_end_dates or 0),
        }
