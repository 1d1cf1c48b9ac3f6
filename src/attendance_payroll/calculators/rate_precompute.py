"""Rate pre-computation, run once per employee when a draft record is created."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.calculators.line_builder import ComponentLineBuilder
from attendance_payroll.calculators.types import (
    ZERO,
    DayType,
    EmployeePeriod,
    RateBlock,
    WeekendWorkingConfig,
    WorkingDaysResult,
    scheduled_hours,
)
from attendance_payroll.calculators.working_calendar import WorkingCalendar
from attendance_payroll.models import AttendanceRecord, Employee
from attendance_payroll.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


@dataclass
class RatePrecomputation:
    """Rate block plus the inputs it was derived from."""

    rate_block: RateBlock
    working_days: WorkingDaysResult
    hours_source: dict[DayType, str]


def derive_rate_block(
    base_salary: Decimal,
    working_days: WorkingDaysResult,
    daily_hours: dict[DayType, Decimal],
) -> RateBlock:
    """Daily salary and hourly rates from day counts and daily hours.

    ``daily_salary = base / total working days`` and
    ``hourly_rate = daily_salary / daily_hours``; each is 0 when its
    denominator is 0.
    """
    round4 = ComponentLineBuilder.round_internal
    total_days = working_days.working_days
    daily_salary = round4(base_salary / total_days) if total_days > 0 else ZERO

    def hourly(day_type: DayType) -> Decimal:
        hours = daily_hours[day_type]
        if hours <= 0:
            return ZERO
        return round4(daily_salary / hours)

    return RateBlock(
        weekday_working_days=working_days.weekday_working_days,
        working_saturdays=working_days.working_saturdays,
        working_sundays=working_days.working_sundays,
        weekday_daily_hours=round4(daily_hours[DayType.WEEKDAY]),
        saturday_daily_hours=round4(daily_hours[DayType.SATURDAY]),
        sunday_daily_hours=round4(daily_hours[DayType.SUNDAY]),
        daily_salary=daily_salary,
        weekday_hourly_rate=hourly(DayType.WEEKDAY),
        saturday_hourly_rate=hourly(DayType.SATURDAY),
        sunday_hourly_rate=hourly(DayType.SUNDAY),
    )


class RatePrecomputer:
    """Derives the immutable rate block for an employee's period.

    Daily hours per day type come from, in order:
    1. the newest in-period attendance row of that day type with scheduled times
    2. the employee's ``in_time``/``out_time`` (weekday), or their
       ``weekend_working_config`` for that day (0 hours if not working)
    3. the client ``working_hours_per_day`` setting

    A weekend day with no employee-level config follows the client weekend
    setting: weekday hours if the client works that day, else 0.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: SettingsService | None = None,
        calendar: WorkingCalendar | None = None,
    ):
        self.session = session
        self.settings = settings or SettingsService(session)
        self.calendar = calendar or WorkingCalendar(session, self.settings)

    async def precompute(self, employee: Employee, period: EmployeePeriod) -> RatePrecomputation:
        """Compute the rate block for ``employee`` over ``period``."""
        working_days = await self.calendar.calculate_working_days(
            employee.client_id,
            period.start_date,
            period.end_date,
            department_id=employee.department_id,
            employee_id=employee.id,
        )
        daily_hours, sources = await self.resolve_daily_hours(employee, period)
        rate_block = derive_rate_block(employee.base_salary or ZERO, working_days, daily_hours)

        logger.debug(
            "Rate block for employee %s: daily %s, weekday rate %s (hours from %s)",
            employee.id,
            rate_block.daily_salary,
            rate_block.weekday_hourly_rate,
            sources[DayType.WEEKDAY],
        )
        return RatePrecomputation(rate_block=rate_block, working_days=working_days, hours_source=sources)

    async def resolve_daily_hours(
        self,
        employee: Employee,
        period: EmployeePeriod,
    ) -> tuple[dict[DayType, Decimal], dict[DayType, str]]:
        """Scheduled daily hours per day type and where each value came from."""
        from_attendance = await self._hours_from_attendance(employee.id, period)
        default_hours = await self.settings.working_hours_per_day(employee.client_id)
        employee_weekday = scheduled_hours(employee.in_time, employee.out_time)
        weekend_config = WeekendWorkingConfig.from_json(employee.weekend_working_config)
        client_weekend = await self.settings.weekend_setting(employee.client_id)

        hours: dict[DayType, Decimal] = {}
        sources: dict[DayType, str] = {}

        if DayType.WEEKDAY in from_attendance:
            hours[DayType.WEEKDAY] = from_attendance[DayType.WEEKDAY]
            sources[DayType.WEEKDAY] = "attendance"
        elif employee_weekday is not None:
            hours[DayType.WEEKDAY] = employee_weekday
            sources[DayType.WEEKDAY] = "employee_schedule"
        else:
            hours[DayType.WEEKDAY] = default_hours
            sources[DayType.WEEKDAY] = "client_setting"

        for day_type in (DayType.SATURDAY, DayType.SUNDAY):
            if day_type in from_attendance:
                hours[day_type] = from_attendance[day_type]
                sources[day_type] = "attendance"
                continue

            day_config = weekend_config.for_day(day_type)
            if day_config is not None:
                configured = day_config.daily_hours()
                if configured is not None:
                    hours[day_type] = configured
                    sources[day_type] = "weekend_config"
                else:
                    # Working, but no custom times
                    hours[day_type] = hours[DayType.WEEKDAY]
                    sources[day_type] = sources[DayType.WEEKDAY]
            elif client_weekend.is_working(day_type):
                hours[day_type] = hours[DayType.WEEKDAY]
                sources[day_type] = sources[DayType.WEEKDAY]
            else:
                hours[day_type] = ZERO
                sources[day_type] = "not_working"

        return hours, sources

    async def _hours_from_attendance(
        self,
        employee_id: UUID,
        period: EmployeePeriod,
    ) -> dict[DayType, Decimal]:
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.attendance_date >= period.start_date,
                AttendanceRecord.attendance_date <= period.end_date,
                AttendanceRecord.scheduled_in_time.is_not(None),
                AttendanceRecord.scheduled_out_time.is_not(None),
            )
            .order_by(AttendanceRecord.attendance_date.desc())
        )
        hours: dict[DayType, Decimal] = {}
        for row in result.scalars().all():
            day_type = DayType.from_weekend_code(row.is_weekend, row.attendance_date)
            if day_type in hours:
                continue
            duration = scheduled_hours(row.scheduled_in_time, row.scheduled_out_time)
            if duration is not None:
                hours[day_type] = duration
            if len(hours) == len(DayType):
                break
        return hours
