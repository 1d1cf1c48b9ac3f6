"""Working-calendar resolution: holidays, weekend working days and day counts."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.calculators.types import (
    ClientWeekendSetting,
    DayType,
    WeekendWorkingConfig,
    WorkingDaysResult,
)
from attendance_payroll.models import Employee, Holiday
from attendance_payroll.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in [start, end]."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def is_weekend_working(
    day_type: DayType,
    employee_config: WeekendWorkingConfig,
    client_setting: ClientWeekendSetting,
) -> bool:
    """Resolve whether a weekend day is worked.

    The employee's own config for that day wins; otherwise the client-wide
    ``weekend_working_days`` setting applies.
    """
    if not day_type.is_weekend:
        return True
    day_config = employee_config.for_day(day_type)
    if day_config is not None:
        return day_config.working
    return client_setting.is_working(day_type)


class WorkingCalendar:
    """Determines holidays and working days for a client and date range.

    Holidays and settings are fetched once per call and every day is then
    resolved in memory.
    """

    def __init__(self, session: AsyncSession, settings: SettingsService | None = None):
        self.session = session
        self.settings = settings or SettingsService(session)

    async def get_holidays_in_period(
        self,
        client_id: UUID,
        start_date: date,
        end_date: date,
        department_id: UUID | None = None,
        include_optional_holidays: bool = True,
    ) -> list[Holiday]:
        """Holidays applicable to the client (and department) in the range."""
        result = await self.session.execute(
            select(Holiday)
            .where(
                Holiday.client_id == client_id,
                Holiday.holiday_date >= start_date,
                Holiday.holiday_date <= end_date,
            )
            .order_by(Holiday.holiday_date)
        )
        holidays = []
        for holiday in result.scalars().all():
            if holiday.is_optional and not include_optional_holidays:
                continue
            if not holiday.applies_to_department(department_id):
                continue
            holidays.append(holiday)
        return holidays

    async def is_holiday(
        self,
        client_id: UUID,
        on_date: date,
        department_id: UUID | None = None,
    ) -> Holiday | None:
        """Return the holiday on ``on_date`` honoring department scoping, or None."""
        holidays = await self.get_holidays_in_period(client_id, on_date, on_date, department_id)
        return holidays[0] if holidays else None

    async def get_employee_weekend_config(self, employee_id: UUID | None) -> WeekendWorkingConfig:
        if employee_id is None:
            return WeekendWorkingConfig()
        raw = await self.session.scalar(
            select(Employee.weekend_working_config).where(Employee.id == employee_id)
        )
        return WeekendWorkingConfig.from_json(raw)

    async def calculate_working_days(
        self,
        client_id: UUID,
        start_date: date,
        end_date: date,
        department_id: UUID | None = None,
        include_optional_holidays: bool = False,
        employee_id: UUID | None = None,
    ) -> WorkingDaysResult:
        """Count working days in [start_date, end_date].

        A holiday never counts as a working day, even on a weekend that is
        configured as working.
        """
        result = WorkingDaysResult()
        if end_date < start_date:
            return result

        holidays = await self.get_holidays_in_period(
            client_id,
            start_date,
            end_date,
            department_id,
            include_optional_holidays=include_optional_holidays,
        )
        holidays_by_date: dict[date, Holiday] = {}
        for holiday in holidays:
            holidays_by_date.setdefault(holiday.holiday_date, holiday)

        client_setting = await self.settings.weekend_setting(client_id)
        employee_config = await self.get_employee_weekend_config(employee_id)

        for day in iter_days(start_date, end_date):
            result.total_days += 1
            day_type = DayType.from_date(day)

            holiday = holidays_by_date.get(day)
            if holiday is not None:
                result.holiday_count += 1
                result.holidays.append(holiday)
                continue

            if day_type.is_weekend:
                result.weekend_days += 1
                if is_weekend_working(day_type, employee_config, client_setting):
                    result.working_days += 1
                    result.weekend_working_days += 1
                    if day_type is DayType.SATURDAY:
                        result.working_saturdays += 1
                    else:
                        result.working_sundays += 1
            else:
                result.working_days += 1

        logger.debug(
            "Working days for client %s %s..%s (employee %s): %s working, %s holidays",
            client_id,
            start_date,
            end_date,
            employee_id,
            result.working_days,
            result.holiday_count,
        )
        return result

    async def calculate_department_working_days(
        self,
        client_id: UUID,
        start_date: date,
        end_date: date,
        department_ids: list[UUID | None],
    ) -> tuple[dict[UUID | None, WorkingDaysResult], WorkingDaysResult]:
        """Working days per department plus the most restrictive result."""
        by_department: dict[UUID | None, WorkingDaysResult] = {}
        for department_id in department_ids:
            if department_id not in by_department:
                by_department[department_id] = await self.calculate_working_days(
                    client_id, start_date, end_date, department_id
                )
        if not by_department:
            consolidated = await self.calculate_working_days(client_id, start_date, end_date)
            return {}, consolidated
        consolidated = min(by_department.values(), key=lambda r: r.working_days)
        return by_department, consolidated
