"""Earned-salary engine: expected vs actual hours up to a cutoff.

The deduction is the shortfall against what the employee was expected to
have earned *so far*, never against the full-period base salary:

    expected_salary = sum(expected_hours[t] * hourly_rate[t])
    earned_salary   = sum(actual_hours[t] * hourly_rate[t])
    deduction       = max(0, expected_salary - earned_salary)

for day types t in weekday/saturday/sunday. Rates and daily hours come from
the record's rate block and are never recomputed here.

With ``include_live_session`` the engine also counts today's open check-in
up to the clock's current instant. Such results change as time passes and
are flagged ``is_live_preview``; callers must present them as a preview.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.calculators.line_builder import ComponentLineBuilder
from attendance_payroll.calculators.types import (
    SECONDS_PER_HOUR,
    ZERO,
    DayType,
    DayTypeBreakdown,
    EarnedSalaryResult,
    EmployeePeriod,
    LiveSession,
    RateBlock,
    ShortfallBreakdown,
    SourceEarnings,
    WeekendWorkingConfig,
    empty_by_day_type,
    hours_between,
)
from attendance_payroll.calculators.working_calendar import (
    WorkingCalendar,
    is_weekend_working,
    iter_days,
)
from attendance_payroll.errors import PayrollConfigurationError
from attendance_payroll.models import (
    AttendanceRecord,
    Employee,
    Holiday,
    LeaveRequest,
    PayrollPeriod,
    PayrollRecord,
    PayrollRun,
)
from attendance_payroll.run_log import PayrollEventLogger
from attendance_payroll.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

SOURCE_ATTENDANCE = "attendance"
SOURCE_PAID_LEAVE = "paid_leave"
SOURCE_LIVE_SESSION = "live_session"


@dataclass
class _HourTally:
    """Working accumulators for one calculation."""

    attendance: dict[DayType, Decimal] = field(default_factory=empty_by_day_type)
    paid_leave: dict[DayType, Decimal] = field(default_factory=empty_by_day_type)
    unpaid_leave: dict[DayType, Decimal] = field(default_factory=empty_by_day_type)
    time_variance: dict[DayType, Decimal] = field(default_factory=empty_by_day_type)
    overtime: dict[str, Decimal] = field(default_factory=dict)

    def add_overtime(self, kind: str, hours: Decimal) -> None:
        if hours > 0:
            self.overtime[kind] = self.overtime.get(kind, ZERO) + hours


def _weighted(hours: dict[DayType, Decimal], rates: RateBlock) -> Decimal:
    return sum((hours[t] * rates.hourly_rate(t) for t in DayType), ZERO)


def decompose_shortfall(
    total: Decimal,
    unpaid_leave: Decimal,
    time_variance: Decimal,
) -> tuple[Decimal, Decimal, Decimal]:
    """Split ``total`` into unpaid-leave, time-variance and absence parts.

    Each part is capped by what is left of the total, so the three always
    sum to ``total`` exactly.
    """
    cents = ComponentLineBuilder.round_to_cents
    total = cents(max(ZERO, total))
    unpaid = min(cents(max(ZERO, unpaid_leave)), total)
    variance = min(cents(max(ZERO, time_variance)), total - unpaid)
    absent = total - unpaid - variance
    return unpaid, variance, absent


def leave_hours_for_day(leave: LeaveRequest, daily_hours: Decimal) -> Decimal:
    """Hours one leave day stands for."""
    duration = (leave.leave_duration or "full_day").lower()
    if duration == "half_day":
        return daily_hours / 2
    if duration == "short_leave":
        if leave.start_time is None or leave.end_time is None:
            return ZERO
        return hours_between(leave.start_time, leave.end_time)
    return daily_hours


class EarnedSalaryEngine:
    """Computes earned vs expected salary for one payroll record."""

    def __init__(
        self,
        session: AsyncSession,
        settings: SettingsService | None = None,
        calendar: WorkingCalendar | None = None,
        clock: Callable[[], datetime] = datetime.now,
        events: PayrollEventLogger | None = None,
    ):
        self.session = session
        self.settings = settings or SettingsService(session)
        self.calendar = calendar or WorkingCalendar(session, self.settings)
        self.clock = clock
        self.events = events or PayrollEventLogger()

    async def calculate_earned_salary(
        self,
        employee_id: UUID,
        run_id: UUID,
        base_salary: Decimal | None = None,
        include_live_session: bool = False,
    ) -> EarnedSalaryResult:
        """Earned salary for an employee's record in a run.

        Raises PayrollConfigurationError when the record or the run's period
        is missing.
        """
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
        return await self.calculate_for_record(
            record,
            base_salary=base_salary,
            include_live_session=include_live_session,
        )

    async def calculate_for_record(
        self,
        record: PayrollRecord,
        base_salary: Decimal | None = None,
        include_live_session: bool = False,
    ) -> EarnedSalaryResult:
        """Earned salary for an already loaded record."""
        now = self.clock()
        today = now.date()
        client_id, period = await self._resolve_period(record)
        employee = await self.session.get(Employee, record.employee_id)
        if employee is None:
            raise PayrollConfigurationError(f"Employee not found: {record.employee_id}", record.employee_id)

        rates = RateBlock.from_record(record)
        base = record.base_salary if base_salary is None else base_salary
        calculation_end = min(today, period.end_date)

        live: LiveSession | None = None
        if include_live_session and period.contains(today):
            live = await self._live_session(employee, today, now)
        expected_through = calculation_end - timedelta(days=1) if live else calculation_end

        holidays = await self.calendar.get_holidays_in_period(
            client_id,
            period.start_date,
            period.end_date,
            employee.department_id,
            include_optional_holidays=True,
        )
        any_holiday_by_date = {h.holiday_date: h for h in holidays}
        # Optional holidays are ordinary working days for expected hours
        holiday_by_date = {h.holiday_date: h for h in holidays if not h.is_optional}

        tally = _HourTally()
        await self._tally_attendance(
            employee.id, period, calculation_end, rates, holiday_by_date, any_holiday_by_date, tally
        )

        if not record.attendance_affects_salary:
            return self._unaffected_result(
                record, period, calculation_end, expected_through, base, rates, tally, live, include_live_session
            )

        await self._tally_leave(employee, client_id, period, expected_through, rates, holiday_by_date, tally)
        expected_days = await self._expected_day_counts(
            client_id, employee, period, expected_through, rates
        )

        breakdown: dict[DayType, DayTypeBreakdown] = {}
        round4 = ComponentLineBuilder.round_internal
        cents = ComponentLineBuilder.round_to_cents
        for day_type in DayType:
            daily = rates.daily_hours(day_type)
            rate = rates.hourly_rate(day_type)
            expected_hours = expected_days[day_type] * daily
            actual_hours = tally.attendance[day_type] + tally.paid_leave[day_type]
            if live is not None and live.day_type is day_type:
                expected_hours += live.expected_hours
                actual_hours += live.actual_hours
            breakdown[day_type] = DayTypeBreakdown(
                day_type=day_type,
                working_days=expected_days[day_type],
                daily_hours=daily,
                hourly_rate=rate,
                expected_hours=round4(expected_hours),
                actual_hours=round4(actual_hours),
                expected_salary=cents(expected_hours * rate),
                earned_salary=cents(actual_hours * rate),
            )

        expected_salary = sum((b.expected_salary for b in breakdown.values()), ZERO)
        earned_salary = sum((b.earned_salary for b in breakdown.values()), ZERO)
        total = max(ZERO, expected_salary - earned_salary)

        unpaid, variance, absent = decompose_shortfall(
            total,
            _weighted(tally.unpaid_leave, rates),
            _weighted(tally.time_variance, rates),
        )
        shortfall = ShortfallBreakdown(
            unpaid_leave=unpaid,
            time_variance=variance,
            absent_days=absent,
            unpaid_leave_hours=round4(sum(tally.unpaid_leave.values(), ZERO)),
            time_variance_hours=round4(sum(tally.time_variance.values(), ZERO)),
        )

        live_hours = live.actual_hours if live else ZERO
        live_amount = live.actual_hours * rates.hourly_rate(live.day_type) if live else ZERO
        earnings_by_source = {
            SOURCE_ATTENDANCE: SourceEarnings(
                hours=round4(sum(tally.attendance.values(), ZERO)),
                amount=cents(_weighted(tally.attendance, rates)),
            ),
            SOURCE_PAID_LEAVE: SourceEarnings(
                hours=round4(sum(tally.paid_leave.values(), ZERO)),
                amount=cents(_weighted(tally.paid_leave, rates)),
            ),
            SOURCE_LIVE_SESSION: SourceEarnings(hours=round4(live_hours), amount=cents(live_amount)),
        }

        result = EarnedSalaryResult(
            employee_id=record.employee_id,
            run_id=record.run_id,
            period=period,
            calculation_end_date=calculation_end,
            expected_through=expected_through,
            base_salary=base,
            total=total,
            earned_salary=earned_salary,
            expected_salary=expected_salary,
            breakdown_by_day_type=breakdown,
            earnings_by_source=earnings_by_source,
            shortfall_by_cause=shortfall,
            live_session=live,
            is_live_preview=include_live_session,
            overtime_hours=tally.overtime,
        )
        self.events.debug(
            "earned_salary_calculated",
            run_id=record.run_id,
            employee_id=record.employee_id,
            expected_salary=expected_salary,
            earned_salary=earned_salary,
            deduction=total,
            live=live is not None,
        )
        return result

    async def _resolve_period(self, record: PayrollRecord) -> tuple[UUID, EmployeePeriod]:
        row = (
            await self.session.execute(
                select(PayrollRun.client_id, PayrollPeriod)
                .join(PayrollPeriod, PayrollPeriod.id == PayrollRun.period_id)
                .where(PayrollRun.id == record.run_id)
            )
        ).one_or_none()
        if row is None:
            raise PayrollConfigurationError(
                f"Payroll period not found for run {record.run_id}", record.employee_id
            )
        client_id, payroll_period = row
        if record.employee_period_start_date and record.employee_period_end_date:
            period = EmployeePeriod(
                start_date=record.employee_period_start_date,
                end_date=record.employee_period_end_date,
                uses_custom_cycle=record.uses_custom_cycle,
            )
        else:
            period = EmployeePeriod(
                start_date=payroll_period.period_start_date,
                end_date=payroll_period.period_end_date,
            )
        return client_id, period

    async def _live_session(self, employee: Employee, today: date, now: datetime) -> LiveSession | None:
        """Today's open check-in, if there is one."""
        row = await self.session.scalar(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee.id,
                AttendanceRecord.attendance_date == today,
                AttendanceRecord.check_in_time.is_not(None),
                AttendanceRecord.check_out_time.is_(None),
            )
            .limit(1)
        )
        if row is None or row.check_in_time is None:
            return None

        check_in = datetime.combine(today, row.check_in_time)
        scheduled_time: time | None = row.scheduled_in_time or employee.in_time
        scheduled_in = datetime.combine(today, scheduled_time) if scheduled_time else None
        as_of = now.replace(tzinfo=None)

        actual_seconds = max(0.0, (as_of - check_in).total_seconds())
        expected_start = scheduled_in or check_in
        expected_seconds = max(0.0, (as_of - expected_start).total_seconds())
        return LiveSession(
            day_type=DayType.from_weekend_code(row.is_weekend, today),
            check_in=check_in,
            scheduled_in=scheduled_in,
            as_of=as_of,
            actual_hours=Decimal(str(actual_seconds)) / SECONDS_PER_HOUR,
            expected_hours=Decimal(str(expected_seconds)) / SECONDS_PER_HOUR,
        )

    async def _tally_attendance(
        self,
        employee_id: UUID,
        period: EmployeePeriod,
        calculation_end: date,
        rates: RateBlock,
        holiday_by_date: dict[date, Holiday],
        any_holiday_by_date: dict[date, Holiday],
        tally: _HourTally,
    ) -> None:
        """Completed attendance rows: payable hours, time variance and overtime."""
        if calculation_end < period.start_date:
            return
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.attendance_date >= period.start_date,
                AttendanceRecord.attendance_date <= calculation_end,
                AttendanceRecord.check_out_time.is_not(None),
            )
            .order_by(AttendanceRecord.attendance_date)
        )
        for row in result.scalars().all():
            day_type = DayType.from_weekend_code(row.is_weekend, row.attendance_date)
            payable = Decimal(row.payable_duration or 0) / SECONDS_PER_HOUR
            tally.attendance[day_type] += payable

            if row.attendance_date not in holiday_by_date:
                expected_daily = rates.daily_hours(day_type)
                tally.time_variance[day_type] += max(ZERO, expected_daily - payable)

            overtime = Decimal(str(row.overtime_hours or 0))
            holiday = any_holiday_by_date.get(row.attendance_date)
            if holiday is not None:
                tally.add_overtime("optional_holiday" if holiday.is_optional else "holiday", overtime)
            elif day_type.is_weekend:
                tally.add_overtime("weekend", overtime)
            else:
                tally.add_overtime("weekday", overtime)

    async def _tally_leave(
        self,
        employee: Employee,
        client_id: UUID,
        period: EmployeePeriod,
        expected_through: date,
        rates: RateBlock,
        holiday_by_date: dict[date, Holiday],
        tally: _HourTally,
    ) -> None:
        """Approved leave hours up to the expected cutoff, holidays excluded."""
        if expected_through < period.start_date:
            return
        result = await self.session.execute(
            select(LeaveRequest).where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status == "approved",
                LeaveRequest.start_date <= expected_through,
                LeaveRequest.end_date >= period.start_date,
            )
        )
        leaves = result.scalars().all()
        if not leaves:
            return

        weekend_config = WeekendWorkingConfig.from_json(employee.weekend_working_config)
        client_weekend = await self.settings.weekend_setting(client_id)

        for leave in leaves:
            first = max(leave.start_date, period.start_date)
            last = min(leave.end_date, expected_through)
            for day in iter_days(first, last):
                if day in holiday_by_date:
                    continue
                day_type = DayType.from_date(day)
                if not is_weekend_working(day_type, weekend_config, client_weekend):
                    continue
                hours = leave_hours_for_day(leave, rates.daily_hours(day_type))
                if leave.is_paid:
                    tally.paid_leave[day_type] += hours
                else:
                    tally.unpaid_leave[day_type] += hours

    async def _expected_day_counts(
        self,
        client_id: UUID,
        employee: Employee,
        period: EmployeePeriod,
        expected_through: date,
        rates: RateBlock,
    ) -> dict[DayType, int]:
        """Working days per day type from period start through the expected cutoff."""
        if expected_through >= period.end_date:
            return {t: rates.working_days(t) for t in DayType}
        if expected_through < period.start_date:
            return {t: 0 for t in DayType}
        partial = await self.calendar.calculate_working_days(
            client_id,
            period.start_date,
            expected_through,
            department_id=employee.department_id,
            employee_id=employee.id,
        )
        return {t: partial.days_for(t) for t in DayType}

    def _unaffected_result(
        self,
        record: PayrollRecord,
        period: EmployeePeriod,
        calculation_end: date,
        expected_through: date,
        base: Decimal,
        rates: RateBlock,
        tally: _HourTally,
        live: LiveSession | None,
        is_live_preview: bool,
    ) -> EarnedSalaryResult:
        """Attendance does not affect salary: earned equals base, no deduction."""
        base = ComponentLineBuilder.round_to_cents(base)
        breakdown = {
            t: DayTypeBreakdown(
                day_type=t,
                working_days=rates.working_days(t),
                daily_hours=rates.daily_hours(t),
                hourly_rate=rates.hourly_rate(t),
            )
            for t in DayType
        }
        return EarnedSalaryResult(
            employee_id=record.employee_id,
            run_id=record.run_id,
            period=period,
            calculation_end_date=calculation_end,
            expected_through=expected_through,
            base_salary=base,
            total=ZERO,
            earned_salary=base,
            expected_salary=base,
            breakdown_by_day_type=breakdown,
            earnings_by_source={
                SOURCE_ATTENDANCE: SourceEarnings(),
                SOURCE_PAID_LEAVE: SourceEarnings(),
                SOURCE_LIVE_SESSION: SourceEarnings(),
            },
            shortfall_by_cause=ShortfallBreakdown(),
            live_session=live,
            is_live_preview=is_live_preview,
            attendance_applied=False,
            overtime_hours=tally.overtime,
        )
