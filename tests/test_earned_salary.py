"""Tests for the earned-salary engine.

February 2026 has 20 weekdays. With a base salary of 80,000 and an 8 hour
day, the daily salary is 4,000 and the hourly rate 500.
"""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from attendance_payroll.calculators.earned_salary import (
    SOURCE_LIVE_SESSION,
    SOURCE_PAID_LEAVE,
    EarnedSalaryEngine,
    decompose_shortfall,
)
from attendance_payroll.calculators.types import DayType
from attendance_payroll.errors import PayrollConfigurationError
from attendance_payroll.models import PayrollRecord
from attendance_payroll.services.payroll_run_service import PayrollRunService

from conftest import AFTER_FEBRUARY, fixed_clock

FEB_4 = date(2026, 2, 4)


async def draft_record(session, client, period, employee) -> PayrollRecord:
    result = await PayrollRunService(session).create_payroll_run(client.id, period.id)
    return await session.scalar(
        select(PayrollRecord).where(
            PayrollRecord.run_id == result.data["run_id"],
            PayrollRecord.employee_id == employee.id,
        )
    )


def engine_at(session, moment: datetime = AFTER_FEBRUARY, events=None) -> EarnedSalaryEngine:
    return EarnedSalaryEngine(session, clock=fixed_clock(moment), events=events)


class TestDecomposeShortfall:
    """Cause split always sums to the total."""

    def test_parts_capped_by_total(self):
        assert decompose_shortfall(Decimal("1000"), Decimal("800"), Decimal("500")) == (
            Decimal("800.00"),
            Decimal("200.00"),
            Decimal("0.00"),
        )

    def test_remainder_is_absence(self):
        unpaid, variance, absent = decompose_shortfall(Decimal("5000"), Decimal("1000"), Decimal("500"))
        assert absent == Decimal("3500.00")
        assert unpaid + variance + absent == Decimal("5000.00")

    def test_negative_inputs(self):
        assert decompose_shortfall(Decimal("-1"), Decimal("-5"), Decimal("0")) == (
            Decimal("0.00"),
            Decimal("0.00"),
            Decimal("0.00"),
        )


class TestCompletedPeriod:
    """Calculation after the period has ended."""

    async def test_full_attendance_has_no_deduction(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert result.total == Decimal("0")
        assert result.expected_salary == Decimal("80000.00")
        assert result.earned_salary == Decimal("80000.00")
        assert result.calculation_end_date == date(2026, 2, 28)
        assert result.breakdown_by_day_type[DayType.WEEKDAY].expected_hours == Decimal("160")
        assert result.is_live_preview is False

    async def test_unpaid_leave_day(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, skip=(FEB_4,))
        await seed.leave(employee, FEB_4, is_paid=False)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert result.total == Decimal("4000.00")
        assert result.earned_salary == Decimal("76000.00")
        assert result.shortfall_by_cause.unpaid_leave == Decimal("4000.00")
        assert result.shortfall_by_cause.time_variance == Decimal("0")
        assert result.shortfall_by_cause.absent_days == Decimal("0")
        assert result.shortfall_by_cause.unpaid_leave_hours == Decimal("8")

    async def test_absent_day(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, skip=(FEB_4,))
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert result.total == Decimal("4000.00")
        assert result.shortfall_by_cause.absent_days == Decimal("4000.00")

    async def test_short_day_is_time_variance(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, skip=(FEB_4,))
        await seed.attendance(employee, FEB_4, hours=7)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert result.total == Decimal("500.00")
        assert result.shortfall_by_cause.time_variance == Decimal("500.00")
        assert result.shortfall_by_cause.time_variance_hours == Decimal("1")

    async def test_paid_leave_counts_as_earned(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, skip=(FEB_4,))
        await seed.leave(employee, FEB_4, is_paid=True)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert result.total == Decimal("0")
        assert result.earnings_by_source[SOURCE_PAID_LEAVE].amount == Decimal("4000.00")

    async def test_half_day_leave_decomposition(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, skip=(FEB_4,))
        await seed.attendance(employee, FEB_4, hours=4)
        await seed.leave(employee, FEB_4, duration="half_day")
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)
        shortfall = result.shortfall_by_cause

        assert result.total == Decimal("2000.00")
        assert shortfall.unpaid_leave == Decimal("2000.00")
        assert shortfall.unpaid_leave + shortfall.time_variance + shortfall.absent_days == result.total

    async def test_leave_on_holiday_ignored(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.holiday(client, FEB_4)
        await seed.full_attendance(employee, skip=(FEB_4,))
        await seed.leave(employee, FEB_4, is_paid=False)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert record.weekday_working_days == 19
        assert result.shortfall_by_cause.unpaid_leave == Decimal("0")
        assert result.total == Decimal("0")

    async def test_pending_leave_ignored(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, skip=(FEB_4,))
        await seed.leave(employee, FEB_4, status="pending")
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert result.shortfall_by_cause.unpaid_leave == Decimal("0")
        assert result.shortfall_by_cause.absent_days == Decimal("4000.00")

    async def test_attendance_does_not_affect_salary(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client, attendance_affects_salary=False)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert result.attendance_applied is False
        assert result.total == Decimal("0")
        assert result.earned_salary == Decimal("80000.00")

    async def test_more_attendance_never_increases_deduction(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, end=date(2026, 2, 20))
        record = await draft_record(session, client, period, employee)
        engine = engine_at(session)

        before = await engine.calculate_for_record(record)
        await seed.attendance(employee, date(2026, 2, 23))
        after = await engine.calculate_for_record(record)

        assert after.total <= before.total
        assert before.total - after.total == Decimal("4000.00")

    async def test_overtime_hours_by_kind(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.holiday(client, date(2026, 2, 5))
        await seed.attendance(employee, date(2026, 2, 2), overtime=2)
        await seed.attendance(employee, date(2026, 2, 5), overtime=3)
        await seed.attendance(employee, date(2026, 2, 7), overtime=1)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_for_record(record)

        assert result.overtime_hours == {
            "weekday": Decimal("2"),
            "holiday": Decimal("3"),
            "weekend": Decimal("1"),
        }


class TestOpenPeriod:
    """Calculation while the period is still running."""

    async def test_expected_only_through_today(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session, datetime(2026, 2, 10, 12, 0)).calculate_for_record(record)

        # 2-6 and 9-10 February
        assert result.breakdown_by_day_type[DayType.WEEKDAY].working_days == 7
        assert result.expected_salary == Decimal("28000.00")
        assert result.total == Decimal("0")

    async def test_open_check_in_without_live_session(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, end=date(2026, 2, 9))
        await seed.attendance(employee, date(2026, 2, 10), checked_out=False)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session, datetime(2026, 2, 10, 13, 0)).calculate_for_record(record)

        assert result.live_session is None
        assert result.total == Decimal("4000.00")

    async def test_live_session_preview(self, session, seed, events, run_log):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, end=date(2026, 2, 9))
        await seed.attendance(employee, date(2026, 2, 10), check_in=time(9, 0), checked_out=False)
        record = await draft_record(session, client, period, employee)

        engine = engine_at(session, datetime(2026, 2, 10, 13, 0), events=events)
        result = await engine.calculate_for_record(record, include_live_session=True)

        assert result.is_live_preview is True
        assert result.live_session is not None
        assert result.expected_through == date(2026, 2, 9)
        assert result.earnings_by_source[SOURCE_LIVE_SESSION].hours == Decimal("4")
        assert result.earnings_by_source[SOURCE_LIVE_SESSION].amount == Decimal("2000.00")
        assert result.total == Decimal("0")
        assert "earned_salary_calculated" in run_log.names()

    async def test_late_check_in_shows_in_live_preview(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee, end=date(2026, 2, 9))
        await seed.attendance(employee, date(2026, 2, 10), check_in=time(10, 0), checked_out=False)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session, datetime(2026, 2, 10, 13, 0)).calculate_for_record(
            record, include_live_session=True
        )

        # Scheduled from 09:00, checked in at 10:00
        assert result.live_session.expected_hours - result.live_session.actual_hours == Decimal("1")
        assert result.total == Decimal("500.00")


class TestLookup:
    """Lookup by employee and run."""

    async def test_calculate_earned_salary(self, session, seed):
        client = await seed.client()
        period = await seed.period(client)
        employee = await seed.employee(client)
        await seed.full_attendance(employee)
        record = await draft_record(session, client, period, employee)

        result = await engine_at(session).calculate_earned_salary(employee.id, record.run_id)

        assert result.employee_id == employee.id
        assert Decimal(result.to_dict()["total"]) == 0

    async def test_missing_record(self, session, seed):
        with pytest.raises(PayrollConfigurationError):
            await engine_at(session).calculate_earned_salary(uuid4(), uuid4())
