"""Tests for per-record rate pre-computation."""

from datetime import date, time
from decimal import Decimal

from attendance_payroll.calculators.rate_precompute import RatePrecomputer, derive_rate_block
from attendance_payroll.calculators.types import DayType, EmployeePeriod, WorkingDaysResult

FEBRUARY = EmployeePeriod(date(2026, 2, 1), date(2026, 2, 28))


class TestDeriveRateBlock:
    """Pure rate arithmetic."""

    def test_rates_from_days_and_hours(self):
        days = WorkingDaysResult(working_days=20)
        hours = {DayType.WEEKDAY: Decimal("8"), DayType.SATURDAY: Decimal("0"), DayType.SUNDAY: Decimal("0")}

        block = derive_rate_block(Decimal("80000"), days, hours)

        assert block.daily_salary == Decimal("4000.0000")
        assert block.weekday_hourly_rate == Decimal("500.0000")
        assert block.saturday_hourly_rate == Decimal("0")
        assert block.weekday_working_days == 20

    def test_no_working_days(self):
        hours = {t: Decimal("8") for t in DayType}
        block = derive_rate_block(Decimal("80000"), WorkingDaysResult(), hours)

        assert block.daily_salary == Decimal("0")
        assert block.weekday_hourly_rate == Decimal("0")


class TestRatePrecomputer:
    """Daily hours resolution order."""

    async def test_client_setting_fallback(self, session, seed):
        client = await seed.client()
        await seed.setting(client, "working_hours_per_day", 10)
        employee = await seed.employee(client, in_time=None, out_time=None)

        result = await RatePrecomputer(session).precompute(employee, FEBRUARY)

        assert result.hours_source[DayType.WEEKDAY] == "client_setting"
        assert result.rate_block.weekday_daily_hours == Decimal("10")
        assert result.rate_block.weekday_hourly_rate == Decimal("400.0000")
        assert result.hours_source[DayType.SATURDAY] == "not_working"

    async def test_employee_schedule(self, session, seed):
        client = await seed.client()
        employee = await seed.employee(client, in_time=time(9, 0), out_time=time(17, 0))

        result = await RatePrecomputer(session).precompute(employee, FEBRUARY)

        assert result.hours_source[DayType.WEEKDAY] == "employee_schedule"
        assert result.rate_block.daily_salary == Decimal("4000.0000")
        assert result.rate_block.weekday_hourly_rate == Decimal("500.0000")
        assert result.working_days.working_days == 20

    async def test_attendance_schedule_wins(self, session, seed):
        client = await seed.client()
        employee = await seed.employee(client, in_time=time(9, 0), out_time=time(18, 0))
        await seed.attendance(employee, date(2026, 2, 3))

        result = await RatePrecomputer(session).precompute(employee, FEBRUARY)

        assert result.hours_source[DayType.WEEKDAY] == "attendance"
        assert result.rate_block.weekday_daily_hours == Decimal("8")

    async def test_employee_weekend_config(self, session, seed):
        client = await seed.client()
        employee = await seed.employee(
            client,
            weekend_working_config={"saturday": {"working": True, "in_time": "09:00", "out_time": "13:00"}},
        )

        block = (await RatePrecomputer(session).precompute(employee, FEBRUARY)).rate_block

        assert block.working_saturdays == 4
        assert block.total_working_days == 24
        assert block.saturday_daily_hours == Decimal("4")
        assert block.daily_salary == Decimal("3333.3333")
        assert block.saturday_hourly_rate == Decimal("833.3333")
        assert block.sunday_hourly_rate == Decimal("0")

    async def test_client_weekend_uses_weekday_hours(self, session, seed):
        client = await seed.client()
        await seed.setting(client, "weekend_working_days", {"saturday_working": True, "sunday_working": False})
        employee = await seed.employee(client)

        result = await RatePrecomputer(session).precompute(employee, FEBRUARY)

        assert result.rate_block.saturday_daily_hours == Decimal("8")
        assert result.rate_block.sunday_daily_hours == Decimal("0")
        assert result.hours_source[DayType.SATURDAY] == "employee_schedule"
