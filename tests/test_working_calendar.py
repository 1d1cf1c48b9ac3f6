"""Tests for working-day counting and settings resolution."""

from datetime import date
from decimal import Decimal

from attendance_payroll.calculators.types import DayType
from attendance_payroll.calculators.working_calendar import WorkingCalendar
from attendance_payroll.services.settings_service import SettingsService

FEB_START = date(2026, 2, 1)
FEB_END = date(2026, 2, 28)


class TestWorkingDays:
    """February 2026: 20 weekdays, 4 Saturdays, 4 Sundays."""

    async def test_default_weekends_off(self, session, seed):
        client = await seed.client()

        result = await WorkingCalendar(session).calculate_working_days(client.id, FEB_START, FEB_END)

        assert result.total_days == 28
        assert result.working_days == 20
        assert result.weekend_days == 8
        assert result.weekend_working_days == 0
        assert result.days_for(DayType.WEEKDAY) == 20

    async def test_holiday_is_not_a_working_day(self, session, seed):
        client = await seed.client()
        await seed.holiday(client, date(2026, 2, 4))

        result = await WorkingCalendar(session).calculate_working_days(client.id, FEB_START, FEB_END)

        assert result.working_days == 19
        assert result.holiday_count == 1
        assert result.holidays[0].holiday_date == date(2026, 2, 4)

    async def test_optional_holidays_excluded_by_default(self, session, seed):
        client = await seed.client()
        await seed.holiday(client, date(2026, 2, 4), is_optional=True)
        calendar = WorkingCalendar(session)

        excluded = await calendar.calculate_working_days(client.id, FEB_START, FEB_END)
        included = await calendar.calculate_working_days(
            client.id, FEB_START, FEB_END, include_optional_holidays=True
        )

        assert excluded.working_days == 20
        assert included.working_days == 19

    async def test_client_weekend_setting(self, session, seed):
        client = await seed.client()
        await seed.setting(client, "weekend_working_days", {"saturday_working": True, "sunday_working": False})

        result = await WorkingCalendar(session).calculate_working_days(client.id, FEB_START, FEB_END)

        assert result.working_days == 24
        assert result.working_saturdays == 4
        assert result.working_sundays == 0
        assert result.weekday_working_days == 20

    async def test_employee_config_overrides_client(self, session, seed):
        client = await seed.client()
        await seed.setting(client, "weekend_working_days", {"saturday_working": True})
        employee = await seed.employee(
            client,
            weekend_working_config={
                "saturday": {"working": False},
                "sunday": {"working": True, "in_time": "09:00", "out_time": "13:00"},
            },
        )

        result = await WorkingCalendar(session).calculate_working_days(
            client.id, FEB_START, FEB_END, employee_id=employee.id
        )

        assert result.working_saturdays == 0
        assert result.working_sundays == 4

    async def test_holiday_on_working_weekend(self, session, seed):
        client = await seed.client()
        await seed.setting(client, "weekend_working_days", {"saturday_working": True})
        await seed.holiday(client, date(2026, 2, 14))

        result = await WorkingCalendar(session).calculate_working_days(client.id, FEB_START, FEB_END)

        assert result.working_saturdays == 3

    async def test_reversed_range_is_empty(self, session, seed):
        client = await seed.client()
        result = await WorkingCalendar(session).calculate_working_days(client.id, FEB_END, FEB_START)
        assert result.total_days == 0


class TestHolidays:
    """Holiday lookup and department scoping."""

    async def test_department_scoped_holiday(self, session, seed):
        client = await seed.client()
        engineering = await seed.department(client)
        sales = await seed.department(client, "Sales")
        await seed.holiday(
            client,
            date(2026, 2, 10),
            applies_to_all=False,
            department_ids=[str(engineering.id)],
        )
        calendar = WorkingCalendar(session)

        assert await calendar.is_holiday(client.id, date(2026, 2, 10), engineering.id) is not None
        assert await calendar.is_holiday(client.id, date(2026, 2, 10), sales.id) is None
        assert await calendar.is_holiday(client.id, date(2026, 2, 10)) is None

    async def test_department_working_days(self, session, seed):
        client = await seed.client()
        engineering = await seed.department(client)
        sales = await seed.department(client, "Sales")
        await seed.holiday(
            client,
            date(2026, 2, 10),
            applies_to_all=False,
            department_ids=[str(engineering.id)],
        )

        by_department, consolidated = await WorkingCalendar(session).calculate_department_working_days(
            client.id, FEB_START, FEB_END, [engineering.id, sales.id]
        )

        assert by_department[engineering.id].working_days == 19
        assert by_department[sales.id].working_days == 20
        assert consolidated.working_days == 19


class TestSettingsService:
    """Client row, then system default row, then built-in default."""

    async def test_client_row_wins_over_system_default(self, session, seed):
        client = await seed.client()
        await seed.setting(None, "working_hours_per_day", 9)
        await seed.setting(client, "working_hours_per_day", 7.5)

        assert await SettingsService(session).working_hours_per_day(client.id) == Decimal("7.5")

    async def test_system_default_row(self, session, seed):
        client = await seed.client()
        await seed.setting(None, "working_hours_per_day", 9)

        assert await SettingsService(session).working_hours_per_day(client.id) == Decimal("9")

    async def test_built_in_default(self, session, seed):
        client = await seed.client()
        assert await SettingsService(session).working_hours_per_day(client.id) == Decimal("8")

    async def test_overtime_multiplier_chain(self, session, seed):
        client = await seed.client()
        await seed.setting(client, "payroll_overtime_rate", 1.75)
        await seed.setting(client, "working_hours_config", {"weekend_hours_multiplier": 2})

        multipliers = await SettingsService(session).overtime_multipliers(client.id)

        assert multipliers.weekday == Decimal("1.75")
        assert multipliers.weekend == Decimal("2")
        assert multipliers.holiday == Decimal("2.5")
        assert multipliers.optional_holiday == Decimal("2.0")

    async def test_explicit_overtime_rate_wins(self, session, seed):
        client = await seed.client()
        await seed.setting(client, "payroll_overtime_rate", 1.75)
        await seed.setting(client, "overtime_rate_multiplier", 2)

        multipliers = await SettingsService(session).overtime_multipliers(client.id)
        assert multipliers.weekday == Decimal("2")

    async def test_tax_brackets(self, session, seed):
        client = await seed.client()
        settings = SettingsService(session)
        assert await settings.tax_brackets(client.id) is None

        await seed.setting(
            client,
            "tax_brackets",
            [{"min": 100000, "max": None, "rate": 0.06}, {"min": 0, "max": 100000, "rate": 0}],
        )
        brackets = await SettingsService(session).tax_brackets(client.id)

        assert [b.min_amount for b in brackets] == [Decimal("0"), Decimal("100000")]
        assert brackets[1].max_amount is None

    async def test_overtime_enabled_string_flag(self, session, seed):
        client = await seed.client()
        await seed.setting(client, "enable_overtime_calculation", "true")
        assert await SettingsService(session).overtime_enabled(client.id) is True
