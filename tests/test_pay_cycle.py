"""Tests for employee payroll cycle resolution."""

from datetime import date, timedelta
from uuid import uuid4

import pytest

from attendance_payroll.calculators.pay_cycle import (
    PayCycleResolver,
    clamp_day,
    custom_cycle_window,
    resolve_employee_period,
)
from attendance_payroll.errors import PayrollConfigurationError

FEB_START = date(2026, 2, 1)
FEB_END = date(2026, 2, 28)


class TestCustomCycleWindow:
    """Window arithmetic for custom cycle days."""

    def test_cycle_day_23(self):
        window = custom_cycle_window(FEB_START, 23)

        assert window.start_date == date(2026, 2, 23)
        assert window.end_date == date(2026, 3, 22)
        assert window.uses_custom_cycle is True

    def test_year_rollover(self):
        window = custom_cycle_window(date(2026, 12, 1), 23)
        assert window.start_date == date(2026, 12, 23)
        assert window.end_date == date(2027, 1, 22)

    def test_clamps_to_month_end(self):
        """Day 31 in February starts on the 28th and runs to 30 March."""
        window = custom_cycle_window(FEB_START, 31)
        assert window.start_date == date(2026, 2, 28)
        assert window.end_date == date(2026, 3, 30)

    @pytest.mark.parametrize("cycle_day", [1, 15, 23, 28, 29, 30, 31])
    def test_consecutive_windows_neither_overlap_nor_gap(self, cycle_day):
        anchor = date(2026, 1, 1)
        previous = custom_cycle_window(anchor, cycle_day)
        for month in range(2, 13):
            window = custom_cycle_window(date(2026, month, 1), cycle_day)
            assert window.start_date == previous.end_date + timedelta(days=1)
            assert window.start_date <= window.end_date
            previous = window

    def test_clamp_day(self):
        assert clamp_day(2024, 2, 31) == date(2024, 2, 29)
        assert clamp_day(2026, 4, 0) == date(2026, 4, 1)


class TestResolveEmployeePeriod:
    """Default vs custom cycle selection."""

    def test_default_cycle_uses_run_period(self):
        period = resolve_employee_period("default", None, None, FEB_START, FEB_END)
        assert (period.start_date, period.end_date) == (FEB_START, FEB_END)
        assert period.uses_custom_cycle is False

    def test_missing_cycle_day_uses_run_period(self):
        period = resolve_employee_period("custom", None, None, FEB_START, FEB_END)
        assert period.uses_custom_cycle is False

    def test_custom_cycle(self):
        period = resolve_employee_period("custom", 23, date(2026, 1, 1), FEB_START, FEB_END)
        assert period.start_date == date(2026, 2, 23)
        assert period.uses_custom_cycle is True

    def test_custom_cycle_not_yet_effective(self):
        period = resolve_employee_period("custom", 23, date(2026, 3, 1), FEB_START, FEB_END)
        assert period.uses_custom_cycle is False
        assert period.end_date == FEB_END

    def test_custom_cycle_effective_within_period(self):
        period = resolve_employee_period("custom", 23, date(2026, 2, 28), FEB_START, FEB_END)
        assert period.uses_custom_cycle is True


class TestPayCycleResolver:
    """Database-backed resolution."""

    async def test_calculate_employee_period(self, session, seed):
        client = await seed.client()
        default_employee = await seed.employee(client, "E001")
        custom_employee = await seed.employee(
            client,
            "E002",
            payroll_cycle_override="custom",
            payroll_cycle_day=23,
        )

        resolver = PayCycleResolver(session)
        default_period = await resolver.calculate_employee_period(default_employee.id, FEB_START, FEB_END)
        custom_period = await resolver.calculate_employee_period(custom_employee.id, FEB_START, FEB_END)

        assert default_period.uses_custom_cycle is False
        assert custom_period.start_date == date(2026, 2, 23)
        assert custom_period.end_date == date(2026, 3, 22)

    async def test_unknown_employee(self, session):
        with pytest.raises(PayrollConfigurationError):
            await PayCycleResolver(session).calculate_employee_period(uuid4(), FEB_START, FEB_END)
