"""Tests for the read-only live payroll preview."""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from attendance_payroll.errors import PayrollConfigurationError, PayrollRunNotFoundError
from attendance_payroll.models import PayrollRecord, PayrollRecordComponent
from attendance_payroll.services.live_payroll import LivePayrollService
from attendance_payroll.services.payroll_run_service import PayrollRunService

from conftest import fixed_clock

FEB_10_AFTERNOON = datetime(2026, 2, 10, 13, 0)


async def checked_in_today(seed):
    """Worked 2-9 February and checked in at 09:00 on the 10th without checking out."""
    client = await seed.client()
    period = await seed.period(client)
    employee = await seed.employee(client)
    await seed.full_attendance(employee, end=date(2026, 2, 9))
    await seed.attendance(employee, date(2026, 2, 10), check_in=time(9, 0), checked_out=False)
    return client, period, employee


class TestLivePayrollService:
    """Preview including today's open session."""

    async def test_preview_counts_open_session(self, session, seed, events, run_log):
        client, period, employee = await checked_in_today(seed)
        run_id = (await PayrollRunService(session).create_payroll_run(client.id, period.id)).data["run_id"]

        service = LivePayrollService(session, clock=fixed_clock(FEB_10_AFTERNOON), events=events)
        preview = await service.preview_employee(run_id, client.id, employee.id)

        assert preview.as_of == FEB_10_AFTERNOON
        assert preview.earned.is_live_preview is True
        assert preview.earned.live_session is not None
        # 6 full days plus 4 live hours, at 500 an hour
        assert preview.payroll.earned_base == Decimal("26000.00")
        assert preview.payroll.net_salary == Decimal("26000.00")

        payload = preview.to_dict()
        assert payload["as_of"] == "2026-02-10T13:00:00"
        assert payload["earned"]["is_live_preview"] is True
        assert payload["components"][0]["code"] == "BASIC_SAL"
        assert "live_preview_calculated" in run_log.names()

    async def test_preview_writes_nothing(self, session, seed):
        client, period, employee = await checked_in_today(seed)
        run_id = (await PayrollRunService(session).create_payroll_run(client.id, period.id)).data["run_id"]

        await LivePayrollService(session, clock=fixed_clock(FEB_10_AFTERNOON)).preview_employee(
            run_id, client.id, employee.id
        )

        record = await session.scalar(select(PayrollRecord).where(PayrollRecord.run_id == run_id))
        assert record.calculation_status == "pending"
        assert record.earned_salary == Decimal("0")
        assert await session.scalar(select(func.count()).select_from(PayrollRecordComponent)) == 0

    async def test_unknown_run(self, session, seed):
        client = await seed.client()
        with pytest.raises(PayrollRunNotFoundError):
            await LivePayrollService(session).preview_employee(uuid4(), client.id, uuid4())

    async def test_employee_not_in_run(self, session, seed):
        client, period, _ = await checked_in_today(seed)
        run_id = (await PayrollRunService(session).create_payroll_run(client.id, period.id)).data["run_id"]

        with pytest.raises(PayrollConfigurationError):
            await LivePayrollService(session).preview_employee(run_id, client.id, uuid4())
