"""Pytest fixtures for attendance payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from attendance_payroll.models import (
    AttendanceRecord,
    Base,
    Client,
    ClientSetting,
    Department,
    Employee,
    EmployeeAdvance,
    EmployeeBonus,
    EmployeeLoan,
    EmployeePayComponent,
    Holiday,
    LeaveRequest,
    PayrollComponent,
    PayrollPeriod,
)
from attendance_payroll.run_log import MemoryRunLogSink, PayrollEventLogger

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# A clock well after February 2026, so February periods are fully in the past
AFTER_FEBRUARY = datetime(2026, 3, 15, 12, 0, 0)


def fixed_clock(moment: datetime):
    """Clock callable that always returns ``moment``."""
    return lambda: moment


def weekend_code(day: date) -> int:
    """Attendance ``is_weekend`` code: 1=Sunday ... 7=Saturday."""
    return (day.weekday() + 1) % 7 + 1


def weekdays_between(start: date, end: date) -> list[date]:
    days = []
    day = start
    while day <= end:
        if day.weekday() < 5:
            days.append(day)
        day += timedelta(days=1)
    return days


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def run_log() -> MemoryRunLogSink:
    return MemoryRunLogSink()


@pytest.fixture
def events(run_log) -> PayrollEventLogger:
    return PayrollEventLogger(sinks=[run_log])


class Seed:
    """Builders for the rows a payroll calculation reads."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _add(self, obj: Any) -> Any:
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def client(self, name: str = "Acme Lanka") -> Client:
        return await self._add(Client(name=name))

    async def department(self, client: Client, name: str = "Engineering") -> Department:
        return await self._add(Department(client_id=client.id, name=name))

    async def period(
        self,
        client: Client,
        start: date = date(2026, 2, 1),
        end: date = date(2026, 2, 28),
        number: int = 2,
        pay_date: date | None = None,
    ) -> PayrollPeriod:
        return await self._add(
            PayrollPeriod(
                client_id=client.id,
                period_year=start.year,
                period_number=number,
                period_type="monthly",
                period_start_date=start,
                period_end_date=end,
                pay_date=pay_date,
            )
        )

    async def employee(
        self,
        client: Client,
        code: str = "E001",
        base_salary: Decimal = Decimal("80000"),
        in_time: time | None = time(9, 0),
        out_time: time | None = time(17, 0),
        **kwargs: Any,
    ) -> Employee:
        return await self._add(
            Employee(
                client_id=client.id,
                employee_code=code,
                first_name=kwargs.pop("first_name", "Nimal"),
                last_name=kwargs.pop("last_name", code),
                base_salary=base_salary,
                in_time=in_time,
                out_time=out_time,
                **kwargs,
            )
        )

    async def attendance(
        self,
        employee: Employee,
        day: date,
        hours: Decimal | int = 8,
        overtime: Decimal | int = 0,
        check_in: time = time(9, 0),
        checked_out: bool = True,
        scheduled: bool = True,
    ) -> AttendanceRecord:
        seconds = int(Decimal(hours) * 3600)
        check_out = (datetime.combine(day, check_in) + timedelta(seconds=seconds)).time()
        return await self._add(
            AttendanceRecord(
                employee_id=employee.id,
                attendance_date=day,
                check_in_time=check_in,
                check_out_time=check_out if checked_out else None,
                scheduled_in_time=time(9, 0) if scheduled else None,
                scheduled_out_time=time(17, 0) if scheduled else None,
                payable_duration=seconds if checked_out else None,
                is_weekend=weekend_code(day),
                overtime_hours=Decimal(overtime),
                status="present",
            )
        )

    async def full_attendance(
        self,
        employee: Employee,
        start: date = date(2026, 2, 1),
        end: date = date(2026, 2, 28),
        hours: Decimal | int = 8,
        skip: tuple[date, ...] = (),
    ) -> None:
        for day in weekdays_between(start, end):
            if day not in skip:
                await self.attendance(employee, day, hours=hours)

    async def leave(
        self,
        employee: Employee,
        start: date,
        end: date | None = None,
        is_paid: bool = False,
        duration: str = "full_day",
        status: str = "approved",
    ) -> LeaveRequest:
        return await self._add(
            LeaveRequest(
                employee_id=employee.id,
                leave_type="annual" if is_paid else "no_pay",
                is_paid=is_paid,
                start_date=start,
                end_date=end or start,
                leave_duration=duration,
                status=status,
            )
        )

    async def holiday(self, client: Client, day: date, is_optional: bool = False, **kwargs: Any) -> Holiday:
        return await self._add(
            Holiday(
                client_id=client.id,
                name=kwargs.pop("name", "Poya Day"),
                holiday_date=day,
                is_optional=is_optional,
                **kwargs,
            )
        )

    async def setting(self, client: Client | None, key: str, value: Any) -> ClientSetting:
        return await self._add(
            ClientSetting(
                client_id=client.id if client is not None else None,
                setting_key=key,
                setting_value=value,
            )
        )

    async def component(self, client: Client, code: str, component_type: str, **kwargs: Any) -> PayrollComponent:
        return await self._add(
            PayrollComponent(
                client_id=client.id,
                component_code=code,
                component_name=kwargs.pop("component_name", code.replace("_", " ").title()),
                component_type=component_type,
                **kwargs,
            )
        )

    async def pay_component(self, employee: Employee, code: str, component_type: str, **kwargs: Any) -> EmployeePayComponent:
        return await self._add(
            EmployeePayComponent(
                employee_id=employee.id,
                component_code=code,
                component_name=kwargs.pop("component_name", code.replace("_", " ").title()),
                component_type=component_type,
                **kwargs,
            )
        )

    async def loan(self, employee: Employee, amount: Decimal, monthly: Decimal, **kwargs: Any) -> EmployeeLoan:
        return await self._add(
            EmployeeLoan(
                employee_id=employee.id,
                loan_amount=amount,
                monthly_deduction=monthly,
                remaining_amount=kwargs.pop("remaining", amount),
                start_date=kwargs.pop("start_date", date(2026, 1, 1)),
                **kwargs,
            )
        )

    async def advance(self, employee: Employee, amount: Decimal, monthly: Decimal, **kwargs: Any) -> EmployeeAdvance:
        return await self._add(
            EmployeeAdvance(
                employee_id=employee.id,
                advance_amount=amount,
                monthly_deduction=monthly,
                remaining_amount=kwargs.pop("remaining", amount),
                deduction_start_date=kwargs.pop("deduction_start_date", date(2026, 2, 1)),
                **kwargs,
            )
        )

    async def bonus(self, employee: Employee, amount: Decimal, **kwargs: Any) -> EmployeeBonus:
        return await self._add(
            EmployeeBonus(
                employee_id=employee.id,
                bonus_amount=amount,
                effective_date=kwargs.pop("effective_date", date(2026, 2, 15)),
                **kwargs,
            )
        )


@pytest_asyncio.fixture
async def seed(session) -> Seed:
    return Seed(session)
