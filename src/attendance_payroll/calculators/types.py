"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from attendance_payroll.models import Holiday, PayrollRecord

ZERO = Decimal("0")
SECONDS_PER_HOUR = Decimal("3600")
MIN_DAILY_HOURS = Decimal("1")
MAX_DAILY_HOURS = Decimal("16")


class DayType(str, Enum):
    """Day types that carry their own working-day count and hourly rate."""

    WEEKDAY = "weekday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, day: date) -> DayType:
        weekday = day.weekday()
        if weekday == 5:
            return cls.SATURDAY
        if weekday == 6:
            return cls.SUNDAY
        return cls.WEEKDAY

    @classmethod
    def from_weekend_code(cls, code: int | None, day: date | None = None) -> DayType:
        """Map an attendance ``is_weekend`` code (1=Sunday ... 7=Saturday)."""
        if code == 1:
            return cls.SUNDAY
        if code == 7:
            return cls.SATURDAY
        if code is None and day is not None:
            return cls.from_date(day)
        return cls.WEEKDAY

    @property
    def is_weekend(self) -> bool:
        return self is not DayType.WEEKDAY


class ComponentType(str, Enum):
    """Payroll record component types."""

    EARNING = "earning"
    DEDUCTION = "deduction"
    TAX = "tax"
    INFORMATION = "information"


class CalculationStatus(str, Enum):
    """Per-record calculation status."""

    PENDING = "pending"
    CALCULATED = "calculated"
    ERROR = "error"


def parse_time(value: Any) -> time | None:
    """Parse ``HH:MM`` / ``HH:MM:SS`` strings; pass through ``time`` values."""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds()) % 86400
        return time(seconds // 3600, (seconds % 3600) // 60, seconds % 60)
    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) not in (2, 3):
            return None
        try:
            numbers = [int(p) for p in parts]
            return time(*numbers)
        except ValueError:
            return None
    return None


def hours_between(start: time, end: time) -> Decimal:
    """Clock span in hours; an end at or before the start wraps past midnight."""
    start_s = start.hour * 3600 + start.minute * 60 + start.second
    end_s = end.hour * 3600 + end.minute * 60 + end.second
    if end_s <= start_s:
        end_s += 86400
    return Decimal(end_s - start_s) / SECONDS_PER_HOUR


def clamp_daily_hours(hours: Decimal) -> Decimal:
    """Clamp a derived daily schedule to [1, 16] hours."""
    return max(MIN_DAILY_HOURS, min(MAX_DAILY_HOURS, hours))


def scheduled_hours(in_time: Any, out_time: Any) -> Decimal | None:
    """Clamped duration between two schedule times, or None if either is missing."""
    start = parse_time(in_time)
    end = parse_time(out_time)
    if start is None or end is None:
        return None
    return clamp_daily_hours(hours_between(start, end))


@dataclass(frozen=True)
class WeekendDayConfig:
    """Working flag and custom schedule for one weekend day."""

    working: bool = False
    in_time: time | None = None
    out_time: time | None = None

    @classmethod
    def from_json(cls, raw: Any) -> WeekendDayConfig | None:
        if not isinstance(raw, dict) or "working" not in raw:
            return None
        working = raw.get("working")
        if isinstance(working, str):
            working = working.strip().lower() in ("true", "1", "yes")
        return cls(
            working=bool(working),
            in_time=parse_time(raw.get("in_time")),
            out_time=parse_time(raw.get("out_time")),
        )

    def daily_hours(self) -> Decimal | None:
        """Scheduled hours if working with both times set; 0 if not working."""
        if not self.working:
            return ZERO
        return scheduled_hours(self.in_time, self.out_time)


@dataclass(frozen=True)
class WeekendWorkingConfig:
    """Employee-level weekend working configuration.

    Validated when read from the ``weekend_working_config`` JSON column;
    anything malformed is treated as "not configured" for that day.
    """

    saturday: WeekendDayConfig | None = None
    sunday: WeekendDayConfig | None = None

    @classmethod
    def from_json(cls, raw: Any) -> WeekendWorkingConfig:
        if not isinstance(raw, dict):
            return cls()
        return cls(
            saturday=WeekendDayConfig.from_json(raw.get("saturday")),
            sunday=WeekendDayConfig.from_json(raw.get("sunday")),
        )

    def for_day(self, day_type: DayType) -> WeekendDayConfig | None:
        if day_type is DayType.SATURDAY:
            return self.saturday
        if day_type is DayType.SUNDAY:
            return self.sunday
        return None

    @property
    def is_configured(self) -> bool:
        return self.saturday is not None or self.sunday is not None


@dataclass(frozen=True)
class ClientWeekendSetting:
    """Client-wide ``weekend_working_days`` setting."""

    saturday_working: bool = False
    sunday_working: bool = False

    @classmethod
    def from_json(cls, raw: Any) -> ClientWeekendSetting:
        if not isinstance(raw, dict):
            return cls()
        return cls(
            saturday_working=bool(raw.get("saturday_working", False)),
            sunday_working=bool(raw.get("sunday_working", False)),
        )

    def is_working(self, day_type: DayType) -> bool:
        if day_type is DayType.SATURDAY:
            return self.saturday_working
        if day_type is DayType.SUNDAY:
            return self.sunday_working
        return True


@dataclass
class WorkingDaysResult:
    """Working-day counts for a date range."""

    total_days: int = 0
    working_days: int = 0
    weekend_days: int = 0
    weekend_working_days: int = 0
    working_saturdays: int = 0
    working_sundays: int = 0
    holiday_count: int = 0
    holidays: list[Holiday] = field(default_factory=list)

    @property
    def weekday_working_days(self) -> int:
        return self.working_days - self.weekend_working_days

    def days_for(self, day_type: DayType) -> int:
        if day_type is DayType.SATURDAY:
            return self.working_saturdays
        if day_type is DayType.SUNDAY:
            return self.working_sundays
        return self.weekday_working_days


@dataclass(frozen=True)
class EmployeePeriod:
    """An employee's effective payroll window."""

    start_date: date
    end_date: date
    uses_custom_cycle: bool = False

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class RateBlock:
    """Day counts, daily hours and rates fixed at draft-record creation."""

    weekday_working_days: int
    working_saturdays: int
    working_sundays: int
    weekday_daily_hours: Decimal
    saturday_daily_hours: Decimal
    sunday_daily_hours: Decimal
    daily_salary: Decimal
    weekday_hourly_rate: Decimal
    saturday_hourly_rate: Decimal
    sunday_hourly_rate: Decimal

    FIELDS = (
        "weekday_working_days",
        "working_saturdays",
        "working_sundays",
        "weekday_daily_hours",
        "saturday_daily_hours",
        "sunday_daily_hours",
        "daily_salary",
        "weekday_hourly_rate",
        "saturday_hourly_rate",
        "sunday_hourly_rate",
    )

    @classmethod
    def from_record(cls, record: PayrollRecord) -> RateBlock:
        return cls(**{name: getattr(record, name) for name in cls.FIELDS})

    def as_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.FIELDS}

    @property
    def total_working_days(self) -> int:
        return self.weekday_working_days + self.working_saturdays + self.working_sundays

    def working_days(self, day_type: DayType) -> int:
        return {
            DayType.WEEKDAY: self.weekday_working_days,
            DayType.SATURDAY: self.working_saturdays,
            DayType.SUNDAY: self.working_sundays,
        }[day_type]

    def daily_hours(self, day_type: DayType) -> Decimal:
        return {
            DayType.WEEKDAY: self.weekday_daily_hours,
            DayType.SATURDAY: self.saturday_daily_hours,
            DayType.SUNDAY: self.sunday_daily_hours,
        }[day_type]

    def hourly_rate(self, day_type: DayType) -> Decimal:
        return {
            DayType.WEEKDAY: self.weekday_hourly_rate,
            DayType.SATURDAY: self.saturday_hourly_rate,
            DayType.SUNDAY: self.sunday_hourly_rate,
        }[day_type]


def empty_by_day_type() -> dict[DayType, Decimal]:
    return {day_type: ZERO for day_type in DayType}


@dataclass
class DayTypeBreakdown:
    """Expected vs actual hours and salary for one day type."""

    day_type: DayType
    working_days: int = 0
    daily_hours: Decimal = ZERO
    hourly_rate: Decimal = ZERO
    expected_hours: Decimal = ZERO
    actual_hours: Decimal = ZERO
    expected_salary: Decimal = ZERO
    earned_salary: Decimal = ZERO

    @property
    def shortfall_hours(self) -> Decimal:
        return max(ZERO, self.expected_hours - self.actual_hours)


@dataclass
class SourceEarnings:
    """Hours and amount earned from one source."""

    hours: Decimal = ZERO
    amount: Decimal = ZERO


@dataclass
class ShortfallBreakdown:
    """Attendance deduction split by cause; the three parts sum to the total."""

    unpaid_leave: Decimal = ZERO
    time_variance: Decimal = ZERO
    absent_days: Decimal = ZERO
    unpaid_leave_hours: Decimal = ZERO
    time_variance_hours: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.unpaid_leave + self.time_variance + self.absent_days


@dataclass
class LiveSession:
    """Today's in-progress attendance segment."""

    day_type: DayType
    check_in: datetime
    scheduled_in: datetime | None
    as_of: datetime
    actual_hours: Decimal = ZERO
    expected_hours: Decimal = ZERO


@dataclass
class EarnedSalaryResult:
    """Output of the earned-salary engine for one record."""

    employee_id: UUID
    run_id: UUID
    period: EmployeePeriod
    calculation_end_date: date
    expected_through: date
    base_salary: Decimal
    total: Decimal  # attendance deduction
    earned_salary: Decimal
    expected_salary: Decimal
    breakdown_by_day_type: dict[DayType, DayTypeBreakdown]
    earnings_by_source: dict[str, SourceEarnings]
    shortfall_by_cause: ShortfallBreakdown
    live_session: LiveSession | None = None
    is_live_preview: bool = False
    attendance_applied: bool = True
    # Overtime hours from completed attendance keyed by weekday/weekend/holiday/optional_holiday
    overtime_hours: dict[str, Decimal] = field(default_factory=dict)

    @property
    def deduction(self) -> Decimal:
        return self.total

    @property
    def expected_hours(self) -> Decimal:
        return sum((b.expected_hours for b in self.breakdown_by_day_type.values()), ZERO)

    @property
    def actual_hours(self) -> Decimal:
        return sum((b.actual_hours for b in self.breakdown_by_day_type.values()), ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": str(self.employee_id),
            "run_id": str(self.run_id),
            "period_start": self.period.start_date.isoformat(),
            "period_end": self.period.end_date.isoformat(),
            "calculation_end_date": self.calculation_end_date.isoformat(),
            "expected_through": self.expected_through.isoformat(),
            "base_salary": str(self.base_salary),
            "total": str(self.total),
            "earned_salary": str(self.earned_salary),
            "expected_salary": str(self.expected_salary),
            "is_live_preview": self.is_live_preview,
            "attendance_applied": self.attendance_applied,
            "overtime_hours": {kind: str(hours) for kind, hours in self.overtime_hours.items()},
            "breakdown_by_day_type": {
                day_type.value: {
                    "working_days": b.working_days,
                    "daily_hours": str(b.daily_hours),
                    "hourly_rate": str(b.hourly_rate),
                    "expected_hours": str(b.expected_hours),
                    "actual_hours": str(b.actual_hours),
                    "expected_salary": str(b.expected_salary),
                    "earned_salary": str(b.earned_salary),
                }
                for day_type, b in self.breakdown_by_day_type.items()
            },
            "earnings_by_source": {
                source: {"hours": str(e.hours), "amount": str(e.amount)}
                for source, e in self.earnings_by_source.items()
            },
            "shortfall_by_cause": {
                "unpaid_leave": str(self.shortfall_by_cause.unpaid_leave),
                "time_variance": str(self.shortfall_by_cause.time_variance),
                "absent_days": str(self.shortfall_by_cause.absent_days),
            },
        }


@dataclass
class ComponentLine:
    """A component line before persistence."""

    code: str
    name: str
    component_type: ComponentType
    category: str
    amount: Decimal
    details: str | None = None
    source_type: str | None = None
    source_id: UUID | None = None

    @property
    def counts_toward_totals(self) -> bool:
        return self.component_type is not ComponentType.INFORMATION


@dataclass
class FinancialItem:
    """A loan/advance installment or bonus payable in a run."""

    source_type: str  # loan | advance | bonus
    source_id: UUID
    code: str
    name: str
    amount: Decimal
    balance_before: Decimal | None = None


@dataclass
class TaxBracket:
    """Tax bracket for progressive taxation."""

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.06 for 6%
