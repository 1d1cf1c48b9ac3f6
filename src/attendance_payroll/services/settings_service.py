"""Client settings lookup with system-default fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.calculators.types import ClientWeekendSetting, TaxBracket
from attendance_payroll.config import get_settings
from attendance_payroll.models import ClientSetting

logger = logging.getLogger(__name__)

# Hard-coded last resort when neither a client row nor a system default row exists
DEFAULT_SETTINGS: dict[str, Any] = {
    "working_hours_per_day": 8,
    "weekend_working_days": {"saturday_working": False, "sunday_working": False},
    "working_hours_config": {
        "standard_hours_per_day": 8,
        "weekend_hours_multiplier": 1.5,
        "holiday_hours_multiplier": 2.5,
        "optional_holiday_hours_multiplier": 2.0,
    },
    "enable_overtime_calculation": False,
    "payroll_overtime_rate": 1.5,
    "tax_brackets": None,
}

_MISSING = object()


def to_decimal(value: Any, default: Decimal | None = None) -> Decimal | None:
    """Coerce a stored setting value to Decimal."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def _first_decimal(value: Any, default: Decimal) -> Decimal:
    result = to_decimal(value)
    return default if result is None else result


def to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return default


@dataclass(frozen=True)
class OvertimeMultipliers:
    """Overtime pay multipliers per kind of day."""

    weekday: Decimal
    weekend: Decimal
    holiday: Decimal
    optional_holiday: Decimal


class SettingsService:
    """Reads ``system_settings`` rows for a client.

    A client-specific row wins over the system default row (``client_id``
    NULL), which wins over ``DEFAULT_SETTINGS``. Values are cached per
    service instance, so one instance should not outlive a payroll run.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._cache: dict[tuple[UUID, str], Any] = {}

    async def get(self, client_id: UUID, key: str, default: Any = _MISSING) -> Any:
        """Get a setting value."""
        cache_key = (client_id, key)
        if cache_key not in self._cache:
            self._cache[cache_key] = await self._load(client_id, key)

        value = self._cache[cache_key]
        if value is _MISSING:
            if default is not _MISSING:
                return default
            return DEFAULT_SETTINGS.get(key)
        return value

    async def _load(self, client_id: UUID, key: str) -> Any:
        result = await self.session.execute(
            select(ClientSetting).where(
                ClientSetting.setting_key == key,
                or_(ClientSetting.client_id == client_id, ClientSetting.client_id.is_(None)),
            )
        )
        rows = result.scalars().all()
        client_row = next((r for r in rows if r.client_id is not None), None)
        if client_row is not None:
            return client_row.setting_value
        default_row = next((r for r in rows if r.client_id is None), None)
        if default_row is not None:
            return default_row.setting_value
        return _MISSING

    async def get_decimal(self, client_id: UUID, key: str, default: Decimal) -> Decimal:
        result = to_decimal(await self.get(client_id, key, default=None))
        return default if result is None else result

    async def get_bool(self, client_id: UUID, key: str, default: bool = False) -> bool:
        value = await self.get(client_id, key, default=None)
        return to_bool(value, default)

    async def working_hours_per_day(self, client_id: UUID) -> Decimal:
        return await self.get_decimal(
            client_id, "working_hours_per_day", get_settings().default_working_hours
        )

    async def weekend_setting(self, client_id: UUID) -> ClientWeekendSetting:
        return ClientWeekendSetting.from_json(await self.get(client_id, "weekend_working_days"))

    async def working_hours_config(self, client_id: UUID) -> dict[str, Any]:
        value = await self.get(client_id, "working_hours_config")
        config = dict(DEFAULT_SETTINGS["working_hours_config"])
        if isinstance(value, dict):
            config.update(value)
        return config

    async def overtime_enabled(self, client_id: UUID) -> bool:
        return await self.get_bool(client_id, "enable_overtime_calculation", False)

    async def overtime_multipliers(self, client_id: UUID) -> OvertimeMultipliers:
        """Resolve overtime multipliers.

        Weekday: ``overtime_rate_multiplier``, then
        ``working_hours_config.overtime_multiplier``, then
        ``payroll_overtime_rate``, then 1.5.
        """
        config = await self.working_hours_config(client_id)
        weekday = to_decimal(await self.get(client_id, "overtime_rate_multiplier", default=None))
        if weekday is None:
            weekday = to_decimal(config.get("overtime_multiplier"))
        if weekday is None:
            weekday = to_decimal(await self.get(client_id, "payroll_overtime_rate", default=None))
        if weekday is None:
            weekday = Decimal("1.5")

        weekend = _first_decimal(config.get("weekend_hours_multiplier"), weekday)
        holiday = _first_decimal(config.get("holiday_hours_multiplier"), Decimal("2.5"))
        optional = _first_decimal(config.get("optional_holiday_hours_multiplier"), Decimal("2.0"))
        return OvertimeMultipliers(
            weekday=weekday,
            weekend=weekend,
            holiday=holiday,
            optional_holiday=optional,
        )

    async def tax_brackets(self, client_id: UUID) -> list[TaxBracket] | None:
        """Configured progressive brackets, or None when the client has none.

        Expected shape: ``[{"min": 0, "max": 100000, "rate": 0}, ...]`` with
        ``max`` null on the last bracket.
        """
        raw = await self.get(client_id, "tax_brackets")
        if not isinstance(raw, list) or not raw:
            return None

        brackets: list[TaxBracket] = []
        for item in raw:
            if not isinstance(item, dict):
                logger.warning("Ignoring malformed tax bracket %r for client %s", item, client_id)
                continue
            min_amount = _first_decimal(item.get("min"), Decimal("0"))
            rate = _first_decimal(item.get("rate"), Decimal("0"))
            brackets.append(
                TaxBracket(
                    min_amount=min_amount,
                    max_amount=to_decimal(item.get("max")),
                    rate=rate,
                )
            )
        brackets.sort(key=lambda b: b.min_amount)
        return brackets or None
