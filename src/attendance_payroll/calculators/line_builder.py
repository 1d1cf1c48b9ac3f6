"""Component line builder and rounding rules."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from attendance_payroll.calculators.types import ZERO, ComponentLine, ComponentType


class ComponentLineBuilder:
    """Builds payroll record component lines.

    Sign conventions:
    - all amounts are stored positive; ``component_type`` says whether a line
      adds to gross (earning), reduces net (deduction, tax) or is shown for
      transparency only (information)

    Rounding:
    - money to 2 decimals on each line
    - rates and hours kept at 4 decimals internally
    """

    PRECISION = Decimal("0.0001")  # 4 decimal places for internal calculations
    OUTPUT_PRECISION = Decimal("0.01")  # 2 decimal places for persistence

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places."""
        return amount.quantize(ComponentLineBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_internal(amount: Decimal) -> Decimal:
        """Round rates/hours to 4 decimal places."""
        return amount.quantize(ComponentLineBuilder.PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_earning_line(
        code: str,
        name: str,
        amount: Decimal,
        category: str = "allowance",
        details: str | None = None,
        source_type: str | None = None,
        source_id: UUID | None = None,
    ) -> ComponentLine:
        """Create an earning line."""
        return ComponentLine(
            code=code,
            name=name,
            component_type=ComponentType.EARNING,
            category=category,
            amount=ComponentLineBuilder.round_to_cents(abs(amount)),
            details=details,
            source_type=source_type,
            source_id=source_id,
        )

    @staticmethod
    def create_deduction_line(
        code: str,
        name: str,
        amount: Decimal,
        category: str = "deduction",
        details: str | None = None,
        source_type: str | None = None,
        source_id: UUID | None = None,
    ) -> ComponentLine:
        """Create a deduction line."""
        return ComponentLine(
            code=code,
            name=name,
            component_type=ComponentType.DEDUCTION,
            category=category,
            amount=ComponentLineBuilder.round_to_cents(abs(amount)),
            details=details,
            source_type=source_type,
            source_id=source_id,
        )

    @staticmethod
    def create_tax_line(code: str, name: str, amount: Decimal, details: str | None = None) -> ComponentLine:
        """Create a tax line."""
        return ComponentLine(
            code=code,
            name=name,
            component_type=ComponentType.TAX,
            category="tax",
            amount=ComponentLineBuilder.round_to_cents(abs(amount)),
            details=details,
        )

    @staticmethod
    def create_information_line(
        code: str,
        name: str,
        amount: Decimal,
        category: str = "attendance",
        details: str | None = None,
    ) -> ComponentLine:
        """Create a line that is displayed but excluded from totals."""
        return ComponentLine(
            code=code,
            name=name,
            component_type=ComponentType.INFORMATION,
            category=category,
            amount=ComponentLineBuilder.round_to_cents(abs(amount)),
            details=details,
        )

    @staticmethod
    def total(lines: list[ComponentLine], *types: ComponentType) -> Decimal:
        """Sum line amounts of the given types."""
        return sum((line.amount for line in lines if line.component_type in types), ZERO)
