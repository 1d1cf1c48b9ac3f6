"""Progressive income tax over client-configured brackets."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from attendance_payroll.calculators.types import TaxBracket

# Reference slabs (monthly, LKR) shipped as the suggested ``tax_brackets`` value.
DEFAULT_PROGRESSIVE_BRACKETS: tuple[TaxBracket, ...] = (
    TaxBracket(Decimal("0"), Decimal("100000"), Decimal("0")),
    TaxBracket(Decimal("100000"), Decimal("200000"), Decimal("0.06")),
    TaxBracket(Decimal("200000"), Decimal("300000"), Decimal("0.12")),
    TaxBracket(Decimal("300000"), Decimal("500000"), Decimal("0.18")),
    TaxBracket(Decimal("500000"), Decimal("750000"), Decimal("0.24")),
    TaxBracket(Decimal("750000"), None, Decimal("0.36")),
)


def calculate_progressive_tax(income: Decimal, brackets: list[TaxBracket] | tuple[TaxBracket, ...]) -> Decimal:
    """Tax each slice of ``income`` at its bracket's rate."""
    if income <= 0 or not brackets:
        return Decimal("0")

    total_tax = Decimal("0")
    remaining = income

    for bracket in sorted(brackets, key=lambda b: b.min_amount):
        if remaining <= 0:
            break

        bracket_min = bracket.min_amount
        bracket_max = bracket.max_amount if bracket.max_amount is not None else income + 1

        if income < bracket_min:
            continue

        taxable_in_bracket = min(remaining, bracket_max - bracket_min)
        if taxable_in_bracket > 0:
            total_tax += taxable_in_bracket * bracket.rate
            remaining -= taxable_in_bracket

    return total_tax.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
