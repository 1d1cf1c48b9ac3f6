"""Tests for component line builder."""

from decimal import Decimal
from uuid import uuid4

from attendance_payroll.calculators.line_builder import ComponentLineBuilder
from attendance_payroll.calculators.types import ComponentType


class TestRounding:
    """Test rounding rules."""

    def test_round_to_cents(self):
        """Test rounding to 2 decimal places."""
        assert ComponentLineBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.13")
        assert ComponentLineBuilder.round_to_cents(Decimal("10.124")) == Decimal("10.12")
        assert ComponentLineBuilder.round_to_cents(Decimal("10.1")) == Decimal("10.10")

    def test_round_internal(self):
        """Test rounding to 4 decimal places."""
        assert ComponentLineBuilder.round_internal(Decimal("333.33333")) == Decimal("333.3333")
        assert ComponentLineBuilder.round_internal(Decimal("0.00005")) == Decimal("0.0001")


class TestLineCreation:
    """Test line factories."""

    def test_earning_line_is_positive_and_rounded(self):
        line = ComponentLineBuilder.create_earning_line("TRANSPORT", "Transport", Decimal("-5000.005"))

        assert line.component_type == ComponentType.EARNING
        assert line.amount == Decimal("5000.01")
        assert line.category == "allowance"
        assert line.counts_toward_totals is True

    def test_deduction_line_keeps_source(self):
        loan_id = uuid4()
        line = ComponentLineBuilder.create_deduction_line(
            "LOAN_DEDUCTION",
            "Loan installment",
            Decimal("2500"),
            category="loan",
            source_type="loan",
            source_id=loan_id,
        )

        assert line.component_type == ComponentType.DEDUCTION
        assert line.source_type == "loan"
        assert line.source_id == loan_id

    def test_tax_line(self):
        line = ComponentLineBuilder.create_tax_line("INCOME_TAX", "Income tax", Decimal("12000"))
        assert line.component_type == ComponentType.TAX
        assert line.category == "tax"

    def test_information_line_excluded_from_totals(self):
        line = ComponentLineBuilder.create_information_line("EXPECTED_SALARY", "Expected", Decimal("80000"))
        assert line.counts_toward_totals is False


class TestTotals:
    """Test summing lines by type."""

    def test_total_by_type(self):
        lines = [
            ComponentLineBuilder.create_earning_line("BASIC", "Basic", Decimal("76000")),
            ComponentLineBuilder.create_earning_line("TRANSPORT", "Transport", Decimal("5000")),
            ComponentLineBuilder.create_deduction_line("EPF", "EPF", Decimal("6080")),
            ComponentLineBuilder.create_tax_line("INCOME_TAX", "Tax", Decimal("100")),
            ComponentLineBuilder.create_information_line("INFO", "Info", Decimal("999")),
        ]

        assert ComponentLineBuilder.total(lines, ComponentType.EARNING) == Decimal("81000.00")
        assert ComponentLineBuilder.total(lines, ComponentType.DEDUCTION, ComponentType.TAX) == Decimal("6180.00")
        assert ComponentLineBuilder.total([], ComponentType.EARNING) == Decimal("0")
