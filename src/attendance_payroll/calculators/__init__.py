"""Payroll calculators."""

from attendance_payroll.calculators.formula import FormulaError, evaluate_formula, safe_evaluate
from attendance_payroll.calculators.line_builder import ComponentLineBuilder
from attendance_payroll.calculators.tax import DEFAULT_PROGRESSIVE_BRACKETS, calculate_progressive_tax
from attendance_payroll.calculators.types import (
    ComponentLine,
    ComponentType,
    DayType,
    EarnedSalaryResult,
    EmployeePeriod,
    RateBlock,
    TaxBracket,
)

__all__ = [
    "ComponentLine",
    "ComponentLineBuilder",
    "ComponentType",
    "DEFAULT_PROGRESSIVE_BRACKETS",
    "DayType",
    "EarnedSalaryResult",
    "EmployeePeriod",
    "FormulaError",
    "RateBlock",
    "TaxBracket",
    "calculate_progressive_tax",
    "evaluate_formula",
    "safe_evaluate",
]
