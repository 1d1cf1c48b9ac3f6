"""Component composition: earned base, allowances, deductions, taxes, net.

Pipeline (stable order per record):
1) Earned base: engine earned salary when attendance affects salary, else
   the snapshot base salary
2) Configured earnings and deductions (deductions on the earned base only)
3) Employee-specific and legacy allowances/deductions
4) Bonuses and overtime
5) Loan and advance installments
6) Progressive tax on gross, when the client has brackets configured
7) Net = gross - deductions - taxes

The attendance shortfall is written as an information line. It already
reduced the earned base, so it is never added to total deductions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from attendance_payroll.calculators.formula import safe_evaluate
from attendance_payroll.calculators.line_builder import ComponentLineBuilder
from attendance_payroll.calculators.tax import calculate_progressive_tax
from attendance_payroll.calculators.types import (
    ZERO,
    ComponentLine,
    ComponentType,
    EarnedSalaryResult,
    FinancialItem,
    TaxBracket,
)
from attendance_payroll.errors import PayrollConfigurationError
from attendance_payroll.models import (
    EmployeeAllowance,
    EmployeeDeduction,
    EmployeePayComponent,
    PayrollComponent,
)
from attendance_payroll.services.settings_service import OvertimeMultipliers

HUNDRED = Decimal("100")

APPLIES_TO_ALL = "all"
APPLIES_TO_DEPARTMENT = "department"
APPLIES_TO_DESIGNATION = "designation"
APPLIES_TO_INDIVIDUAL = "individual"

OVERTIME_LINES = {
    # kind: (code, name)
    "weekday": ("OVERTIME", "Overtime Pay"),
    "weekend": ("OVERTIME_WEEKEND", "Weekend Overtime Pay"),
    "holiday": ("OVERTIME_HOLIDAY", "Holiday Overtime Pay"),
    "optional_holiday": ("OVERTIME_OPT_HOLIDAY", "Optional Holiday Overtime Pay"),
}


def component_applies(
    component: PayrollComponent,
    employee_id: UUID,
    department_id: UUID | None,
    designation_id: UUID | None,
) -> bool:
    """Check a configured component's ``applies_to`` scope for an employee.

    Raises PayrollConfigurationError for an unknown scope.
    """
    scope = (component.applies_to or APPLIES_TO_ALL).lower()
    ids = {str(i) for i in (component.applies_to_ids or [])}
    if scope == APPLIES_TO_ALL:
        return True
    if scope == APPLIES_TO_DEPARTMENT:
        return department_id is not None and str(department_id) in ids
    if scope == APPLIES_TO_DESIGNATION:
        return designation_id is not None and str(designation_id) in ids
    if scope == APPLIES_TO_INDIVIDUAL:
        return str(employee_id) in ids
    raise PayrollConfigurationError(
        f"Unknown applies_to scope '{component.applies_to}' on component {component.component_code}",
        employee_id,
    )


@dataclass
class OvertimeInputs:
    """Overtime settings and hours for one record."""

    enabled: bool = False
    hours: dict[str, Decimal] = field(default_factory=dict)
    multipliers: OvertimeMultipliers | None = None
    hours_per_day: Decimal = Decimal("8")


@dataclass
class CompositionInputs:
    """Everything the composer needs for one record, pre-fetched."""

    employee_id: UUID
    department_id: UUID | None
    designation_id: UUID | None
    base_salary: Decimal
    attendance_affects_salary: bool
    working_days: int
    earned: EarnedSalaryResult
    configured_components: list[PayrollComponent] = field(default_factory=list)
    employee_components: list[EmployeePayComponent] = field(default_factory=list)
    legacy_allowances: list[EmployeeAllowance] = field(default_factory=list)
    legacy_deductions: list[EmployeeDeduction] = field(default_factory=list)
    loans: list[FinancialItem] = field(default_factory=list)
    advances: list[FinancialItem] = field(default_factory=list)
    bonuses: list[FinancialItem] = field(default_factory=list)
    overtime: OvertimeInputs = field(default_factory=OvertimeInputs)
    tax_brackets: list[TaxBracket] | None = None


@dataclass
class ComposedPayroll:
    """Result of composing one record's components."""

    lines: list[ComponentLine]
    earned_base: Decimal
    attendance_deduction: Decimal
    gross_salary: Decimal
    total_deductions: Decimal
    total_taxes: Decimal
    taxable_income: Decimal
    net_salary: Decimal
    # Employee-specific recurring deductions charged in this calculation
    installment_component_ids: list[UUID] = field(default_factory=list)

    @property
    def total_earnings(self) -> Decimal:
        return self.gross_salary

    def lines_of(self, component_type: ComponentType) -> list[ComponentLine]:
        return [line for line in self.lines if line.component_type is component_type]


class PayrollComposer:
    """Assembles component lines and totals from pre-fetched inputs."""

    def compose(self, inputs: CompositionInputs) -> ComposedPayroll:
        builder = ComponentLineBuilder
        cents = builder.round_to_cents
        lines: list[ComponentLine] = []
        installment_ids: list[UUID] = []

        # 1) Earned base
        base_salary = cents(inputs.base_salary)
        if inputs.attendance_affects_salary:
            earned_base = cents(inputs.earned.earned_salary)
            attendance_deduction = cents(inputs.earned.total)
        else:
            earned_base = base_salary
            attendance_deduction = ZERO

        lines.append(
            builder.create_earning_line(
                "BASIC_SAL",
                "Basic Salary",
                earned_base,
                category="basic",
                details=f"Base salary {base_salary}, earned {earned_base}",
            )
        )
        if attendance_deduction > 0:
            shortfall = inputs.earned.shortfall_by_cause
            lines.append(
                builder.create_information_line(
                    "ATTENDANCE_SHORTFALL",
                    "Attendance Shortfall",
                    attendance_deduction,
                    details=(
                        f"unpaid_leave={shortfall.unpaid_leave}; "
                        f"time_variance={shortfall.time_variance}; "
                        f"absent_days={shortfall.absent_days}"
                    ),
                )
            )

        variables = {
            "BASE_SALARY": earned_base,
            "EARNED_SALARY": earned_base,
            "GROSS_BASE": base_salary,
            "WORKING_DAYS": Decimal(inputs.working_days),
            "DAILY_SALARY": (base_salary / inputs.working_days) if inputs.working_days else ZERO,
        }

        # 2) Configured components
        for component in inputs.configured_components:
            if not component.is_active:
                continue
            if not component_applies(
                component, inputs.employee_id, inputs.department_id, inputs.designation_id
            ):
                continue
            is_earning = component.component_type == ComponentType.EARNING.value
            amount = self._configured_amount(
                component,
                percentage_base=base_salary if is_earning else earned_base,
                variables=variables,
            )
            if amount <= 0:
                continue
            if is_earning:
                lines.append(
                    builder.create_earning_line(
                        component.component_code,
                        component.component_name,
                        amount,
                        category=component.category,
                        source_type="payroll_component",
                        source_id=component.id,
                    )
                )
            else:
                lines.append(
                    builder.create_deduction_line(
                        component.component_code,
                        component.component_name,
                        amount,
                        category=component.category,
                        source_type="payroll_component",
                        source_id=component.id,
                    )
                )

        # 3) Employee-specific components
        for item in inputs.employee_components:
            if not item.is_active:
                continue
            exhausted = item.remaining_installments is not None and item.remaining_installments <= 0
            if item.is_recurring and exhausted:
                continue
            if item.component_type == ComponentType.EARNING.value:
                amount = base_salary * item.amount / HUNDRED if item.is_percentage else item.amount
                if amount > 0:
                    lines.append(
                        builder.create_earning_line(
                            item.component_code,
                            item.component_name,
                            amount,
                            category="allowance",
                            source_type="employee_component",
                            source_id=item.id,
                        )
                    )
            else:
                amount = earned_base * item.amount / HUNDRED if item.is_percentage else item.amount
                if amount > 0:
                    lines.append(
                        builder.create_deduction_line(
                            item.component_code,
                            item.component_name,
                            amount,
                            category="employee",
                            source_type="employee_component",
                            source_id=item.id,
                        )
                    )
                    if item.is_recurring and item.remaining_installments is not None:
                        installment_ids.append(item.id)

        # Legacy rows
        for allowance in inputs.legacy_allowances:
            if allowance.is_active and allowance.amount > 0:
                lines.append(
                    builder.create_earning_line(
                        allowance.allowance_type.upper(),
                        allowance.allowance_type.replace("_", " ").title(),
                        allowance.amount,
                        category="allowance",
                    )
                )
        for deduction in inputs.legacy_deductions:
            if not deduction.is_active:
                continue
            amount = deduction.amount
            if deduction.is_percentage:
                amount = earned_base * deduction.amount / HUNDRED
            if amount > 0:
                lines.append(
                    builder.create_deduction_line(
                        deduction.deduction_type.upper(),
                        deduction.deduction_type.replace("_", " ").title(),
                        amount,
                        category="custom",
                    )
                )

        # 4) Bonuses and overtime
        for bonus in inputs.bonuses:
            lines.append(
                builder.create_earning_line(
                    bonus.code,
                    bonus.name,
                    bonus.amount,
                    category="bonus",
                    source_type=bonus.source_type,
                    source_id=bonus.source_id,
                )
            )
        lines.extend(self._overtime_lines(inputs))

        # 5) Installments
        for item in [*inputs.loans, *inputs.advances]:
            details = None
            if item.balance_before is not None:
                details = f"Balance before deduction {item.balance_before}"
            lines.append(
                builder.create_deduction_line(
                    item.code,
                    item.name,
                    item.amount,
                    category=item.source_type,
                    details=details,
                    source_type=item.source_type,
                    source_id=item.source_id,
                )
            )

        lines = [line for line in lines if line.amount > 0 or line.code == "BASIC_SAL"]
        gross = builder.total(lines, ComponentType.EARNING)
        total_deductions = builder.total(lines, ComponentType.DEDUCTION)

        # 6) Taxes
        total_taxes = ZERO
        if inputs.tax_brackets:
            tax = calculate_progressive_tax(gross, inputs.tax_brackets)
            if tax > 0:
                lines.append(builder.create_tax_line("INCOME_TAX", "Income Tax", tax))
                total_taxes = tax

        return ComposedPayroll(
            lines=lines,
            earned_base=earned_base,
            attendance_deduction=attendance_deduction,
            gross_salary=gross,
            total_deductions=total_deductions,
            total_taxes=total_taxes,
            taxable_income=gross,
            net_salary=gross - total_deductions - total_taxes,
            installment_component_ids=installment_ids,
        )

    def _configured_amount(
        self,
        component: PayrollComponent,
        percentage_base: Decimal,
        variables: dict[str, Decimal],
    ) -> Decimal:
        calculation_type = (component.calculation_type or "fixed").lower()
        value = component.calculation_value or ZERO
        if calculation_type == "percentage":
            return percentage_base * value / HUNDRED
        if calculation_type == "formula":
            return safe_evaluate(component.formula, variables)
        return value

    def _overtime_lines(self, inputs: CompositionInputs) -> list[ComponentLine]:
        """``hours * base / (working_days * hours_per_day) * multiplier`` per kind of day."""
        overtime = inputs.overtime
        if not overtime.enabled or overtime.multipliers is None:
            return []
        denominator = Decimal(inputs.working_days) * overtime.hours_per_day
        if denominator <= 0:
            return []
        hourly = inputs.base_salary / denominator
        multipliers = {
            "weekday": overtime.multipliers.weekday,
            "weekend": overtime.multipliers.weekend,
            "holiday": overtime.multipliers.holiday,
            "optional_holiday": overtime.multipliers.optional_holiday,
        }

        lines = []
        for kind, (code, name) in OVERTIME_LINES.items():
            hours = overtime.hours.get(kind, ZERO)
            if hours <= 0:
                continue
            multiplier = multipliers[kind]
            lines.append(
                ComponentLineBuilder.create_earning_line(
                    code,
                    name,
                    hours * hourly * multiplier,
                    category="overtime",
                    details=f"{hours}h x {ComponentLineBuilder.round_internal(hourly)} x {multiplier}",
                )
            )
        return lines
