"""Payroll run service - orchestrates the run lifecycle.

A run goes draft -> calculating -> calculated (-> review -> approved) ->
processing -> completed. Draft records carry each employee's rate block,
which calculation reads but never rewrites. Every public mutation is one
transaction: committed on success, rolled back and re-raised on error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attendance_payroll.calculators.composition import (
    ComposedPayroll,
    CompositionInputs,
    OvertimeInputs,
    PayrollComposer,
)
from attendance_payroll.calculators.earned_salary import EarnedSalaryEngine
from attendance_payroll.calculators.line_builder import ComponentLineBuilder
from attendance_payroll.calculators.pay_cycle import PayCycleResolver
from attendance_payroll.calculators.rate_precompute import RatePrecomputer
from attendance_payroll.calculators.types import (
    ZERO,
    CalculationStatus,
    EarnedSalaryResult,
    RateBlock,
    TaxBracket,
)
from attendance_payroll.calculators.working_calendar import WorkingCalendar
from attendance_payroll.config import get_settings
from attendance_payroll.errors import (
    DuplicateRunError,
    PayrollConfigurationError,
    PayrollPeriodNotFoundError,
    PayrollRunNotFoundError,
)
from attendance_payroll.models import (
    Department,
    Designation,
    Employee,
    EmployeeAllowance,
    EmployeeDeduction,
    EmployeePayComponent,
    PayrollAuditLog,
    PayrollComponent,
    PayrollPeriod,
    PayrollRecord,
    PayrollRecordComponent,
    PayrollRun,
)
from attendance_payroll.run_log import PayrollEventLogger
from attendance_payroll.services.financial_records import FinancialRecordsService
from attendance_payroll.services.settings_service import OvertimeMultipliers, SettingsService
from attendance_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)

ACTIVE_EMPLOYMENT_STATUS = "active"


def _status_count(status: CalculationStatus) -> Any:
    matches = case((PayrollRecord.calculation_status == status.value, 1), else_=0)
    return func.coalesce(func.sum(matches), 0)


class ApprovalLevel(str, Enum):
    """Approval steps for a calculated run."""

    REVIEW = "review"
    APPROVE = "approve"


@dataclass
class RunOperationResult:
    """Outcome of a run-level operation."""

    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class EmployeeFilters:
    """Optional narrowing of the employees included in a new run."""

    department_ids: list[UUID] | None = None
    employee_types: list[str] | None = None
    employee_ids: list[UUID] | None = None


@dataclass
class RunContext:
    """Client-level inputs shared by every record of a run."""

    client_id: UUID
    configured_components: list[PayrollComponent] = field(default_factory=list)
    tax_brackets: list[TaxBracket] | None = None
    overtime_enabled: bool = False
    overtime_multipliers: OvertimeMultipliers | None = None
    hours_per_day: Decimal = Decimal("8")


class RecordCalculator:
    """Computes one record's earned salary and component lines without writing."""

    def __init__(
        self,
        session: AsyncSession,
        settings: SettingsService,
        engine: EarnedSalaryEngine,
        financials: FinancialRecordsService,
        composer: PayrollComposer | None = None,
    ):
        self.session = session
        self.settings = settings
        self.engine = engine
        self.financials = financials
        self.composer = composer or PayrollComposer()

    async def load_context(self, client_id: UUID) -> RunContext:
        result = await self.session.execute(
            select(PayrollComponent)
            .where(PayrollComponent.client_id == client_id, PayrollComponent.is_active.is_(True))
            .order_by(PayrollComponent.component_type, PayrollComponent.component_code)
        )
        overtime_enabled = await self.settings.overtime_enabled(client_id)
        return RunContext(
            client_id=client_id,
            configured_components=list(result.scalars().all()),
            tax_brackets=await self.settings.tax_brackets(client_id),
            overtime_enabled=overtime_enabled,
            overtime_multipliers=await self.settings.overtime_multipliers(client_id),
            hours_per_day=await self.settings.working_hours_per_day(client_id),
        )

    async def compute(
        self,
        record: PayrollRecord,
        context: RunContext,
        include_live_session: bool = False,
    ) -> tuple[EarnedSalaryResult, ComposedPayroll]:
        earned = await self.engine.calculate_for_record(record, include_live_session=include_live_session)
        employee = await self.session.get(Employee, record.employee_id)
        if employee is None:
            raise PayrollConfigurationError(f"Employee not found: {record.employee_id}", record.employee_id)

        adjustments = await self.financials.get_period_adjustments(employee.id, earned.period)
        employee_components = await self.session.execute(
            select(EmployeePayComponent)
            .where(EmployeePayComponent.employee_id == employee.id, EmployeePayComponent.is_active.is_(True))
            .order_by(EmployeePayComponent.component_code)
        )
        allowances = await self.session.execute(
            select(EmployeeAllowance).where(
                EmployeeAllowance.employee_id == employee.id,
                EmployeeAllowance.is_active.is_(True),
            )
        )
        deductions = await self.session.execute(
            select(EmployeeDeduction).where(
                EmployeeDeduction.employee_id == employee.id,
                EmployeeDeduction.is_active.is_(True),
            )
        )

        inputs = CompositionInputs(
            employee_id=employee.id,
            department_id=employee.department_id,
            designation_id=employee.designation_id,
            base_salary=record.base_salary,
            attendance_affects_salary=record.attendance_affects_salary,
            working_days=RateBlock.from_record(record).total_working_days,
            earned=earned,
            configured_components=context.configured_components,
            employee_components=list(employee_components.scalars().all()),
            legacy_allowances=list(allowances.scalars().all()),
            legacy_deductions=list(deductions.scalars().all()),
            loans=adjustments.loans,
            advances=adjustments.advances,
            bonuses=adjustments.bonuses,
            overtime=OvertimeInputs(
                enabled=context.overtime_enabled,
                hours=earned.overtime_hours,
                multipliers=context.overtime_multipliers,
                hours_per_day=context.hours_per_day,
            ),
            tax_brackets=context.tax_brackets,
        )
        return earned, self.composer.compose(inputs)


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_payroll_run: Draft run with one rate-fixed record per employee
    - calculate_payroll_run: Earned salary and components for every record
    - approve_payroll_run: Review and approval steps
    - process_payroll_run: Pay records and apply financial balances
    - cancel_payroll_run: Audit, then delete the run and its records
    """

    def __init__(
        self,
        session: AsyncSession,
        events: PayrollEventLogger | None = None,
        clock: Callable[[], datetime] = datetime.now,
        record_timeout: float | None = None,
    ):
        self.session = session
        self.events = events or PayrollEventLogger()
        self.clock = clock
        self.record_timeout = (
            record_timeout if record_timeout is not None else get_settings().record_timeout_seconds
        )
        self.settings = SettingsService(session)
        self.calendar = WorkingCalendar(session, self.settings)
        self.pay_cycles = PayCycleResolver(session)
        self.rates = RatePrecomputer(session, self.settings, self.calendar)
        self.engine = EarnedSalaryEngine(
            session, self.settings, self.calendar, clock=clock, events=self.events
        )
        self.financials = FinancialRecordsService(session, self.events)
        self.calculator = RecordCalculator(session, self.settings, self.engine, self.financials)

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_run(
        self,
        run_id: UUID,
        client_id: UUID,
        load_period: bool = True,
    ) -> PayrollRun:
        """Load a run for a client, raising PayrollRunNotFoundError if missing."""
        options = [selectinload(PayrollRun.period)] if load_period else []
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.id == run_id, PayrollRun.client_id == client_id)
            .options(*options)
        )
        run = result.scalar_one_or_none()
        if run is None:
            raise PayrollRunNotFoundError(run_id, client_id)
        return run

    async def list_runs(
        self,
        client_id: UUID,
        status: str | None = None,
        period_id: UUID | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[PayrollRun], int]:
        """Runs for a client, newest first, with the unpaginated total."""
        query = select(PayrollRun).where(PayrollRun.client_id == client_id)
        if status:
            query = query.where(PayrollRun.run_status == status)
        if period_id:
            query = query.where(PayrollRun.period_id == period_id)

        total = await self.session.scalar(select(func.count()).select_from(query.subquery())) or 0
        query = query.order_by(PayrollRun.created_at.desc(), PayrollRun.run_number)
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def get_records(
        self,
        run_id: UUID,
        client_id: UUID,
        calculation_status: str | None = None,
    ) -> list[PayrollRecord]:
        """A run's records with their component lines."""
        await self.get_run(run_id, client_id, load_period=False)
        query = (
            select(PayrollRecord)
            .where(PayrollRecord.run_id == run_id)
            .options(selectinload(PayrollRecord.components))
            .execution_options(populate_existing=True)
            .order_by(PayrollRecord.employee_code)
        )
        if calculation_status:
            query = query.where(PayrollRecord.calculation_status == calculation_status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_run_summary(self, run_id: UUID, client_id: UUID) -> dict[str, Any]:
        """Totals, record status counts and employee period groups for a run."""
        run = await self.get_run(run_id, client_id)
        status_rows = await self.session.execute(
            select(PayrollRecord.calculation_status, func.count())
            .where(PayrollRecord.run_id == run_id)
            .group_by(PayrollRecord.calculation_status)
        )
        groups = await self.pay_cycles.get_unique_period_groups(run_id)
        return {
            "run_id": run.id,
            "run_number": run.run_number,
            "run_status": run.run_status,
            "period_start_date": run.period.period_start_date,
            "period_end_date": run.period.period_end_date,
            "total_employees": run.total_employees,
            "processed_employees": run.processed_employees,
            "error_employees": run.error_employees,
            "total_gross_amount": run.total_gross_amount,
            "total_deductions_amount": run.total_deductions_amount,
            "total_net_amount": run.total_net_amount,
            "records_by_status": {status: count for status, count in status_rows.all()},
            "cycle_summary": await self.pay_cycles.get_run_cycle_summary(run_id),
            "period_groups": [
                {
                    "start_date": g.start_date,
                    "end_date": g.end_date,
                    "uses_custom_cycle": g.uses_custom_cycle,
                    "employee_count": g.employee_count,
                }
                for g in groups
            ],
        }

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_payroll_run(
        self,
        client_id: UUID,
        period_id: UUID,
        run_type: str = "regular",
        run_name: str | None = None,
        filters: EmployeeFilters | None = None,
        created_by: UUID | None = None,
        notes: str | None = None,
    ) -> RunOperationResult:
        """Create a draft run with one pending, rate-fixed record per eligible employee."""
        async with self._unit_of_work():
            period = await self.session.scalar(
                select(PayrollPeriod).where(
                    PayrollPeriod.id == period_id,
                    PayrollPeriod.client_id == client_id,
                )
            )
            if period is None:
                raise PayrollPeriodNotFoundError(period_id, client_id)

            run_number = (
                f"{period.period_type.upper()}_{period.period_year}_"
                f"{period.period_number:02d}_{run_type.upper()}"
            )
            existing = await self.session.scalar(
                select(PayrollRun.id).where(
                    PayrollRun.client_id == client_id,
                    PayrollRun.run_number == run_number,
                )
            )
            if existing is not None:
                raise DuplicateRunError(run_number)

            run = PayrollRun(
                client_id=client_id,
                run_number=run_number,
                period_id=period.id,
                run_name=run_name or f"{period.period_type.title()} payroll {run_number}",
                run_type=run_type,
                run_status=PayrollRunStatus.DRAFT.value,
                notes=notes,
                created_by=created_by,
            )
            self.session.add(run)
            await self.session.flush()

            employees = await self._eligible_employees(client_id, filters)
            department_names = await self._names(Department, Department.name, client_id)
            designation_names = await self._names(Designation, Designation.title, client_id)

            for employee in employees:
                employee_period = await self.pay_cycles.calculate_employee_period(
                    employee.id, period.period_start_date, period.period_end_date
                )
                precomputed = await self.rates.precompute(employee, employee_period)
                self.session.add(
                    PayrollRecord(
                        run_id=run.id,
                        employee_id=employee.id,
                        employee_code=employee.employee_code,
                        employee_name=employee.full_name,
                        department_name=department_names.get(employee.department_id),
                        designation_name=designation_names.get(employee.designation_id),
                        base_salary=employee.base_salary or ZERO,
                        attendance_affects_salary=employee.attendance_affects_salary,
                        employee_period_start_date=employee_period.start_date,
                        employee_period_end_date=employee_period.end_date,
                        uses_custom_cycle=employee_period.uses_custom_cycle,
                        calculation_status=CalculationStatus.PENDING.value,
                        **precomputed.rate_block.as_dict(),
                    )
                )

            run.total_employees = len(employees)
            await self._record_audit(
                run.id,
                "run_created",
                created_by,
                details={"run_number": run_number, "total_employees": len(employees)},
            )
            await self.session.flush()

        self.events.info(
            "run_created",
            run_id=run.id,
            run_number=run_number,
            total_employees=len(employees),
        )
        return RunOperationResult(
            success=True,
            message=f"Payroll run {run_number} created with {len(employees)} employees",
            data={"run_id": run.id, "run_number": run_number, "total_employees": len(employees)},
        )

    async def _eligible_employees(self, client_id: UUID, filters: EmployeeFilters | None) -> list[Employee]:
        query = select(Employee).where(
            Employee.client_id == client_id,
            Employee.employment_status == ACTIVE_EMPLOYMENT_STATUS,
        )
        if filters is not None:
            if filters.department_ids:
                query = query.where(Employee.department_id.in_(filters.department_ids))
            if filters.employee_types:
                query = query.where(Employee.employee_type.in_(filters.employee_types))
            if filters.employee_ids:
                query = query.where(Employee.id.in_(filters.employee_ids))
        result = await self.session.execute(query.order_by(Employee.employee_code))
        return list(result.scalars().all())

    async def _names(self, model: Any, column: Any, client_id: UUID) -> dict[UUID, str]:
        result = await self.session.execute(select(model.id, column).where(model.client_id == client_id))
        return {row[0]: row[1] for row in result.all()}

    # ------------------------------------------------------------------
    # Calculate
    # ------------------------------------------------------------------

    async def calculate_payroll_run(
        self,
        run_id: UUID,
        client_id: UUID,
        user_id: UUID | None = None,
    ) -> RunOperationResult:
        """Calculate every record of a run.

        A failing record is marked ``error`` with its message and the run
        carries on. Recalculating a calculated run clears component lines and
        outputs but keeps each record's rate block.
        """
        async with self._unit_of_work():
            run = await self.get_run(run_id, client_id)
            status = run.run_status
            if not PayrollRunStateMachine.can_calculate(status):
                raise InvalidTransitionError(
                    status,
                    PayrollRunStatus.CALCULATING.value,
                    "Run must be draft or calculated to calculate",
                )

            recalculation = PayrollRunStateMachine.is_recalculation(status)
            if status != PayrollRunStatus.CALCULATING:
                PayrollRunStateMachine.validate_transition(status, PayrollRunStatus.CALCULATING)
                run.run_status = PayrollRunStatus.CALCULATING.value
            run.calculation_started_at = self.clock()
            if recalculation:
                await self._reset_records(run.id)
            await self.session.flush()

            self.events.info("run_calculation_started", run_id=run.id, recalculation=recalculation)
            context = await self.calculator.load_context(client_id)

            result = await self.session.execute(
                select(PayrollRecord).where(PayrollRecord.run_id == run.id).order_by(PayrollRecord.employee_code)
            )
            records = list(result.scalars().all())
            processed = 0
            errors = 0

            for record in records:
                try:
                    earned, composed = await asyncio.wait_for(
                        self.calculator.compute(record, context),
                        timeout=self.record_timeout,
                    )
                except asyncio.TimeoutError:
                    errors += 1
                    self._mark_error(
                        record, f"Calculation timed out after {self.record_timeout} seconds"
                    )
                    continue
                except Exception as e:
                    errors += 1
                    logger.warning("Calculation failed for employee %s: %s", record.employee_id, e)
                    self._mark_error(record, str(e))
                    continue

                await self._write_record(record, earned, composed)
                processed += 1
                self.events.debug(
                    "record_calculated",
                    run_id=run.id,
                    employee_id=record.employee_id,
                    gross_salary=composed.gross_salary,
                    net_salary=composed.net_salary,
                    attendance_deduction=composed.attendance_deduction,
                )

            await self.update_run_statistics(run)
            PayrollRunStateMachine.validate_transition(run.run_status, PayrollRunStatus.CALCULATED)
            run.run_status = PayrollRunStatus.CALCULATED.value
            run.calculation_completed_at = self.clock()
            await self._record_audit(
                run.id,
                "run_recalculated" if recalculation else "run_calculated",
                user_id,
                details={"processed": processed, "errors": errors},
            )
            await self.session.flush()

        self.events.info(
            "run_calculated",
            run_id=run.id,
            total=len(records),
            processed=processed,
            errors=errors,
        )
        message = f"Calculated {processed} of {len(records)} records"
        if errors:
            message += f" ({errors} with errors)"
        return RunOperationResult(
            success=True,
            message=message,
            data={
                "run_id": run.id,
                "total_employees": len(records),
                "processed_employees": processed,
                "error_employees": errors,
                "total_gross_amount": run.total_gross_amount,
                "total_net_amount": run.total_net_amount,
            },
        )

    async def _reset_records(self, run_id: UUID) -> None:
        record_ids = select(PayrollRecord.id).where(PayrollRecord.run_id == run_id)
        await self.session.execute(
            delete(PayrollRecordComponent).where(PayrollRecordComponent.record_id.in_(record_ids))
        )
        # calculated_at is kept so installments are only counted down once per record
        await self.session.execute(
            update(PayrollRecord)
            .where(PayrollRecord.run_id == run_id)
            .values(
                earned_salary=ZERO,
                attendance_deduction=ZERO,
                total_earnings=ZERO,
                total_deductions=ZERO,
                total_taxes=ZERO,
                gross_salary=ZERO,
                taxable_income=ZERO,
                net_salary=ZERO,
                calculation_status=CalculationStatus.PENDING.value,
                calculation_error=None,
            )
            .execution_options(synchronize_session="fetch")
        )

    def _mark_error(self, record: PayrollRecord, message: str) -> None:
        record.calculation_status = CalculationStatus.ERROR.value
        record.calculation_error = message
        self.events.error(
            "record_failed",
            run_id=record.run_id,
            employee_id=record.employee_id,
            error=message,
        )

    async def _write_record(
        self,
        record: PayrollRecord,
        earned: EarnedSalaryResult,
        composed: ComposedPayroll,
    ) -> None:
        for line in composed.lines:
            self.session.add(
                PayrollRecordComponent(
                    record_id=record.id,
                    component_code=line.code,
                    component_name=line.name,
                    component_type=line.component_type.value,
                    component_category=line.category,
                    calculated_amount=line.amount,
                    details=line.details,
                    source_type=line.source_type,
                    source_id=line.source_id,
                )
            )

        first_calculation = record.calculated_at is None
        record.earned_salary = composed.earned_base
        record.attendance_deduction = composed.attendance_deduction
        record.total_earnings = composed.total_earnings
        record.total_deductions = composed.total_deductions
        record.total_taxes = composed.total_taxes
        record.gross_salary = composed.gross_salary
        record.taxable_income = composed.taxable_income
        record.net_salary = composed.net_salary
        record.calculation_status = CalculationStatus.CALCULATED.value
        record.calculation_error = None
        record.calculated_at = self.clock()

        if first_calculation and composed.installment_component_ids:
            await self._count_down_installments(composed.installment_component_ids)

    async def _count_down_installments(self, component_ids: list[UUID]) -> None:
        result = await self.session.execute(
            select(EmployeePayComponent).where(EmployeePayComponent.id.in_(component_ids))
        )
        for component in result.scalars().all():
            if component.remaining_installments is None:
                continue
            component.remaining_installments = max(0, component.remaining_installments - 1)
            if component.remaining_installments == 0:
                component.is_active = False

    async def update_run_statistics(self, run: PayrollRun) -> None:
        """Recompute a run's counts and totals from its records."""
        await self.session.flush()
        row = (
            await self.session.execute(
                select(
                    func.count(),
                    _status_count(CalculationStatus.CALCULATED),
                    _status_count(CalculationStatus.ERROR),
                    func.coalesce(func.sum(PayrollRecord.gross_salary), 0),
                    func.coalesce(func.sum(PayrollRecord.total_deductions + PayrollRecord.total_taxes), 0),
                    func.coalesce(func.sum(PayrollRecord.net_salary), 0),
                ).where(PayrollRecord.run_id == run.id)
            )
        ).one()
        run.total_employees = int(row[0])
        run.processed_employees = int(row[1])
        run.error_employees = int(row[2])
        cents = ComponentLineBuilder.round_to_cents
        run.total_gross_amount = cents(Decimal(str(row[3])))
        run.total_deductions_amount = cents(Decimal(str(row[4])))
        run.total_net_amount = cents(Decimal(str(row[5])))

    # ------------------------------------------------------------------
    # Approve / process / cancel
    # ------------------------------------------------------------------

    async def approve_payroll_run(
        self,
        run_id: UUID,
        client_id: UUID,
        user_id: UUID | None = None,
        level: ApprovalLevel = ApprovalLevel.APPROVE,
    ) -> RunOperationResult:
        """Move a calculated run to review, or a calculated/reviewed run to approved."""
        async with self._unit_of_work():
            run = await self.get_run(run_id, client_id, load_period=False)
            from_status = run.run_status
            now = self.clock()

            if level == ApprovalLevel.REVIEW:
                PayrollRunStateMachine.validate_transition(from_status, PayrollRunStatus.REVIEW)
                run.run_status = PayrollRunStatus.REVIEW.value
                run.reviewed_by = user_id
                run.reviewed_at = now
            else:
                PayrollRunStateMachine.validate_transition(from_status, PayrollRunStatus.APPROVED)
                run.run_status = PayrollRunStatus.APPROVED.value
                run.approved_by = user_id
                run.approved_at = now

            await self._record_audit(
                run.id,
                f"status_change:{from_status}:{run.run_status}",
                user_id,
            )
            await self.session.flush()

        self.events.info("run_status_changed", run_id=run.id, from_status=from_status, to_status=run.run_status)
        return RunOperationResult(
            success=True,
            message=f"Payroll run {run.run_number} moved to {run.run_status}",
            data={"run_id": run.id, "run_status": run.run_status},
        )

    async def process_payroll_run(
        self,
        run_id: UUID,
        client_id: UUID,
        user_id: UUID | None = None,
        payment_date: date | None = None,
        payment_method: str | None = None,
    ) -> RunOperationResult:
        """Pay calculated records and apply loan, advance and bonus balances."""
        async with self._unit_of_work():
            run = await self.get_run(run_id, client_id)
            PayrollRunStateMachine.validate_transition(run.run_status, PayrollRunStatus.PROCESSING)
            run.run_status = PayrollRunStatus.PROCESSING.value
            await self.session.flush()

            paid_on = payment_date or run.period.pay_date or self.clock().date()
            payable = (
                PayrollRecord.run_id == run.id,
                PayrollRecord.calculation_status == CalculationStatus.CALCULATED.value,
            )
            records_paid = await self.session.scalar(select(func.count()).where(*payable)) or 0
            await self.session.execute(
                update(PayrollRecord)
                .where(*payable)
                .values(payment_status="paid", payment_date=paid_on, payment_method=payment_method)
                .execution_options(synchronize_session="fetch")
            )
            processed_at = self.clock()
            balances = await self.financials.update_financial_balances(run.id, user_id, paid_at=processed_at)

            PayrollRunStateMachine.validate_transition(run.run_status, PayrollRunStatus.COMPLETED)
            run.run_status = PayrollRunStatus.COMPLETED.value
            run.processed_by = user_id
            run.processed_at = processed_at
            await self._record_audit(
                run.id,
                "run_processed",
                user_id,
                details={"records_paid": records_paid, "payment_date": paid_on.isoformat()},
            )
            await self.session.flush()

        self.events.info("run_processed", run_id=run.id, records_paid=records_paid)
        return RunOperationResult(
            success=True,
            message=f"Payroll run {run.run_number} processed",
            data={
                "run_id": run.id,
                "run_status": run.run_status,
                "records_paid": records_paid,
                "loans_updated": balances.loans_updated,
                "advances_updated": balances.advances_updated,
                "bonuses_paid": balances.bonuses_paid,
            },
        )

    async def cancel_payroll_run(
        self,
        run_id: UUID,
        client_id: UUID,
        user_id: UUID | None = None,
        reason: str | None = None,
    ) -> RunOperationResult:
        """Delete a draft, calculated or reviewed run with its records and components."""
        async with self._unit_of_work():
            run = await self.get_run(run_id, client_id, load_period=False)
            PayrollRunStateMachine.validate_cancel(run.run_status)
            run_number = run.run_number

            record_ids = select(PayrollRecord.id).where(PayrollRecord.run_id == run.id)
            record_count = await self.session.scalar(
                select(func.count()).where(PayrollRecord.run_id == run.id)
            )
            await self._record_audit(
                run.id,
                "run_cancelled",
                user_id,
                details={
                    "run_number": run_number,
                    "run_status": run.run_status,
                    "records": record_count,
                    "reason": reason,
                },
            )
            await self.session.execute(
                delete(PayrollRecordComponent).where(PayrollRecordComponent.record_id.in_(record_ids))
            )
            await self.session.execute(delete(PayrollRecord).where(PayrollRecord.run_id == run.id))
            await self.session.delete(run)
            await self.session.flush()

        self.events.info("run_cancelled", run_id=run_id, run_number=run_number, reason=reason)
        return RunOperationResult(
            success=True,
            message=f"Payroll run {run_number} cancelled",
            data={"run_id": run_id, "records_deleted": record_count},
        )

    async def _record_audit(
        self,
        run_id: UUID,
        action: str,
        user_id: UUID | None = None,
        record_id: UUID | None = None,
        employee_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit log entry."""
        self.session.add(
            PayrollAuditLog(
                run_id=run_id,
                record_id=record_id,
                employee_id=employee_id,
                action=action,
                user_id=user_id,
                new_value=details,
            )
        )
