"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from attendance_payroll.api.dependencies import ClientId, DbSession, EventLogger
from attendance_payroll.api.schemas import (
    ApprovalRequest,
    CalculateRequest,
    CancelRequest,
    ErrorResponse,
    LivePreviewResponse,
    PayrollRecordListResponse,
    PayrollRecordResponse,
    PayrollRunCreate,
    PayrollRunListResponse,
    PayrollRunResponse,
    ProcessRequest,
    RunOperationResponse,
    RunSummaryResponse,
)
from attendance_payroll.services.live_payroll import LivePayrollService
from attendance_payroll.services.payroll_run_service import (
    ApprovalLevel,
    EmployeeFilters,
    PayrollRunService,
    RunOperationResult,
)

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])


def _operation_response(result: RunOperationResult) -> RunOperationResponse:
    return RunOperationResponse(success=result.success, message=result.message, data=result.data)


# ============================================================================
# Payroll run CRUD
# ============================================================================


@router.post(
    "",
    response_model=RunOperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_payroll_run(
    db: DbSession,
    client_id: ClientId,
    events: EventLogger,
    payload: PayrollRunCreate,
) -> RunOperationResponse:
    """Create a draft payroll run for a period."""
    service = PayrollRunService(db, events=events)
    result = await service.create_payroll_run(
        client_id,
        payload.period_id,
        run_type=payload.run_type,
        run_name=payload.run_name,
        filters=EmployeeFilters(
            department_ids=payload.department_ids,
            employee_types=payload.employee_types,
            employee_ids=payload.employee_ids,
        ),
        created_by=payload.created_by,
        notes=payload.notes,
    )
    return _operation_response(result)


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    db: DbSession,
    client_id: ClientId,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    period_id: UUID | None = None,
) -> PayrollRunListResponse:
    """List payroll runs for a client with optional filters."""
    runs, total = await PayrollRunService(db).list_runs(
        client_id,
        status=status_filter,
        period_id=period_id,
        page=page,
        page_size=page_size,
    )
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(run) for run in runs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    db: DbSession,
    client_id: ClientId,
    run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a specific payroll run by ID."""
    run = await PayrollRunService(db).get_run(run_id, client_id, load_period=False)
    return PayrollRunResponse.model_validate(run)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post(
    "/{run_id}/calculate",
    response_model=RunOperationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def calculate_payroll_run(
    db: DbSession,
    client_id: ClientId,
    events: EventLogger,
    run_id: Annotated[UUID, Path()],
    payload: CalculateRequest | None = None,
) -> RunOperationResponse:
    """Calculate (or recalculate) every record in a run."""
    user_id = payload.user_id if payload else None
    service = PayrollRunService(db, events=events)
    return _operation_response(await service.calculate_payroll_run(run_id, client_id, user_id))


@router.post(
    "/{run_id}/approve",
    response_model=RunOperationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_payroll_run(
    db: DbSession,
    client_id: ClientId,
    events: EventLogger,
    run_id: Annotated[UUID, Path()],
    payload: ApprovalRequest | None = None,
) -> RunOperationResponse:
    """Review or approve a calculated run."""
    payload = payload or ApprovalRequest()
    service = PayrollRunService(db, events=events)
    result = await service.approve_payroll_run(
        run_id,
        client_id,
        user_id=payload.user_id,
        level=ApprovalLevel(payload.level),
    )
    return _operation_response(result)


@router.post(
    "/{run_id}/process",
    response_model=RunOperationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def process_payroll_run(
    db: DbSession,
    client_id: ClientId,
    events: EventLogger,
    run_id: Annotated[UUID, Path()],
    payload: ProcessRequest | None = None,
) -> RunOperationResponse:
    """Pay a calculated or approved run."""
    payload = payload or ProcessRequest()
    service = PayrollRunService(db, events=events)
    result = await service.process_payroll_run(
        run_id,
        client_id,
        user_id=payload.user_id,
        payment_date=payload.payment_date,
        payment_method=payload.payment_method,
    )
    return _operation_response(result)


@router.post(
    "/{run_id}/cancel",
    response_model=RunOperationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_payroll_run(
    db: DbSession,
    client_id: ClientId,
    events: EventLogger,
    run_id: Annotated[UUID, Path()],
    payload: CancelRequest | None = None,
) -> RunOperationResponse:
    """Cancel and delete a run that has not been processed."""
    payload = payload or CancelRequest()
    service = PayrollRunService(db, events=events)
    result = await service.cancel_payroll_run(
        run_id,
        client_id,
        user_id=payload.user_id,
        reason=payload.reason,
    )
    return _operation_response(result)


# ============================================================================
# Records and reporting
# ============================================================================


@router.get(
    "/{run_id}/records",
    response_model=PayrollRecordListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_payroll_records(
    db: DbSession,
    client_id: ClientId,
    run_id: Annotated[UUID, Path()],
    calculation_status: str | None = None,
) -> PayrollRecordListResponse:
    """List a run's records with their component lines."""
    records = await PayrollRunService(db).get_records(run_id, client_id, calculation_status)
    return PayrollRecordListResponse(
        items=[PayrollRecordResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get(
    "/{run_id}/summary",
    response_model=RunSummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run_summary(
    db: DbSession,
    client_id: ClientId,
    run_id: Annotated[UUID, Path()],
) -> RunSummaryResponse:
    """Totals, record status counts and pay cycle groups for a run."""
    summary = await PayrollRunService(db).get_run_summary(run_id, client_id)
    return RunSummaryResponse.model_validate(summary)


@router.get(
    "/{run_id}/records/{employee_id}/live",
    response_model=LivePreviewResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def live_payroll_preview(
    db: DbSession,
    client_id: ClientId,
    events: EventLogger,
    run_id: Annotated[UUID, Path()],
    employee_id: Annotated[UUID, Path()],
) -> LivePreviewResponse:
    """Payroll for one employee including today's open attendance session."""
    preview = await LivePayrollService(db, events=events).preview_employee(run_id, client_id, employee_id)
    return LivePreviewResponse.model_validate(preview.to_dict())
