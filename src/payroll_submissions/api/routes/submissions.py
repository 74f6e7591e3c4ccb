"""Payroll submission API endpoints."""

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payroll_submissions.api.dependencies import CurrentActor, DbSession, Periods
from payroll_submissions.api.schemas import (
    ApprovalResponse,
    AuditRecordResponse,
    DraftSaveResponse,
    EditableSubmissionResponse,
    EmployeeListResponse,
    EmployeeResponse,
    EntryResponse,
    ErrorResponse,
    LocationStatusResponse,
    PaymentListResponse,
    PaymentResponse,
    PeriodResponse,
    RejectRequest,
    SubmissionDetailResponse,
    SubmissionListResponse,
    SubmissionPayload,
    SubmissionResponse,
    SubmitResponse,
)
from payroll_submissions.calculators.period import PeriodCalculator
from payroll_submissions.calculators.types import PayrollGroup
from payroll_submissions.errors import ValidationError
from payroll_submissions.models import PayrollSubmission
from payroll_submissions.services.approval_poster import ApprovalPoster
from payroll_submissions.services.directory import SqlEmployeeDirectory, SqlLocationDirectory
from payroll_submissions.services.draft_store import DraftStore
from payroll_submissions.services.review_service import ReviewService
from payroll_submissions.services.roles import Capability, require
from payroll_submissions.services.state_machine import SubmissionStatus
from payroll_submissions.services.submission_service import SubmissionService

router = APIRouter(tags=["submissions"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _submission_response(
    submission: PayrollSubmission, location_name: str | None = None
) -> SubmissionResponse:
    response = SubmissionResponse.model_validate(submission)
    response.location_name = location_name
    return response


# ============================================================================
# Periods
# ============================================================================


@router.get("/periods", response_model=PeriodResponse, responses=ERROR_RESPONSES)
async def get_period(
    periods: Periods,
    pay_date: Annotated[str, Query(description="Pay date as YYYY-MM-DD")],
) -> PeriodResponse:
    """Derive the payroll group and work period for a pay date."""
    period = periods.calculate_from_string(pay_date)
    if not period.is_valid:
        raise ValidationError("Invalid pay date", {"pay_date": pay_date})
    return PeriodResponse(
        pay_date=period.pay_date,
        payroll_group=period.payroll_group,
        period_start=period.period_start,
        period_end=period.period_end,
    )


@router.get("/periods/default", response_model=PeriodResponse)
async def get_default_period(periods: Periods) -> PeriodResponse:
    """Period for the next Friday on or after today."""
    period = periods.calculate(PeriodCalculator.next_pay_date(date.today()))
    return PeriodResponse(
        pay_date=period.pay_date,
        payroll_group=period.payroll_group,
        period_start=period.period_start,
        period_end=period.period_end,
    )


# ============================================================================
# Locations
# ============================================================================


@router.get(
    "/locations/status",
    response_model=list[LocationStatusResponse],
    responses=ERROR_RESPONSES,
)
async def location_status_board(
    db: DbSession,
    actor: CurrentActor,
    pay_date: date,
) -> list[LocationStatusResponse]:
    """Submission progress of every location for a pay date."""
    board = await ReviewService(db).location_status_board(actor, pay_date)
    return [
        LocationStatusResponse(
            location_id=row.location_id,
            location_name=row.location_name,
            status=row.status,
            submission_id=row.submission_id,
        )
        for row in board
    ]


@router.get(
    "/locations/{location_id}/employees",
    response_model=EmployeeListResponse,
    responses=ERROR_RESPONSES,
)
async def list_location_employees(
    db: DbSession,
    actor: CurrentActor,
    location_id: Annotated[UUID, Path()],
    payroll_group: PayrollGroup | None = None,
) -> EmployeeListResponse:
    """Active employees of a location, optionally for one payroll group."""
    location = await SqlLocationDirectory(db).get(location_id)
    require(actor, Capability.SAVE_DRAFT, location.organization_id, location_id)

    employees = await SqlEmployeeDirectory(db).list_active(location_id, payroll_group)
    return EmployeeListResponse(
        items=[
            EmployeeResponse(
                employee_id=emp.employee_id,
                first_name=emp.first_name,
                last_name=emp.last_name,
                full_name=emp.full_name,
                payroll_group=emp.payroll_group,
                compensation_type=emp.profile.compensation_type.value,
                hourly_rate=emp.profile.hourly_rate,
                piece_rate=emp.profile.piece_rate,
                fixed_pay=emp.profile.fixed_pay,
            )
            for emp in employees
        ],
        total=len(employees),
    )


@router.get(
    "/locations/{location_id}/editable",
    response_model=EditableSubmissionResponse,
    responses=ERROR_RESPONSES,
)
async def get_editable_submission(
    db: DbSession,
    actor: CurrentActor,
    location_id: Annotated[UUID, Path()],
    pay_date: date,
    payroll_group: PayrollGroup,
) -> EditableSubmissionResponse:
    """Latest draft or rejected submission for the key, to resume editing."""
    editable = await SubmissionService(db).get_editable(actor, location_id, pay_date, payroll_group)
    if editable is None:
        return EditableSubmissionResponse()
    return EditableSubmissionResponse(
        submission=_submission_response(editable.submission),
        entries=[EntryResponse.model_validate(entry) for entry in editable.entries],
        rejection_note=editable.rejection_note,
    )


# ============================================================================
# Drafts and submissions
# ============================================================================


@router.put("/drafts", response_model=DraftSaveResponse, responses=ERROR_RESPONSES)
async def save_draft(
    db: DbSession,
    actor: CurrentActor,
    payload: SubmissionPayload,
) -> DraftSaveResponse:
    """Auto-save a draft. Failures are reported in the body, not as errors."""
    result = await DraftStore(db).save_draft(
        actor, payload.location_id, payload.pay_date, payload.payroll_group, payload.to_inputs()
    )
    return DraftSaveResponse(
        saved=result.saved,
        submission_id=result.submission_id,
        saved_at=result.saved_at,
        employee_count=result.employee_count,
        total_amount=result.total_amount,
        total_hours=result.total_hours,
        reason=result.reason,
        excluded_employee_ids=result.excluded_employee_ids,
    )


@router.post(
    "/submissions",
    response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def submit(
    db: DbSession,
    actor: CurrentActor,
    payload: SubmissionPayload,
) -> SubmitResponse:
    """Submit (or resubmit) a location's payroll for review."""
    result = await SubmissionService(db).submit(
        actor, payload.location_id, payload.pay_date, payload.payroll_group, payload.to_inputs()
    )
    return SubmitResponse(
        submission=_submission_response(result.submission),
        resubmitted=result.resubmitted,
        excluded_employee_ids=result.excluded_employee_ids,
    )


@router.get("/submissions", response_model=SubmissionListResponse, responses=ERROR_RESPONSES)
async def list_submissions(
    db: DbSession,
    actor: CurrentActor,
    status_filter: Annotated[SubmissionStatus, Query(alias="status")] = SubmissionStatus.PENDING,
    pay_date: date | None = None,
) -> SubmissionListResponse:
    """List submissions for review, pending by default."""
    summaries = await ReviewService(db).list_submissions(actor, status_filter, pay_date)
    return SubmissionListResponse(
        items=[_submission_response(s.submission, s.location_name) for s in summaries],
        total=len(summaries),
    )


@router.get(
    "/submissions/{submission_id}",
    response_model=SubmissionDetailResponse,
    responses=ERROR_RESPONSES,
)
async def get_submission(
    db: DbSession,
    actor: CurrentActor,
    submission_id: Annotated[UUID, Path()],
) -> SubmissionDetailResponse:
    """Submission detail with employee names and reviewer history."""
    detail = await ReviewService(db).get_submission(actor, submission_id)
    base = _submission_response(detail.submission, detail.location_name)

    entries = []
    for item in detail.entries:
        entry = EntryResponse.model_validate(item.entry)
        entry.employee_name = item.employee_name
        entries.append(entry)

    return SubmissionDetailResponse(
        **base.model_dump(),
        entries=entries,
        history=[AuditRecordResponse.model_validate(r) for r in detail.history],
    )


@router.post(
    "/submissions/{submission_id}/approve",
    response_model=ApprovalResponse,
    responses=ERROR_RESPONSES,
)
async def approve_submission(
    db: DbSession,
    actor: CurrentActor,
    submission_id: Annotated[UUID, Path()],
) -> ApprovalResponse:
    """Approve and post a pending submission.

    Retrying after a 503 resumes an interrupted posting without duplicating
    payments.
    """
    result = await ApprovalPoster(db).approve(actor, submission_id)
    return ApprovalResponse(
        submission_id=result.submission_id,
        status=result.status,
        payments_created=result.payments_created,
        resumed=result.resumed,
    )


@router.post(
    "/submissions/{submission_id}/reject",
    response_model=SubmissionResponse,
    responses=ERROR_RESPONSES,
)
async def reject_submission(
    db: DbSession,
    actor: CurrentActor,
    submission_id: Annotated[UUID, Path()],
    payload: RejectRequest,
) -> SubmissionResponse:
    """Reject a pending submission with a note for the location."""
    submission = await SubmissionService(db).reject(actor, submission_id, payload.note)
    return _submission_response(submission)


# ============================================================================
# Payments
# ============================================================================


@router.get("/payments", response_model=PaymentListResponse, responses=ERROR_RESPONSES)
async def list_payments(
    db: DbSession,
    actor: CurrentActor,
    start: date | None = None,
    end: date | None = None,
    location_id: UUID | None = None,
) -> PaymentListResponse:
    """Posted payments by date range and location."""
    payments = await ReviewService(db).list_payments(actor, start, end, location_id)
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(p) for p in payments],
        total=len(payments),
        total_amount=sum((p.total_amount for p in payments), Decimal("0.00")),
    )
