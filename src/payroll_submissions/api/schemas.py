"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_submissions.calculators.types import EntryInput, PayrollGroup


# ============================================================================
# Period schemas
# ============================================================================


class PeriodResponse(BaseModel):
    """Payroll group and work period for a pay date."""

    pay_date: date
    payroll_group: PayrollGroup
    period_start: date
    period_end: date


# ============================================================================
# Employee schemas
# ============================================================================


class EmployeeResponse(BaseModel):
    """Active employee with the rates relevant to their compensation type."""

    employee_id: UUID
    first_name: str
    last_name: str
    full_name: str
    payroll_group: PayrollGroup
    compensation_type: str
    hourly_rate: Decimal | None = None
    piece_rate: Decimal | None = None
    fixed_pay: Decimal | None = None


class EmployeeListResponse(BaseModel):
    items: list[EmployeeResponse]
    total: int


# ============================================================================
# Entry and submission schemas
# ============================================================================


class EntryPayload(BaseModel):
    """Measures for one employee. Amounts are always recomputed server-side."""

    employee_id: UUID
    hours: Decimal | None = None
    units: Decimal | None = None
    count: Decimal | None = None
    adjustment: Decimal | None = None
    notes: str | None = Field(default=None, max_length=2000)

    def to_input(self) -> EntryInput:
        return EntryInput(
            employee_id=self.employee_id,
            hours=self.hours,
            units=self.units,
            count=self.count,
            adjustment=self.adjustment,
            notes=self.notes,
        )


class SubmissionPayload(BaseModel):
    """Body for saving a draft or submitting."""

    location_id: UUID
    pay_date: date
    payroll_group: PayrollGroup
    entries: list[EntryPayload] = Field(default_factory=list)

    def to_inputs(self) -> list[EntryInput]:
        return [entry.to_input() for entry in self.entries]


class RejectRequest(BaseModel):
    note: str | None = None


class EntryResponse(BaseModel):
    """Schema for a stored entry."""

    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID
    employee_id: UUID
    employee_name: str | None = None
    hours: Decimal | None = None
    units: Decimal | None = None
    count: Decimal | None = None
    adjustment: Decimal | None = None
    amount: Decimal
    notes: str | None = None
    status: str


class SubmissionResponse(BaseModel):
    """Schema for submission response."""

    model_config = ConfigDict(from_attributes=True)

    submission_id: UUID
    submission_number: str
    organization_id: UUID
    location_id: UUID
    location_name: str | None = None
    pay_date: date
    payroll_group: str
    period_start: date
    period_end: date
    status: str
    total_amount: Decimal
    employee_count: int
    submitted_by: UUID | None = None
    submitted_at: datetime | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    processed_at: datetime | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_note: str | None = None
    last_saved_at: datetime | None = None
    created_at: datetime


class SubmissionListResponse(BaseModel):
    items: list[SubmissionResponse]
    total: int


class AuditRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    approval_id: UUID
    action: str
    actor_id: UUID
    previous_status: str
    notes: str | None = None
    created_at: datetime


class SubmissionDetailResponse(SubmissionResponse):
    """Submission with its entries and reviewer history."""

    entries: list[EntryResponse] = Field(default_factory=list)
    history: list[AuditRecordResponse] = Field(default_factory=list)


class EditableSubmissionResponse(BaseModel):
    """Draft or rejected submission an editor can resume, if any."""

    submission: SubmissionResponse | None = None
    entries: list[EntryResponse] = Field(default_factory=list)
    rejection_note: str | None = None


class DraftSaveResponse(BaseModel):
    """Schema for a draft save outcome."""

    saved: bool
    submission_id: UUID | None = None
    saved_at: datetime | None = None
    employee_count: int = 0
    total_amount: Decimal | None = None
    total_hours: Decimal | None = None
    reason: str | None = None
    excluded_employee_ids: list[UUID] = Field(default_factory=list)


class SubmitResponse(BaseModel):
    submission: SubmissionResponse
    resubmitted: bool
    excluded_employee_ids: list[UUID] = Field(default_factory=list)


class ApprovalResponse(BaseModel):
    """Schema for approval/posting outcome."""

    submission_id: UUID
    status: str
    payments_created: int
    resumed: bool


# ============================================================================
# Reporting schemas
# ============================================================================


class LocationStatusResponse(BaseModel):
    location_id: UUID
    location_name: str
    status: str
    submission_id: UUID | None = None


class PaymentResponse(BaseModel):
    """Schema for a posted payment."""

    model_config = ConfigDict(from_attributes=True)

    payment_id: UUID
    submission_id: UUID
    employee_id: UUID
    location_id: UUID
    first_name: str
    last_name: str
    department: str
    payment_date: date
    total_amount: Decimal
    payment_method: str
    payroll_group: str
    hours: Decimal | None = None
    units: Decimal | None = None
    count: Decimal | None = None
    adjustment: Decimal | None = None
    source: str


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    total: int
    total_amount: Decimal


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
