"""Read-only views for reviewers and reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.errors import NotFoundError
from payroll_submissions.models import (
    ApprovalAuditRecord,
    Employee,
    Location,
    Payment,
    PayrollEntry,
    PayrollSubmission,
)
from payroll_submissions.services.audit import AuditLog
from payroll_submissions.services.roles import Actor, Capability, Role, require
from payroll_submissions.services.state_machine import SubmissionStatus

LOCATION_APPROVED = "approved"
LOCATION_PENDING = "pending"
LOCATION_NOT_SUBMITTED = "not_submitted"


@dataclass
class SubmissionSummary:
    submission: PayrollSubmission
    location_name: str


@dataclass
class EntryDetail:
    entry: PayrollEntry
    employee_name: str


@dataclass
class SubmissionDetail:
    """A submission with named entries and its reviewer history."""

    submission: PayrollSubmission
    location_name: str
    entries: list[EntryDetail] = field(default_factory=list)
    history: list[ApprovalAuditRecord] = field(default_factory=list)


@dataclass(frozen=True)
class LocationStatus:
    location_id: UUID
    location_name: str
    status: str
    submission_id: UUID | None = None


class ReviewService:
    """Pending queue, submission detail, location status board and payments."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditLog(session)

    async def list_submissions(
        self,
        actor: Actor,
        status: SubmissionStatus | str = SubmissionStatus.PENDING,
        pay_date: date | None = None,
    ) -> list[SubmissionSummary]:
        """Submissions in one status, oldest submitted first."""
        require(actor, Capability.REVIEW, actor.organization_id)
        query = (
            select(PayrollSubmission, Location.name)
            .join(Location, Location.location_id == PayrollSubmission.location_id)
            .where(PayrollSubmission.status == SubmissionStatus(status).value)
            .order_by(PayrollSubmission.submitted_at, PayrollSubmission.created_at)
            .execution_options(populate_existing=True)
        )
        if actor.role != Role.SUPER_ADMIN:
            query = query.where(PayrollSubmission.organization_id == actor.organization_id)
        if pay_date is not None:
            query = query.where(PayrollSubmission.pay_date == pay_date)

        result = await self.session.execute(query)
        return [SubmissionSummary(submission, name) for submission, name in result.all()]

    async def list_pending(self, actor: Actor) -> list[SubmissionSummary]:
        return await self.list_submissions(actor, SubmissionStatus.PENDING)

    async def get_submission(self, actor: Actor, submission_id: UUID) -> SubmissionDetail:
        result = await self.session.execute(
            select(PayrollSubmission, Location.name)
            .join(Location, Location.location_id == PayrollSubmission.location_id)
            .where(PayrollSubmission.submission_id == submission_id)
            .execution_options(populate_existing=True)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Submission not found", {"submission_id": str(submission_id)})
        submission, location_name = row
        require(actor, Capability.REVIEW, submission.organization_id, submission.location_id)

        entries = await self.session.execute(
            select(PayrollEntry, Employee.first_name, Employee.last_name)
            .join(Employee, Employee.employee_id == PayrollEntry.employee_id)
            .where(PayrollEntry.submission_id == submission_id)
            .order_by(Employee.first_name, Employee.last_name)
            .execution_options(populate_existing=True)
        )
        return SubmissionDetail(
            submission=submission,
            location_name=location_name,
            entries=[
                EntryDetail(entry, f"{first} {last}".strip())
                for entry, first, last in entries.all()
            ],
            history=await self.audit.history(submission_id),
        )

    async def location_status_board(self, actor: Actor, pay_date: date) -> list[LocationStatus]:
        """Every location of the actor's organization and how far its payroll got.

        A location counts as approved once any of its submissions for the date
        is approved or posted, regardless of payroll group.
        """
        require(actor, Capability.REVIEW, actor.organization_id)
        locations = await self.session.execute(
            select(Location)
            .where(Location.organization_id == actor.organization_id)
            .order_by(Location.name)
        )
        submissions = await self.session.execute(
            select(PayrollSubmission)
            .where(
                PayrollSubmission.organization_id == actor.organization_id,
                PayrollSubmission.pay_date == pay_date,
            )
            .order_by(PayrollSubmission.created_at)
            .execution_options(populate_existing=True)
        )

        by_location: dict[UUID, list[PayrollSubmission]] = {}
        for submission in submissions.scalars().all():
            by_location.setdefault(submission.location_id, []).append(submission)

        board = []
        for location in locations.scalars().all():
            status, submission_id = LOCATION_NOT_SUBMITTED, None
            for submission in by_location.get(location.location_id, []):
                if submission.status in (SubmissionStatus.APPROVED, SubmissionStatus.POSTED):
                    status, submission_id = LOCATION_APPROVED, submission.submission_id
                    break
                if submission.status == SubmissionStatus.PENDING:
                    status, submission_id = LOCATION_PENDING, submission.submission_id
            board.append(LocationStatus(location.location_id, location.name, status, submission_id))
        return board

    async def list_payments(
        self,
        actor: Actor,
        start: date | None = None,
        end: date | None = None,
        location_id: UUID | None = None,
    ) -> list[Payment]:
        """Posted payments for reporting, newest first."""
        require(actor, Capability.REVIEW, actor.organization_id, location_id)
        query = select(Payment).where(Payment.organization_id == actor.organization_id)
        if start is not None:
            query = query.where(Payment.payment_date >= start)
        if end is not None:
            query = query.where(Payment.payment_date <= end)
        if location_id is not None:
            query = query.where(Payment.location_id == location_id)
        result = await self.session.execute(
            query.order_by(Payment.payment_date.desc(), Payment.last_name, Payment.first_name)
        )
        return list(result.scalars().all())
