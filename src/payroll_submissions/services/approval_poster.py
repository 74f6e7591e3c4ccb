"""Approval posting saga: pending submission → posted payments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PartialFailureError,
    TransientError,
    WorkflowError,
)
from payroll_submissions.models import Employee, Payment, PayrollSubmission
from payroll_submissions.models.base import utcnow
from payroll_submissions.services.audit import AuditLog
from payroll_submissions.services.directory import (
    EmployeeDirectory,
    LocationDirectory,
    SqlEmployeeDirectory,
    SqlLocationDirectory,
)
from payroll_submissions.services.repository import SubmissionRepository
from payroll_submissions.services.roles import Actor, Capability, require
from payroll_submissions.services.state_machine import SubmissionStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAYMENT_METHOD = "Direct Deposit"
PAYMENT_SOURCE = "system"


@dataclass(frozen=True)
class PostingResult:
    """Outcome of an approval.

    ``resumed`` is True when the submission was already approved and this
    call finished a previously interrupted posting.
    """

    submission_id: UUID
    status: str
    payments_created: int
    resumed: bool


class ApprovalPoster:
    """Runs the approval sequence as a saga of individually committed steps.

    Steps:
    1. submission → approved (conditional on status = pending)
    2. entries → approved
    3. append approval audit record (best effort, skipped if present)
    4. insert one Payment per entry (skipping employees already paid)
    5. submission → posted (conditional on status = approved)
    6. entries → posted

    A crash after step 1 leaves the submission visibly approved. Calling
    ``approve`` again resumes from step 2; every step is safe to repeat and
    step 4 never duplicates a payment.
    """

    def __init__(
        self,
        session: AsyncSession,
        employees: EmployeeDirectory | None = None,
        locations: LocationDirectory | None = None,
    ):
        self.session = session
        self.locations = locations or SqlLocationDirectory(session)
        self.repository = SubmissionRepository(session, employees or SqlEmployeeDirectory(session))
        self.audit = AuditLog(session)

    async def approve(self, actor: Actor, submission_id: UUID) -> PostingResult:
        """Approve and post a pending submission, or resume an interrupted posting.

        Raises:
            ConflictError: If the submission is posted, not yet submitted,
                rejected, or a concurrent reviewer handled it first.
            PartialFailureError: If a step after approval failed; retry to resume.
        """
        submission = await self.repository.get(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found", {"submission_id": str(submission_id)})
        require(actor, Capability.APPROVE, submission.organization_id, submission.location_id)

        if submission.status == SubmissionStatus.POSTED:
            raise ConflictError(
                "Submission was already approved and posted",
                {"submission_id": str(submission_id)},
            )
        if submission.status not in (SubmissionStatus.PENDING, SubmissionStatus.APPROVED):
            raise InvalidTransitionError(
                submission.status, SubmissionStatus.APPROVED, "Submission is not awaiting review"
            )

        return await self._post(submission, actor.user_id)

    async def resume_stalled(self) -> list[PostingResult]:
        """Re-drive every submission left in approved by an interrupted posting."""
        result = await self.session.execute(
            select(PayrollSubmission.submission_id).where(
                PayrollSubmission.status == SubmissionStatus.APPROVED.value
            )
        )
        results: list[PostingResult] = []
        for submission_id in result.scalars().all():
            submission = await self.repository.get(submission_id)
            if submission is None or submission.status != SubmissionStatus.APPROVED:
                continue
            try:
                results.append(await self._post(submission, submission.approved_by))
            except WorkflowError:
                logger.exception("Could not resume posting of submission %s", submission_id)
        return results

    async def _post(self, submission: PayrollSubmission, approver_id: UUID) -> PostingResult:
        submission_id = submission.submission_id
        resumed = submission.status == SubmissionStatus.APPROVED

        location = await self.locations.get(submission.location_id)

        if not resumed:
            await self._run_step(
                submission_id, 1, "mark submission approved",
                lambda: self._mark_submission_approved(submission_id, approver_id),
            )
        await self._run_step(
            submission_id, 2, "mark entries approved",
            lambda: self.repository.set_entry_status(submission_id, SubmissionStatus.APPROVED),
        )

        try:
            await self._append_approval_audit(submission, approver_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.warning(
                "Posting step 3 (approval audit) failed for submission %s; continuing",
                submission_id,
                exc_info=True,
            )
            await self._run_step(
                submission_id, 3, "reload submission after audit failure",
                lambda: self.session.refresh(submission),
            )

        created = await self._run_step(
            submission_id, 4, "create payments",
            lambda: self._create_payments(submission, location.name),
        )
        await self._run_step(
            submission_id, 5, "mark submission posted",
            lambda: self._mark_submission_posted(submission_id, approver_id),
        )
        await self._run_step(
            submission_id, 6, "mark entries posted",
            lambda: self.repository.set_entry_status(submission_id, SubmissionStatus.POSTED),
        )

        await self.session.refresh(submission)
        logger.info(
            "Submission %s posted with %d new payments%s",
            submission_id,
            created,
            " (resumed)" if resumed else "",
        )
        return PostingResult(
            submission_id=submission_id,
            status=submission.status,
            payments_created=created,
            resumed=resumed,
        )

    async def _run_step(
        self,
        submission_id: UUID,
        index: int,
        name: str,
        step: Callable[[], Awaitable[T]],
    ) -> T:
        """Run and commit one step; failures are logged with the step index."""
        try:
            result = await step()
            await self.session.commit()
            return result
        except WorkflowError:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.exception(
                "Posting step %d (%s) failed for submission %s", index, name, submission_id
            )
            if index == 1:
                raise TransientError(
                    "Approval could not be saved; please retry",
                    {"submission_id": str(submission_id), "step": index},
                ) from e
            raise PartialFailureError(submission_id, index, name, e) from e

    async def _mark_submission_approved(self, submission_id: UUID, approver_id: UUID) -> None:
        """Step 1. Whichever reviewer action lands first wins."""
        result = await self.session.execute(
            update(PayrollSubmission)
            .where(
                PayrollSubmission.submission_id == submission_id,
                PayrollSubmission.status == SubmissionStatus.PENDING.value,
            )
            .values(
                status=SubmissionStatus.APPROVED.value,
                approved_by=approver_id,
                approved_at=utcnow(),
            )
        )
        if result.rowcount == 0:
            raise ConflictError(
                "Submission was already handled", {"submission_id": str(submission_id)}
            )

    async def _append_approval_audit(self, submission: PayrollSubmission, approver_id: UUID) -> None:
        """Step 3. One approval record per submission, even across retries."""
        if await self.audit.count(submission.submission_id, AuditLog.APPROVED):
            return
        await self.audit.append(
            submission, AuditLog.APPROVED, approver_id, SubmissionStatus.PENDING.value
        )

    async def _create_payments(
        self,
        submission: PayrollSubmission,
        department: str,
    ) -> int:
        """Step 4. Insert a payment snapshot for each entry not yet paid."""
        submission_id = submission.submission_id
        paid = await self.session.execute(
            select(Payment.employee_id).where(Payment.submission_id == submission_id)
        )
        already_paid = set(paid.scalars().all())

        entries = await self.repository.list_entries(submission_id)
        pending = [entry for entry in entries if entry.employee_id not in already_paid]
        if not pending:
            return 0

        names = await self.session.execute(
            select(Employee.employee_id, Employee.first_name, Employee.last_name).where(
                Employee.employee_id.in_([entry.employee_id for entry in pending])
            )
        )
        name_by_id = {row.employee_id: (row.first_name, row.last_name) for row in names}

        payments = []
        for entry in pending:
            first_name, last_name = name_by_id.get(entry.employee_id, ("Unknown", "Employee"))
            payments.append(
                Payment(
                    organization_id=submission.organization_id,
                    submission_id=submission_id,
                    employee_id=entry.employee_id,
                    location_id=submission.location_id,
                    first_name=first_name,
                    last_name=last_name or first_name,
                    department=department,
                    payment_date=submission.pay_date,
                    total_amount=entry.amount,
                    payment_method=PAYMENT_METHOD,
                    payroll_group=submission.payroll_group,
                    hours=entry.hours,
                    units=entry.units,
                    count=entry.count,
                    adjustment=entry.adjustment,
                    source=PAYMENT_SOURCE,
                )
            )
        self.session.add_all(payments)
        await self.session.flush()
        return len(payments)

    async def _mark_submission_posted(self, submission_id: UUID, processor_id: UUID) -> None:
        """Step 5. A repeat after a lost acknowledgement is an idempotent success."""
        result = await self.session.execute(
            update(PayrollSubmission)
            .where(
                PayrollSubmission.submission_id == submission_id,
                PayrollSubmission.status == SubmissionStatus.APPROVED.value,
            )
            .values(
                status=SubmissionStatus.POSTED.value,
                processed_by=processor_id,
                processed_at=utcnow(),
            )
        )
        if result.rowcount == 0:
            current = await self.repository.get(submission_id)
            if current is None or current.status != SubmissionStatus.POSTED:
                raise InvalidTransitionError(
                    current.status if current else "missing",
                    SubmissionStatus.POSTED,
                    "Status changed during posting",
                )
