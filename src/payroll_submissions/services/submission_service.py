"""Submission lifecycle service - submit, resubmit and reject."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.calculators.period import PeriodCalculator
from payroll_submissions.calculators.types import EntryInput, PayrollGroup
from payroll_submissions.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from payroll_submissions.models import PayrollEntry, PayrollSubmission
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
from payroll_submissions.services.state_machine import SubmissionStateMachine, SubmissionStatus

logger = logging.getLogger(__name__)


@dataclass
class SubmitResult:
    """Result of a submit or resubmit."""

    submission: PayrollSubmission
    resubmitted: bool
    excluded_employee_ids: list[UUID] = field(default_factory=list)


@dataclass
class EditableSubmission:
    """A draft or rejected submission an editor can resume."""

    submission: PayrollSubmission
    entries: list[PayrollEntry]

    @property
    def rejection_note(self) -> str | None:
        return self.submission.rejection_note


class SubmissionService:
    """Service for the editor-facing half of the submission lifecycle.

    Operations:
    - submit: draft/rejected (or nothing yet) → pending
    - reject: pending → rejected, with a mandatory note
    - get_editable: resume the latest draft or rejected submission for a key
    """

    def __init__(
        self,
        session: AsyncSession,
        employees: EmployeeDirectory | None = None,
        locations: LocationDirectory | None = None,
        periods: PeriodCalculator | None = None,
    ):
        self.session = session
        self.employees = employees or SqlEmployeeDirectory(session)
        self.locations = locations or SqlLocationDirectory(session)
        self.periods = periods or PeriodCalculator.from_settings()
        self.repository = SubmissionRepository(session, self.employees)
        self.audit = AuditLog(session)

    async def submit(
        self,
        actor: Actor,
        location_id: UUID,
        pay_date: date,
        payroll_group: PayrollGroup | str,
        entries: Sequence[EntryInput],
    ) -> SubmitResult:
        """Submit a location's payroll for review.

        Rows without data (hours outside (0, 80], units or count not positive)
        are excluded silently and reported back.

        Raises:
            ValidationError: If no entry has data.
            ConflictError: If a submission for the key is already pending.
        """
        location = await self.locations.get(location_id)
        require(actor, Capability.SUBMIT, location.organization_id, location_id)
        group = PayrollGroup(payroll_group)

        batch = await self.repository.prepare(location_id, entries)
        period = self.periods.calculate(pay_date)
        if not period.is_valid:
            raise ValidationError("Pay date is out of range", {"pay_date": pay_date.isoformat()})

        existing = await self.repository.find_open(
            location_id, pay_date, group, SubmissionStateMachine.OPEN
        )
        if existing is not None and existing.status == SubmissionStatus.PENDING:
            raise ConflictError(
                "Payroll for this pay date is already awaiting review",
                {"submission_id": str(existing.submission_id)},
            )

        if existing is not None:
            submission = existing
        else:
            # No draft was saved yet; submit straight from a fresh draft
            submission = PayrollSubmission(
                organization_id=location.organization_id,
                location_id=location_id,
                pay_date=pay_date,
                payroll_group=group.value,
                status=SubmissionStatus.DRAFT.value,
            )

        errors = SubmissionStateMachine.validate_submission_for_transition(
            submission, SubmissionStatus.PENDING, included_count=batch.employee_count
        )
        if errors:
            if not SubmissionStateMachine.can_transition(submission.status, SubmissionStatus.PENDING):
                raise InvalidTransitionError(
                    submission.status, SubmissionStatus.PENDING, "; ".join(errors)
                )
            raise ValidationError(
                "; ".join(errors),
                {"excluded_employee_ids": [str(i) for i in batch.excluded_employee_ids]},
            )

        resubmitted = SubmissionStateMachine.is_resubmit(submission.status, SubmissionStatus.PENDING)
        now = utcnow()
        submission.status = SubmissionStatus.PENDING.value
        submission.period_start = period.period_start
        submission.period_end = period.period_end
        submission.total_amount = batch.total_amount
        submission.employee_count = batch.employee_count
        submission.submitted_by = actor.user_id
        submission.submitted_at = now
        submission.last_saved_at = now
        # The rejection itself stays in the audit trail
        submission.rejected_by = None
        submission.rejected_at = None
        submission.rejection_note = None

        try:
            if existing is None:
                self.session.add(submission)
            await self.session.flush()
            await self.repository.replace_entries(submission, batch, SubmissionStatus.PENDING)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                "Another submission for this location, pay date and group was just created"
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Submit failed for location %s pay date %s", location_id, pay_date)
            raise TransientError("Payroll could not be submitted; please retry") from e

        logger.info(
            "Submission %s %s by %s with %d employees",
            submission.submission_id,
            "resubmitted" if resubmitted else "submitted",
            actor.user_id,
            batch.employee_count,
        )
        return SubmitResult(
            submission=submission,
            resubmitted=resubmitted,
            excluded_employee_ids=batch.excluded_employee_ids,
        )

    async def reject(self, actor: Actor, submission_id: UUID, note: str | None) -> PayrollSubmission:
        """Reject a pending submission so the location can correct and resubmit.

        Raises:
            ConflictError: If the submission is not pending (including when a
                concurrent approval got there first).
            ValidationError: If no rejection note is given.
        """
        submission = await self.repository.get(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found", {"submission_id": str(submission_id)})
        require(actor, Capability.REJECT, submission.organization_id, submission.location_id)

        if not SubmissionStateMachine.can_transition(submission.status, SubmissionStatus.REJECTED):
            raise InvalidTransitionError(
                submission.status, SubmissionStatus.REJECTED, "Submission was already handled"
            )
        errors = SubmissionStateMachine.validate_submission_for_transition(
            submission, SubmissionStatus.REJECTED, rejection_note=note
        )
        if errors:
            raise ValidationError("; ".join(errors))

        previous_status = submission.status
        now = utcnow()
        try:
            result = await self.session.execute(
                update(PayrollSubmission)
                .where(
                    PayrollSubmission.submission_id == submission_id,
                    PayrollSubmission.status == SubmissionStatus.PENDING.value,
                )
                .values(
                    status=SubmissionStatus.REJECTED.value,
                    rejected_by=actor.user_id,
                    rejected_at=now,
                    rejection_note=note.strip(),
                )
            )
            if result.rowcount == 0:
                await self.session.rollback()
                raise ConflictError(
                    "Submission was already handled", {"submission_id": str(submission_id)}
                )
            await self.repository.set_entry_status(submission_id, SubmissionStatus.REJECTED)
            await self.audit.append(
                submission, AuditLog.REJECTED, actor.user_id, previous_status, note.strip()
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Reject failed for submission %s", submission_id)
            raise TransientError("Rejection could not be saved; please retry") from e

        await self.session.refresh(submission)
        logger.info("Submission %s rejected by %s", submission_id, actor.user_id)
        return submission

    async def get_editable(
        self,
        actor: Actor,
        location_id: UUID,
        pay_date: date,
        payroll_group: PayrollGroup | str,
    ) -> EditableSubmission | None:
        """Latest draft or rejected submission for the key, with its entries."""
        location = await self.locations.get(location_id)
        require(actor, Capability.SAVE_DRAFT, location.organization_id, location_id)

        submission = await self.repository.find_open(
            location_id, pay_date, payroll_group, SubmissionStateMachine.EDITABLE
        )
        if submission is None:
            return None
        entries = await self.repository.list_entries(submission.submission_id)
        return EditableSubmission(submission=submission, entries=entries)
