"""Auto-save of in-progress submissions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.calculators.period import PeriodCalculator
from payroll_submissions.calculators.types import EntryInput, PayrollGroup
from payroll_submissions.errors import ValidationError, WorkflowError
from payroll_submissions.models import PayrollSubmission
from payroll_submissions.models.base import utcnow
from payroll_submissions.services.directory import (
    EmployeeDirectory,
    LocationDirectory,
    SqlEmployeeDirectory,
    SqlLocationDirectory,
)
from payroll_submissions.services.repository import PreparedBatch, SubmissionRepository
from payroll_submissions.services.roles import Actor, Capability, require
from payroll_submissions.services.state_machine import SubmissionStateMachine, SubmissionStatus

logger = logging.getLogger(__name__)

NO_DATA_REASON = "No entries with data"


@dataclass(frozen=True)
class DraftSaveResult:
    """Outcome of a best-effort draft save.

    ``saved`` is False when the call was a no-op or failed; ``reason`` says why.
    """

    saved: bool
    submission_id: UUID | None = None
    saved_at: datetime | None = None
    employee_count: int = 0
    total_amount: Decimal | None = None
    total_hours: Decimal | None = None
    reason: str | None = None
    excluded_employee_ids: list[UUID] = field(default_factory=list)


class DraftStore:
    """Idempotent upsert of a draft submission and its entries.

    Keyed by (location, pay date, payroll group). An existing draft or
    rejected submission for the key is reused in place; otherwise a new draft
    row is inserted. Saves never raise persistence or validation errors to the
    caller: they are logged and reported through ``DraftSaveResult`` so the
    caller can retry on its next debounce cycle. Debouncing is the caller's
    job (see ``AutoSaver``).
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

    async def save_draft(
        self,
        actor: Actor,
        location_id: UUID,
        pay_date: date,
        payroll_group: PayrollGroup | str,
        entries: Sequence[EntryInput],
    ) -> DraftSaveResult:
        """Persist a draft. Calling twice with identical input is harmless."""
        location = await self.locations.get(location_id)
        require(actor, Capability.SAVE_DRAFT, location.organization_id, location_id)

        try:
            return await self._save(
                actor,
                location.organization_id,
                location_id,
                pay_date,
                PayrollGroup(payroll_group),
                entries,
            )
        except WorkflowError as e:
            await self.session.rollback()
            logger.warning(
                "Draft save skipped for location %s pay date %s: %s",
                location_id,
                pay_date,
                e.message,
            )
            return DraftSaveResult(saved=False, reason=e.message)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(
                "Draft save failed for location %s pay date %s group %s",
                location_id,
                pay_date,
                payroll_group,
            )
            return DraftSaveResult(saved=False, reason="Draft could not be saved; will retry")

    async def _save(
        self,
        actor: Actor,
        organization_id: UUID,
        location_id: UUID,
        pay_date: date,
        payroll_group: PayrollGroup,
        entries: Sequence[EntryInput],
    ) -> DraftSaveResult:
        batch = await self.repository.prepare(location_id, entries)
        if not batch.included:
            # Nothing entered yet; leave any existing draft untouched
            return DraftSaveResult(
                saved=False,
                reason=NO_DATA_REASON,
                excluded_employee_ids=batch.excluded_employee_ids,
            )

        period = self.periods.calculate(pay_date)
        if not period.is_valid:
            raise ValidationError("Pay date is out of range", {"pay_date": pay_date.isoformat()})

        # Create-if-absent: a concurrent first save for the same key loses the
        # insert on the partial unique index and retries as an update.
        for attempt in range(2):
            existing = await self.repository.find_open(
                location_id, pay_date, payroll_group, SubmissionStateMachine.OPEN
            )
            if existing is not None and not SubmissionStateMachine.is_editable(existing.status):
                return DraftSaveResult(
                    saved=False,
                    submission_id=existing.submission_id,
                    reason=f"Submission is {existing.status} and can no longer be edited",
                )

            now = utcnow()
            if existing is not None:
                submission = existing
                SubmissionStateMachine.validate_transition(submission.status, SubmissionStatus.DRAFT)
            else:
                submission = PayrollSubmission(
                    organization_id=organization_id,
                    location_id=location_id,
                    pay_date=pay_date,
                    payroll_group=payroll_group.value,
                )
                self.session.add(submission)

            self._apply_draft(
                submission, batch, period.period_start, period.period_end, actor.user_id, now
            )
            try:
                await self.session.flush()
            except IntegrityError:
                await self.session.rollback()
                if attempt == 0:
                    logger.info(
                        "Concurrent draft creation for location %s pay date %s; retrying as update",
                        location_id,
                        pay_date,
                    )
                    continue
                raise

            await self.repository.replace_entries(submission, batch, SubmissionStatus.DRAFT)
            await self.session.commit()
            logger.debug(
                "Saved draft %s with %d entries", submission.submission_id, batch.employee_count
            )
            return DraftSaveResult(
                saved=True,
                submission_id=submission.submission_id,
                saved_at=now,
                employee_count=batch.employee_count,
                total_amount=batch.total_amount,
                total_hours=batch.total_hours,
                excluded_employee_ids=batch.excluded_employee_ids,
            )

        return DraftSaveResult(saved=False, reason="Draft could not be saved; will retry")

    @staticmethod
    def _apply_draft(
        submission: PayrollSubmission,
        batch: PreparedBatch,
        period_start: date,
        period_end: date,
        actor_id: UUID,
        now: datetime,
    ) -> None:
        submission.status = SubmissionStatus.DRAFT.value
        submission.period_start = period_start
        submission.period_end = period_end
        submission.total_amount = batch.total_amount
        submission.employee_count = batch.employee_count
        submission.submitted_by = actor_id
        submission.rejected_by = None
        submission.rejected_at = None
        submission.rejection_note = None
        submission.last_saved_at = now
