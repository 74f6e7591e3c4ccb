"""Submit, reject and resubmit flows."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from payroll_submissions.calculators.types import EntryInput
from payroll_submissions.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
    ValidationError,
)
from payroll_submissions.models import PayrollEntry, PayrollSubmission
from payroll_submissions.services.audit import AuditLog

from ..conftest import PAY_DATE


pytestmark = pytest.mark.asyncio


class TestSubmit:
    """Test draft → pending."""

    async def test_submit_after_draft_reuses_row(self, session, world, drafts, submissions):
        saved = await drafts.save_draft(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        result = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        assert result.submission.submission_id == saved.submission_id
        assert result.submission.status == "pending"
        assert result.submission.submitted_at is not None
        assert result.submission.submitted_by == world.submitter.user_id
        assert result.resubmitted is False

        statuses = await session.scalars(
            select(PayrollEntry.status).where(PayrollEntry.submission_id == saved.submission_id)
        )
        assert set(statuses.all()) == {"pending"}

    async def test_submit_without_draft(self, world, submissions):
        result = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        assert result.submission.status == "pending"
        assert result.submission.employee_count == 3
        assert result.submission.total_amount == Decimal("1650.00")
        assert len(result.submission.submission_number) == 8

    async def test_amounts_are_recomputed_from_profiles(self, world, submissions):
        """Only measures are accepted; amounts come from stored rates."""
        result = await submissions.submit(
            world.submitter,
            world.location_id,
            PAY_DATE,
            "B",
            [EntryInput(world.hourly_id, hours=Decimal("12.5"))],
        )

        assert result.submission.total_amount == Decimal("250.00")

    async def test_excluded_rows_are_reported(self, world, submissions):
        result = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries(hours="81")
        )

        assert result.submission.employee_count == 2
        assert result.excluded_employee_ids == [world.hourly_id]

    async def test_no_included_rows_is_rejected(self, session, world, submissions):
        with pytest.raises(ValidationError) as exc_info:
            await submissions.submit(
                world.submitter,
                world.location_id,
                PAY_DATE,
                "B",
                [EntryInput(world.hourly_id, hours=Decimal("0"))],
            )

        assert "at least one employee" in exc_info.value.message
        count = await session.scalar(select(func.count()).select_from(PayrollSubmission))
        assert count == 0

    async def test_pay_date_without_full_period_is_invalid(self, world, submissions):
        with pytest.raises(ValidationError):
            await submissions.submit(
                world.submitter, world.location_id, date(1, 1, 5), "B", world.entries()
            )

    async def test_double_submit_conflicts(self, world, submissions):
        await submissions.submit(world.submitter, world.location_id, PAY_DATE, "B", world.entries())

        with pytest.raises(ConflictError):
            await submissions.submit(
                world.submitter, world.location_id, PAY_DATE, "B", world.entries()
            )

    async def test_duplicate_employee_is_rejected(self, world, submissions):
        entries = world.entries() + [EntryInput(world.hourly_id, hours=Decimal("1"))]

        with pytest.raises(ValidationError):
            await submissions.submit(world.submitter, world.location_id, PAY_DATE, "B", entries)

    async def test_employee_from_other_location_is_rejected(self, world, submissions):
        with pytest.raises(ValidationError):
            await submissions.submit(
                world.reviewer,
                world.other_location_id,
                PAY_DATE,
                "B",
                world.entries(),
            )

    async def test_other_organization_cannot_submit(self, world, submissions):
        with pytest.raises(PermissionDeniedError):
            await submissions.submit(
                world.outsider, world.location_id, PAY_DATE, "B", world.entries()
            )


class TestReject:
    """Test pending → rejected."""

    async def test_reject_records_note_and_audit(self, world, submissions):
        submitted = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        rejected = await submissions.reject(
            world.reviewer, submitted.submission.submission_id, "  Hours look high  "
        )

        assert rejected.status == "rejected"
        assert rejected.rejection_note == "Hours look high"
        assert rejected.rejected_by == world.reviewer.user_id

        history = await submissions.audit.history(rejected.submission_id)
        assert [(r.action, r.previous_status) for r in history] == [("rejected", "pending")]
        assert history[0].notes == "Hours look high"

    @pytest.mark.parametrize("note", [None, "", "   "])
    async def test_reject_requires_note(self, world, submissions, note):
        submitted = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        with pytest.raises(ValidationError):
            await submissions.reject(world.reviewer, submitted.submission.submission_id, note)

    async def test_submitter_cannot_reject(self, world, submissions):
        submitted = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        with pytest.raises(PermissionDeniedError):
            await submissions.reject(world.submitter, submitted.submission.submission_id, "No")

    async def test_reject_draft_is_invalid(self, world, drafts, submissions):
        saved = await drafts.save_draft(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        with pytest.raises(InvalidTransitionError):
            await submissions.reject(world.reviewer, saved.submission_id, "Too early")

    async def test_reject_unknown_submission(self, world, submissions):
        with pytest.raises(NotFoundError):
            await submissions.reject(world.reviewer, uuid4(), "Missing")

    async def test_audit_failure_rolls_back_rejection(
        self, session, world, submissions, monkeypatch
    ):
        """The status change and its audit record are saved together or not at all."""
        submitted = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )
        submission_id = submitted.submission.submission_id

        async def fail(*args, **kwargs):
            raise OperationalError("INSERT INTO payroll_approval", {}, Exception("disk I/O error"))

        with monkeypatch.context() as patch:
            patch.setattr(submissions.audit, "append", fail)
            with pytest.raises(TransientError):
                await submissions.reject(world.reviewer, submission_id, "Hours look high")

        submission = await session.get(PayrollSubmission, submission_id, populate_existing=True)
        assert submission.status == "pending"
        assert submission.rejection_note is None
        assert await submissions.audit.count(submission_id) == 0
        entry_statuses = await session.scalars(
            select(PayrollEntry.status)
            .where(PayrollEntry.submission_id == submission_id)
            .execution_options(populate_existing=True)
        )
        assert set(entry_statuses.all()) == {"pending"}

        rejected = await submissions.reject(world.reviewer, submission_id, "Hours look high")

        assert rejected.status == "rejected"
        assert await submissions.audit.count(submission_id, AuditLog.REJECTED) == 1


class TestResubmit:
    """Test rejected → draft/pending on the same row."""

    async def test_get_editable_returns_rejected_with_note(self, world, submissions):
        submitted = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )
        await submissions.reject(world.reviewer, submitted.submission.submission_id, "Fix Bob")

        editable = await submissions.get_editable(world.submitter, world.location_id, PAY_DATE, "B")

        assert editable is not None
        assert editable.submission.submission_id == submitted.submission.submission_id
        assert editable.rejection_note == "Fix Bob"
        assert len(editable.entries) == 3

    async def test_get_editable_ignores_pending(self, world, submissions):
        await submissions.submit(world.submitter, world.location_id, PAY_DATE, "B", world.entries())

        assert (
            await submissions.get_editable(world.submitter, world.location_id, PAY_DATE, "B")
            is None
        )

    async def test_resubmit_keeps_submission_id(self, session, world, submissions):
        submitted = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )
        submission_id = submitted.submission.submission_id
        await submissions.reject(world.reviewer, submission_id, "Recount units")

        result = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries(units="300")
        )

        assert result.resubmitted is True
        assert result.submission.submission_id == submission_id
        assert result.submission.status == "pending"
        assert result.submission.rejection_note is None
        assert result.submission.total_amount == Decimal("1700.00")

        count = await session.scalar(select(func.count()).select_from(PayrollSubmission))
        assert count == 1
        # The rejection stays in the audit trail
        assert await submissions.audit.count(submission_id, AuditLog.REJECTED) == 1
