"""Approval posting saga: conflicts, crash recovery and payment idempotency."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.errors import (
    ConflictError,
    InvalidTransitionError,
    PartialFailureError,
    PermissionDeniedError,
    TransientError,
)
from payroll_submissions.models import Payment, PayrollEntry, PayrollSubmission
from payroll_submissions.services.approval_poster import ApprovalPoster
from payroll_submissions.services.audit import AuditLog

from ..conftest import PAY_DATE


pytestmark = pytest.mark.asyncio


async def payment_count(session: AsyncSession, submission_id) -> int:
    return await session.scalar(
        select(func.count()).select_from(Payment).where(Payment.submission_id == submission_id)
    )


async def entry_statuses(session: AsyncSession, submission_id) -> set[str]:
    result = await session.scalars(
        select(PayrollEntry.status).where(PayrollEntry.submission_id == submission_id)
    )
    return set(result.all())


@pytest.fixture
async def pending(world, submissions) -> PayrollSubmission:
    result = await submissions.submit(
        world.submitter, world.location_id, PAY_DATE, "B", world.entries()
    )
    return result.submission


class TestApprove:
    """Test the happy path pending → approved → posted."""

    async def test_approve_posts_payments(self, session, world, poster: ApprovalPoster, pending):
        result = await poster.approve(world.reviewer, pending.submission_id)

        assert result.status == "posted"
        assert result.payments_created == 3
        assert result.resumed is False

        submission = await session.get(
            PayrollSubmission, pending.submission_id, populate_existing=True
        )
        assert submission.approved_by == world.reviewer.user_id
        assert submission.approved_at is not None
        assert submission.processed_at is not None
        assert await entry_statuses(session, pending.submission_id) == {"posted"}

    async def test_payment_snapshot(self, session, world, poster: ApprovalPoster, pending):
        await poster.approve(world.reviewer, pending.submission_id)

        payments = (
            await session.scalars(
                select(Payment).where(Payment.employee_id == world.fixed_id)
            )
        ).all()

        assert len(payments) == 1
        payment = payments[0]
        assert payment.first_name == "Carol"
        assert payment.last_name == "Smith"
        assert payment.department == "Downtown"
        assert payment.payment_date == PAY_DATE
        assert payment.total_amount == Decimal("750.00")
        assert payment.payment_method == "Direct Deposit"
        assert payment.source == "system"
        assert payment.payroll_group == "B"
        assert payment.count == Decimal("1")

    async def test_payment_total_matches_submission(
        self, session, world, poster: ApprovalPoster, pending
    ):
        await poster.approve(world.reviewer, pending.submission_id)

        total = await session.scalar(
            select(func.sum(Payment.total_amount)).where(
                Payment.submission_id == pending.submission_id
            )
        )
        assert Decimal(str(total)) == Decimal("1650.00")

    async def test_single_approval_audit_record(self, world, poster: ApprovalPoster, pending):
        await poster.approve(world.reviewer, pending.submission_id)

        assert await poster.audit.count(pending.submission_id, AuditLog.APPROVED) == 1


class TestApproveConflicts:
    """Test approvals that must not change state."""

    async def test_approve_posted_conflicts(self, session, world, poster: ApprovalPoster, pending):
        await poster.approve(world.reviewer, pending.submission_id)

        with pytest.raises(ConflictError):
            await poster.approve(world.reviewer, pending.submission_id)

        assert await payment_count(session, pending.submission_id) == 3

    async def test_approve_rejected_is_invalid(
        self, world, poster: ApprovalPoster, submissions, pending
    ):
        await submissions.reject(world.reviewer, pending.submission_id, "Wrong hours")

        with pytest.raises(InvalidTransitionError):
            await poster.approve(world.reviewer, pending.submission_id)

    async def test_approve_draft_is_invalid(self, world, poster: ApprovalPoster, drafts):
        saved = await drafts.save_draft(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        with pytest.raises(InvalidTransitionError):
            await poster.approve(world.reviewer, saved.submission_id)

    async def test_reject_after_approval_conflicts(
        self, world, poster: ApprovalPoster, submissions, pending
    ):
        await poster.approve(world.reviewer, pending.submission_id)

        with pytest.raises(ConflictError):
            await submissions.reject(world.reviewer, pending.submission_id, "Too late")

    async def test_conditional_update_loses_to_concurrent_rejection(
        self, world, poster: ApprovalPoster, submissions, pending
    ):
        """A reviewer who loaded the row as pending still loses if a rejection landed first."""
        await submissions.reject(world.reviewer, pending.submission_id, "Rejected first")

        with pytest.raises(ConflictError):
            await poster._mark_submission_approved(pending.submission_id, world.reviewer.user_id)

    async def test_submitter_cannot_approve(self, world, poster: ApprovalPoster, pending):
        with pytest.raises(PermissionDeniedError):
            await poster.approve(world.submitter, pending.submission_id)

    async def test_other_organization_cannot_approve(
        self, world, poster: ApprovalPoster, pending
    ):
        with pytest.raises(PermissionDeniedError):
            await poster.approve(world.outsider, pending.submission_id)


class TestCrashRecovery:
    """Test resuming a posting interrupted after approval."""

    async def test_step_one_failure_is_transient(
        self, session, world, poster: ApprovalPoster, pending, monkeypatch
    ):
        async def crash(*args):
            raise RuntimeError("connection reset")

        submission_id = pending.submission_id
        monkeypatch.setattr(poster, "_mark_submission_approved", crash)

        with pytest.raises(TransientError) as exc_info:
            await poster.approve(world.reviewer, submission_id)

        assert not isinstance(exc_info.value, PartialFailureError)
        submission = await session.get(
            PayrollSubmission, submission_id, populate_existing=True
        )
        assert submission.status == "pending"

    async def test_crash_before_posted_then_retry(
        self, session, world, pending, monkeypatch
    ):
        """Payments created before the crash are not duplicated on retry."""
        submission_id = pending.submission_id
        crashing = ApprovalPoster(session)

        async def crash(*args):
            raise RuntimeError("process killed")

        monkeypatch.setattr(crashing, "_mark_submission_posted", crash)

        with pytest.raises(PartialFailureError) as exc_info:
            await crashing.approve(world.reviewer, submission_id)

        assert exc_info.value.step == 5
        assert exc_info.value.submission_id == submission_id

        submission = await session.get(
            PayrollSubmission, submission_id, populate_existing=True
        )
        assert submission.status == "approved"
        assert await payment_count(session, submission_id) == 3

        result = await ApprovalPoster(session).approve(world.reviewer, submission_id)

        assert result.resumed is True
        assert result.status == "posted"
        assert result.payments_created == 0
        assert await payment_count(session, submission_id) == 3
        assert await entry_statuses(session, submission_id) == {"posted"}
        assert await crashing.audit.count(submission_id, AuditLog.APPROVED) == 1

    async def test_crash_during_payments_then_retry(
        self, session, world, pending, monkeypatch
    ):
        crashing = ApprovalPoster(session)

        async def crash(*args):
            raise RuntimeError("disk full")

        submission_id = pending.submission_id
        monkeypatch.setattr(crashing, "_create_payments", crash)

        with pytest.raises(PartialFailureError) as exc_info:
            await crashing.approve(world.reviewer, submission_id)

        assert exc_info.value.step == 4
        assert await payment_count(session, submission_id) == 0

        result = await ApprovalPoster(session).approve(world.reviewer, submission_id)

        assert result.payments_created == 3
        assert result.status == "posted"

    async def test_audit_failure_does_not_block_posting(
        self, session, world, poster: ApprovalPoster, pending, monkeypatch
    ):
        async def crash(*args):
            raise RuntimeError("audit table unavailable")

        submission_id = pending.submission_id
        monkeypatch.setattr(poster, "_append_approval_audit", crash)

        result = await poster.approve(world.reviewer, submission_id)

        assert result.status == "posted"
        assert await poster.audit.count(submission_id) == 0

    async def test_reload_after_audit_failure_is_partial_failure(
        self, session, world, poster: ApprovalPoster, pending, monkeypatch
    ):
        async def crash(*args):
            raise RuntimeError("audit table unavailable")

        async def connection_lost(*args, **kwargs):
            raise OperationalError("SELECT payroll_submission", {}, Exception("connection lost"))

        submission_id = pending.submission_id
        with monkeypatch.context() as patch:
            patch.setattr(poster, "_append_approval_audit", crash)
            patch.setattr(session, "refresh", connection_lost)
            with pytest.raises(PartialFailureError) as exc_info:
                await poster.approve(world.reviewer, submission_id)

        assert exc_info.value.step == 3
        submission = await session.get(
            PayrollSubmission, submission_id, populate_existing=True
        )
        assert submission.status == "approved"

        result = await poster.approve(world.reviewer, submission_id)

        assert result.resumed is True
        assert result.status == "posted"
        assert await poster.audit.count(submission_id, AuditLog.APPROVED) == 1

    async def test_resume_stalled(self, session, world, pending, monkeypatch):
        crashing = ApprovalPoster(session)

        async def crash(*args):
            raise RuntimeError("process killed")

        submission_id = pending.submission_id
        monkeypatch.setattr(crashing, "_create_payments", crash)
        with pytest.raises(PartialFailureError):
            await crashing.approve(world.reviewer, submission_id)

        results = await ApprovalPoster(session).resume_stalled()

        assert [r.submission_id for r in results] == [submission_id]
        assert results[0].status == "posted"
        assert results[0].payments_created == 3
        assert await ApprovalPoster(session).resume_stalled() == []


class TestRejectResubmitApprove:
    """Full cycle on one submission id."""

    async def test_audit_trail_across_cycle(
        self, session, world, submissions, poster: ApprovalPoster, pending
    ):
        await submissions.reject(world.reviewer, pending.submission_id, "Recount")
        resubmitted = await submissions.submit(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries(hours="38")
        )
        assert resubmitted.submission.submission_id == pending.submission_id

        result = await poster.approve(world.reviewer, pending.submission_id)

        assert result.status == "posted"
        assert await poster.audit.count(pending.submission_id, AuditLog.REJECTED) == 1
        assert await poster.audit.count(pending.submission_id, AuditLog.APPROVED) == 1

        history = await poster.audit.history(pending.submission_id)
        assert [r.action for r in history] == ["rejected", "approved"]

        hourly_payment = await session.scalar(
            select(Payment.total_amount).where(Payment.employee_id == world.hourly_id)
        )
        assert hourly_payment == Decimal("760.00")

    async def test_new_draft_allowed_after_posting(
        self, world, drafts, poster: ApprovalPoster, pending
    ):
        await poster.approve(world.reviewer, pending.submission_id)

        result = await drafts.save_draft(
            world.submitter, world.location_id, PAY_DATE, "B", world.entries()
        )

        assert result.saved is True
        assert result.submission_id != pending.submission_id
