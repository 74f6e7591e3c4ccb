"""Append-only approval audit trail."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.models import ApprovalAuditRecord, PayrollSubmission


class AuditLog:
    """Writes approve/reject records. Records are never updated or deleted."""

    APPROVED = "approved"
    REJECTED = "rejected"

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        submission: PayrollSubmission,
        action: str,
        actor_id: UUID,
        previous_status: str,
        notes: str | None = None,
    ) -> ApprovalAuditRecord:
        """Record a reviewer action against a submission."""
        record = ApprovalAuditRecord(
            organization_id=submission.organization_id,
            submission_id=submission.submission_id,
            action=action,
            actor_id=actor_id,
            previous_status=previous_status,
            notes=notes,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def count(self, submission_id: UUID, action: str | None = None) -> int:
        query = select(func.count()).select_from(ApprovalAuditRecord).where(
            ApprovalAuditRecord.submission_id == submission_id
        )
        if action is not None:
            query = query.where(ApprovalAuditRecord.action == action)
        return await self.session.scalar(query) or 0

    async def history(self, submission_id: UUID) -> list[ApprovalAuditRecord]:
        result = await self.session.execute(
            select(ApprovalAuditRecord)
            .where(ApprovalAuditRecord.submission_id == submission_id)
            .order_by(ApprovalAuditRecord.created_at)
        )
        return list(result.scalars().all())
