"""Shared persistence helpers for submissions and their entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.calculators.compensation import CompensationCalculator
from payroll_submissions.calculators.types import (
    CompensationResult,
    CompensationType,
    EntryInput,
    PayrollGroup,
)
from payroll_submissions.errors import ValidationError
from payroll_submissions.models import PayrollEntry, PayrollSubmission
from payroll_submissions.services.directory import EmployeeDirectory, EmployeeInfo
from payroll_submissions.services.state_machine import SubmissionStatus


@dataclass(frozen=True)
class PreparedLine:
    """An entry recomputed against the employee's stored profile."""

    employee: EmployeeInfo
    result: CompensationResult
    notes: str | None = None


@dataclass
class PreparedBatch:
    """Entries split into included and excluded rows, with totals."""

    included: list[PreparedLine] = field(default_factory=list)
    excluded_employee_ids: list[UUID] = field(default_factory=list)

    @property
    def employee_count(self) -> int:
        return len(self.included)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.result.amount for line in self.included), Decimal("0.00"))

    @property
    def total_hours(self) -> Decimal:
        return sum(
            (
                line.result.hours or Decimal("0")
                for line in self.included
                if line.employee.profile.compensation_type == CompensationType.HOURLY
            ),
            Decimal("0"),
        )


class SubmissionRepository:
    """Reads and writes submission rows and fully replaces their entries."""

    def __init__(self, session: AsyncSession, employees: EmployeeDirectory):
        self.session = session
        self.employees = employees

    async def prepare(self, location_id: UUID, entries: Sequence[EntryInput]) -> PreparedBatch:
        """Recompute every entry and keep only rows with data.

        Raises:
            ValidationError: If an entry names an employee who is not active
                at the location, or the same employee twice.
        """
        ids = [entry.employee_id for entry in entries]
        if len(set(ids)) != len(ids):
            raise ValidationError("Each employee may appear only once")

        known = await self.employees.get_many(location_id, ids)
        unknown = [str(emp_id) for emp_id in ids if emp_id not in known]
        if unknown:
            raise ValidationError(
                "Entries reference employees not active at this location",
                {"employee_ids": unknown},
            )

        batch = PreparedBatch()
        for entry in entries:
            employee = known[entry.employee_id]
            result = CompensationCalculator.calculate(employee.profile, entry)
            if result.has_data:
                batch.included.append(PreparedLine(employee, result, entry.notes or None))
            else:
                batch.excluded_employee_ids.append(entry.employee_id)
        return batch

    async def find_open(
        self,
        location_id: UUID,
        pay_date: date,
        payroll_group: PayrollGroup | str,
        statuses: Iterable[str],
    ) -> PayrollSubmission | None:
        """Most recent submission for the key in one of ``statuses``."""
        result = await self.session.execute(
            select(PayrollSubmission)
            .where(
                PayrollSubmission.location_id == location_id,
                PayrollSubmission.pay_date == pay_date,
                PayrollSubmission.payroll_group == PayrollGroup(payroll_group).value,
                PayrollSubmission.status.in_([SubmissionStatus(s).value for s in statuses]),
            )
            .order_by(PayrollSubmission.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, submission_id: UUID) -> PayrollSubmission | None:
        """Load a submission, refreshing any cached copy."""
        return await self.session.get(PayrollSubmission, submission_id, populate_existing=True)

    async def list_entries(self, submission_id: UUID) -> list[PayrollEntry]:
        result = await self.session.execute(
            select(PayrollEntry)
            .where(PayrollEntry.submission_id == submission_id)
            .order_by(PayrollEntry.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def replace_entries(
        self,
        submission: PayrollSubmission,
        batch: PreparedBatch,
        status: str,
    ) -> list[PayrollEntry]:
        """Delete all entries of a submission and insert the batch.

        Entries are never patched, so employees cleared since the last write
        do not leave stale rows behind.
        """
        await self.session.execute(
            delete(PayrollEntry).where(PayrollEntry.submission_id == submission.submission_id)
        )
        rows = [
            PayrollEntry(
                organization_id=submission.organization_id,
                submission_id=submission.submission_id,
                employee_id=line.employee.employee_id,
                hours=line.result.hours,
                units=line.result.units,
                count=line.result.count,
                adjustment=line.result.adjustment,
                amount=line.result.amount,
                notes=line.notes,
                status=SubmissionStatus(status).value,
            )
            for line in batch.included
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows

    async def set_entry_status(self, submission_id: UUID, status: str) -> int:
        """Mirror a status onto every entry of a submission."""
        result = await self.session.execute(
            update(PayrollEntry)
            .where(PayrollEntry.submission_id == submission_id)
            .values(status=SubmissionStatus(status).value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
