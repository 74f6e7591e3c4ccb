"""Payroll submission, entry and approval audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_submissions.models.base import Base, TimestampMixin, utcnow

OPEN_STATUS_PREDICATE = "status IN ('draft', 'pending', 'rejected')"


class PayrollSubmission(Base, TimestampMixin):
    """One location's payroll batch for a pay date and payroll group."""

    __tablename__ = "payroll_submission"

    submission_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    location_id: Mapped[UUID] = mapped_column(
        ForeignKey("location.location_id", ondelete="RESTRICT"),
        nullable=False,
    )
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    payroll_group: Mapped[str] = mapped_column(String(1), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    submitted_by: Mapped[UUID | None] = mapped_column(nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[UUID | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_saved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'posted', 'rejected')",
            name="payroll_submission_status_check",
        ),
        CheckConstraint("payroll_group IN ('A', 'B')", name="payroll_submission_group_check"),
        CheckConstraint("period_end >= period_start", name="payroll_submission_dates_check"),
        # At most one open submission per key
        Index(
            "payroll_submission_open_key_unique",
            "location_id",
            "pay_date",
            "payroll_group",
            unique=True,
            postgresql_where=text(OPEN_STATUS_PREDICATE),
            sqlite_where=text(OPEN_STATUS_PREDICATE),
        ),
    )

    # Relationships
    entries: Mapped[list[PayrollEntry]] = relationship(
        back_populates="submission",
        order_by="PayrollEntry.created_at",
    )

    @property
    def submission_number(self) -> str:
        """Short human-facing reference."""
        return str(self.submission_id)[:8]


class PayrollEntry(Base, TimestampMixin):
    """One employee's line item within a submission.

    Exactly one measure group is populated, matching the employee's
    compensation type: ``hours``, ``units``, or ``count`` + ``adjustment``.
    """

    __tablename__ = "payroll_entry"

    entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    submission_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_submission.submission_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    units: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    count: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    adjustment: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("submission_id", "employee_id", name="payroll_entry_employee_unique"),
        CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'posted', 'rejected')",
            name="payroll_entry_status_check",
        ),
    )

    # Relationships
    submission: Mapped[PayrollSubmission] = relationship(back_populates="entries")


class ApprovalAuditRecord(Base, TimestampMixin):
    """Append-only log of reviewer actions. Never updated or deleted."""

    __tablename__ = "payroll_approval"

    approval_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    submission_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_submission.submission_id", ondelete="RESTRICT"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(String, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(nullable=False)
    previous_status: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "action IN ('approved', 'rejected')",
            name="payroll_approval_action_check",
        ),
    )
