"""Posted payment model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_submissions.models.base import Base, TimestampMixin


class Payment(Base, TimestampMixin):
    """Immutable payment created when a submission is posted.

    Carries a denormalized snapshot of the employee, location and measures so
    it stays correct if the source rows change later.
    """

    __tablename__ = "payment"

    payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="RESTRICT"),
        nullable=False,
    )
    submission_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_submission.submission_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    location_id: Mapped[UUID] = mapped_column(
        ForeignKey("location.location_id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Snapshot
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    department: Mapped[str] = mapped_column(String, nullable=False)
    payment_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String, nullable=False, default="Direct Deposit")
    payroll_group: Mapped[str] = mapped_column(String(1), nullable=False)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    units: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    count: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    adjustment: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, default="system")

    __table_args__ = (
        UniqueConstraint("submission_id", "employee_id", name="payment_submission_employee_unique"),
        Index("payment_date_idx", "date"),
    )
