"""Employee model with compensation profile."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_submissions.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee record.

    The compensation columns relevant to ``compensation_type`` are read when
    amounts are computed; the others are ignored.
    """

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    location_id: Mapped[UUID] = mapped_column(
        ForeignKey("location.location_id", ondelete="RESTRICT"),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    payroll_group: Mapped[str] = mapped_column(String(1), nullable=False)
    compensation_type: Mapped[str] = mapped_column(String, nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    piece_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    fixed_pay: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("payroll_group IN ('A', 'B')", name="employee_payroll_group_check"),
        CheckConstraint(
            "compensation_type IN ('hourly', 'production', 'fixed')",
            name="employee_compensation_type_check",
        ),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"
