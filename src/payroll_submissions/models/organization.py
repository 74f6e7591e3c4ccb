"""Organization, location and user models."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_submissions.models.base import Base, TimestampMixin


class Organization(Base, TimestampMixin):
    """Top-level organization owning locations and employees."""

    __tablename__ = "organization"

    organization_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)

    # Relationships
    locations: Mapped[list[Location]] = relationship(back_populates="organization")


class Location(Base, TimestampMixin):
    """Field location that submits payroll."""

    __tablename__ = "location"

    location_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="location_org_name_unique"),
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="locations")


class AppUser(Base, TimestampMixin):
    """Authenticated user with a single role."""

    __tablename__ = "app_user"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "role IN ('super_admin', 'owner', 'admin', 'employee', 'user')",
            name="app_user_role_check",
        ),
    )


class UserLocation(Base):
    """Assignment of a user to a location they may submit for."""

    __tablename__ = "user_location"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    location_id: Mapped[UUID] = mapped_column(
        ForeignKey("location.location_id", ondelete="CASCADE"),
        primary_key=True,
    )
