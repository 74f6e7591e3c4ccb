"""Collaborator lookups: identity, locations and employees.

The workflow only depends on the protocols; the SQL implementations read the
tables of this package and can be swapped for remote directories.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.calculators.types import (
    CompensationProfile,
    CompensationType,
    PayrollGroup,
)
from payroll_submissions.errors import NotFoundError, PermissionDeniedError
from payroll_submissions.models import AppUser, Employee, Location, UserLocation
from payroll_submissions.services.roles import Actor, Role


@dataclass(frozen=True)
class LocationInfo:
    """Display name and owning organization of a location."""

    location_id: UUID
    name: str
    organization_id: UUID


@dataclass(frozen=True)
class EmployeeInfo:
    """Active employee with compensation profile."""

    employee_id: UUID
    location_id: UUID
    first_name: str
    last_name: str
    email: str | None
    payroll_group: PayrollGroup
    profile: CompensationProfile

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_model(cls, employee: Employee) -> EmployeeInfo:
        return cls(
            employee_id=employee.employee_id,
            location_id=employee.location_id,
            first_name=employee.first_name,
            last_name=employee.last_name,
            email=employee.email,
            payroll_group=PayrollGroup(employee.payroll_group),
            profile=CompensationProfile(
                compensation_type=CompensationType(employee.compensation_type),
                hourly_rate=employee.hourly_rate,
                piece_rate=employee.piece_rate,
                fixed_pay=employee.fixed_pay,
            ),
        )


class IdentityProvider(Protocol):
    async def resolve(self, user_id: UUID) -> Actor: ...


class LocationDirectory(Protocol):
    async def get(self, location_id: UUID) -> LocationInfo: ...

    async def list_for_organization(self, organization_id: UUID) -> list[LocationInfo]: ...


class EmployeeDirectory(Protocol):
    async def list_active(
        self, location_id: UUID, payroll_group: PayrollGroup | None = None
    ) -> list[EmployeeInfo]: ...

    async def get_many(
        self, location_id: UUID, employee_ids: Iterable[UUID]
    ) -> dict[UUID, EmployeeInfo]: ...


class SqlIdentityProvider:
    """Resolves actors from the app_user and user_location tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, user_id: UUID) -> Actor:
        user = await self.session.get(AppUser, user_id)
        if user is None:
            raise PermissionDeniedError("Unknown user", {"user_id": str(user_id)})

        result = await self.session.execute(
            select(UserLocation.location_id).where(UserLocation.user_id == user_id)
        )
        return Actor(
            user_id=user.user_id,
            role=Role(user.role),
            organization_id=user.organization_id,
            location_ids=frozenset(result.scalars().all()),
        )


class SqlLocationDirectory:
    """Reads locations from the location table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, location_id: UUID) -> LocationInfo:
        location = await self.session.get(Location, location_id)
        if location is None:
            raise NotFoundError("Location not found", {"location_id": str(location_id)})
        return LocationInfo(location.location_id, location.name, location.organization_id)

    async def list_for_organization(self, organization_id: UUID) -> list[LocationInfo]:
        result = await self.session.execute(
            select(Location)
            .where(Location.organization_id == organization_id)
            .order_by(Location.name)
        )
        return [
            LocationInfo(loc.location_id, loc.name, loc.organization_id)
            for loc in result.scalars().all()
        ]


class SqlEmployeeDirectory:
    """Reads active (non-archived) employees from the employee table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_active(
        self, location_id: UUID, payroll_group: PayrollGroup | None = None
    ) -> list[EmployeeInfo]:
        query = select(Employee).where(
            Employee.location_id == location_id,
            Employee.is_active.is_(True),
        )
        if payroll_group is not None:
            query = query.where(Employee.payroll_group == PayrollGroup(payroll_group).value)
        result = await self.session.execute(query.order_by(Employee.first_name))
        return [EmployeeInfo.from_model(emp) for emp in result.scalars().all()]

    async def get_many(
        self, location_id: UUID, employee_ids: Iterable[UUID]
    ) -> dict[UUID, EmployeeInfo]:
        ids = list(employee_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Employee).where(
                Employee.location_id == location_id,
                Employee.is_active.is_(True),
                Employee.employee_id.in_(ids),
            )
        )
        return {emp.employee_id: EmployeeInfo.from_model(emp) for emp in result.scalars().all()}
