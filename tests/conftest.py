"""Pytest fixtures for payroll submission tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_submissions.calculators.period import PeriodCalculator
from payroll_submissions.calculators.types import EntryInput, PayrollGroup
from payroll_submissions.models import (
    AppUser,
    Base,
    Employee,
    Location,
    Organization,
    UserLocation,
)
from payroll_submissions.services.roles import Actor, Role

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 2025-01-17 is two weeks after the reference Friday, so it belongs to group B
PAY_DATE = date(2025, 1, 17)
OTHER_GROUP_PAY_DATE = date(2025, 1, 10)


@dataclass
class World:
    """Seeded organization, locations, users and employees."""

    organization_id: UUID
    location_id: UUID
    other_location_id: UUID
    reviewer: Actor
    submitter: Actor
    outsider: Actor
    hourly_id: UUID
    production_id: UUID
    fixed_id: UUID
    group_a_id: UUID
    inactive_id: UUID

    def entries(
        self,
        hours: str | None = "40",
        units: str | None = "200",
        count: str | None = "1",
        adjustment: str | None = None,
    ) -> list[EntryInput]:
        """One entry per group-B employee at the main location."""
        return [
            EntryInput(self.hourly_id, hours=Decimal(hours) if hours is not None else None),
            EntryInput(self.production_id, units=Decimal(units) if units is not None else None),
            EntryInput(
                self.fixed_id,
                count=Decimal(count) if count is not None else None,
                adjustment=Decimal(adjustment) if adjustment is not None else None,
            ),
        ]


@pytest.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def periods() -> PeriodCalculator:
    return PeriodCalculator(date(2025, 1, 3), PayrollGroup.B)


@pytest.fixture
async def world(session: AsyncSession) -> World:
    """Seed one organization with two locations and a mixed workforce."""
    org = Organization(organization_id=uuid4(), name="Sunrise Landscaping")
    other_org = Organization(organization_id=uuid4(), name="Other Co")
    main = Location(location_id=uuid4(), organization_id=org.organization_id, name="Downtown")
    branch = Location(location_id=uuid4(), organization_id=org.organization_id, name="Airport")
    session.add_all([org, other_org])
    await session.flush()
    session.add_all([main, branch])
    await session.flush()

    reviewer = AppUser(
        user_id=uuid4(),
        organization_id=org.organization_id,
        email="owner@example.com",
        role=Role.OWNER.value,
    )
    submitter = AppUser(
        user_id=uuid4(),
        organization_id=org.organization_id,
        email="manager@example.com",
        role=Role.EMPLOYEE.value,
    )
    outsider = AppUser(
        user_id=uuid4(),
        organization_id=other_org.organization_id,
        email="admin@other.example.com",
        role=Role.ADMIN.value,
    )
    session.add_all([reviewer, submitter, outsider])
    await session.flush()
    session.add(UserLocation(user_id=submitter.user_id, location_id=main.location_id))

    def employee(first: str, last: str, group: str, comp: str, **rates) -> Employee:
        return Employee(
            employee_id=uuid4(),
            organization_id=org.organization_id,
            location_id=main.location_id,
            first_name=first,
            last_name=last,
            payroll_group=group,
            compensation_type=comp,
            **rates,
        )

    hourly = employee("Alice", "Nguyen", "B", "hourly", hourly_rate=Decimal("20.00"))
    production = employee("Bob", "Ortiz", "B", "production", piece_rate=Decimal("0.5000"))
    fixed = employee("Carol", "Smith", "B", "fixed", fixed_pay=Decimal("750.00"))
    group_a = employee("Dan", "Lee", "A", "hourly", hourly_rate=Decimal("18.00"))
    inactive = employee("Eve", "Park", "B", "hourly", hourly_rate=Decimal("15.00"), is_active=False)
    session.add_all([hourly, production, fixed, group_a, inactive])
    await session.commit()

    return World(
        organization_id=org.organization_id,
        location_id=main.location_id,
        other_location_id=branch.location_id,
        reviewer=Actor(reviewer.user_id, Role.OWNER, org.organization_id),
        submitter=Actor(
            submitter.user_id,
            Role.EMPLOYEE,
            org.organization_id,
            frozenset({main.location_id}),
        ),
        outsider=Actor(outsider.user_id, Role.ADMIN, other_org.organization_id),
        hourly_id=hourly.employee_id,
        production_id=production.employee_id,
        fixed_id=fixed.employee_id,
        group_a_id=group_a.employee_id,
        inactive_id=inactive.employee_id,
    )
