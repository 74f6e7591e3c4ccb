"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.calculators.period import PeriodCalculator
from payroll_submissions.database import init_engine
from payroll_submissions.services.directory import SqlIdentityProvider
from payroll_submissions.services.roles import Actor


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_engine()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_actor(
    db: DbSession,
    x_actor_id: Annotated[str | None, Header()] = None,
) -> Actor:
    """Resolve the acting user from the X-Actor-ID header."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-ID header is required",
        )
    try:
        user_id = UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Actor-ID format",
        )
    return await SqlIdentityProvider(db).resolve(user_id)


def get_period_calculator() -> PeriodCalculator:
    return PeriodCalculator.from_settings()


# Type aliases for cleaner dependency injection
CurrentActor = Annotated[Actor, Depends(get_actor)]
Periods = Annotated[PeriodCalculator, Depends(get_period_calculator)]
