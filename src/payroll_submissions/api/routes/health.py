"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from payroll_submissions import __version__
from payroll_submissions.api.dependencies import DbSession
from payroll_submissions.models import PayrollSubmission
from payroll_submissions.services.state_machine import SubmissionStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service health, including postings left half-done by a crash."""

    status: str
    timestamp: datetime
    version: str
    database: str
    stalled_postings: int | None = None


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check the database and count submissions stuck between approval and posting."""
    stalled = None
    try:
        result = await db.execute(
            select(func.count())
            .select_from(PayrollSubmission)
            .where(PayrollSubmission.status == SubmissionStatus.APPROVED.value)
        )
        stalled = result.scalar_one()
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)

    if stalled:
        logger.warning("%d approved submissions are waiting to be posted", stalled)

    return HealthResponse(
        status="healthy" if stalled == 0 else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        database="unhealthy" if stalled is None else "healthy",
        stalled_postings=stalled,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
