"""Integration test fixtures: API client and workflow helpers."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_submissions.api.app import create_app
from payroll_submissions.api.dependencies import get_db_session, get_period_calculator
from payroll_submissions.services.approval_poster import ApprovalPoster
from payroll_submissions.services.draft_store import DraftStore
from payroll_submissions.services.submission_service import SubmissionService


@pytest_asyncio.fixture
async def client(session_factory, periods) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client bound to the test database."""
    app = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_period_calculator] = lambda: periods

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def drafts(session, periods) -> DraftStore:
    return DraftStore(session, periods=periods)


@pytest.fixture
def submissions(session, periods) -> SubmissionService:
    return SubmissionService(session, periods=periods)


@pytest.fixture
def poster(session) -> ApprovalPoster:
    return ApprovalPoster(session)
