"""API routes."""

from payroll_submissions.api.routes.submissions import router as submissions_router
from payroll_submissions.api.routes.health import router as health_router

__all__ = ["submissions_router", "health_router"]
