"""Workflow exception hierarchy."""

from __future__ import annotations

from typing import Any
from uuid import UUID


class WorkflowError(Exception):
    """Base class for errors surfaced to the initiating actor."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ValidationError(WorkflowError):
    """User-correctable input problem. State is left unchanged."""

    code = "VALIDATION_ERROR"


class ConflictError(WorkflowError):
    """The submission is no longer in the state the action expects."""

    code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        from_status = getattr(from_status, "value", from_status)
        to_status = getattr(to_status, "value", to_status)
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, {"from_status": from_status, "to_status": to_status})


class NotFoundError(WorkflowError):
    """Referenced record does not exist or is not visible to the actor."""

    code = "NOT_FOUND"


class PermissionDeniedError(WorkflowError):
    """Actor's role or location assignment does not allow the action."""

    code = "PERMISSION_DENIED"


class TransientError(WorkflowError):
    """Persistence failure; the action may be retried."""

    code = "TRANSIENT"


class PartialFailureError(TransientError):
    """The approval sequence stopped part-way. Retrying approve resumes it."""

    code = "PARTIAL_FAILURE"

    def __init__(self, submission_id: UUID, step: int, step_name: str, cause: BaseException):
        self.submission_id = submission_id
        self.step = step
        self.step_name = step_name
        self.cause = cause
        super().__init__(
            f"Posting of submission {submission_id} stopped at step {step} "
            f"({step_name}): {cause}",
            {"submission_id": str(submission_id), "step": step, "step_name": step_name},
        )
