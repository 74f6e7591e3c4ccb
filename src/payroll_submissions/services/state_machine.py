"""Submission state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from payroll_submissions.errors import InvalidTransitionError

if TYPE_CHECKING:
    from payroll_submissions.models import PayrollSubmission


class SubmissionStatus(str, Enum):
    """Submission status values."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    POSTED = "posted"
    REJECTED = "rejected"


class SubmissionStateMachine:
    """State machine for submission status transitions.

    Allowed transitions:
    - draft → draft (auto-save rewrite)
    - draft → pending (submit)
    - rejected → draft (editing after rejection)
    - rejected → pending (resubmit)
    - pending → approved → posted (approval, two sub-phases)
    - pending → rejected
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        SubmissionStatus.DRAFT: [SubmissionStatus.DRAFT, SubmissionStatus.PENDING],
        SubmissionStatus.REJECTED: [SubmissionStatus.DRAFT, SubmissionStatus.PENDING],
        SubmissionStatus.PENDING: [SubmissionStatus.APPROVED, SubmissionStatus.REJECTED],
        SubmissionStatus.APPROVED: [SubmissionStatus.POSTED],
        SubmissionStatus.POSTED: [],  # Terminal state
    }

    # Statuses whose entries may be rewritten
    EDITABLE = {
        SubmissionStatus.DRAFT,
        SubmissionStatus.REJECTED,
    }

    # At most one of these may exist per (location, pay date, payroll group)
    OPEN = {
        SubmissionStatus.DRAFT,
        SubmissionStatus.PENDING,
        SubmissionStatus.REJECTED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_editable(cls, status: str) -> bool:
        """Check if entries can be rewritten in this status."""
        return status in cls.EDITABLE

    @classmethod
    def is_open(cls, status: str) -> bool:
        """Check if this status blocks a second submission for the same key."""
        return status in cls.OPEN

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status)

    @classmethod
    def is_resubmit(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition is a resubmission (rejected → pending)."""
        return from_status == SubmissionStatus.REJECTED and to_status == SubmissionStatus.PENDING

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_submission_for_transition(
        cls,
        submission: PayrollSubmission,
        to_status: str,
        included_count: int = 0,
        rejection_note: str | None = None,
    ) -> list[str]:
        """Validate a submission for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = submission.status

        # Basic transition check
        if not cls.can_transition(from_status, to_status):
            errors.append(
                f"Cannot transition from '{SubmissionStatus(from_status).value}' "
                f"to '{SubmissionStatus(to_status).value}'"
            )
            return errors

        # Transition-specific validations
        if to_status == SubmissionStatus.PENDING:
            if included_count < 1:
                errors.append("Please enter payroll data for at least one employee")

        elif to_status == SubmissionStatus.REJECTED:
            if not rejection_note or not rejection_note.strip():
                errors.append("Rejection requires a note")

        return errors
