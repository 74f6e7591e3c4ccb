"""Payroll submission services."""

from payroll_submissions.services.state_machine import SubmissionStateMachine, SubmissionStatus
from payroll_submissions.services.roles import Actor, Capability, Role, can, require
from payroll_submissions.services.draft_store import DraftSaveResult, DraftStore
from payroll_submissions.services.submission_service import SubmissionService, SubmitResult
from payroll_submissions.services.approval_poster import ApprovalPoster, PostingResult
from payroll_submissions.services.review_service import ReviewService
from payroll_submissions.services.autosave import AutoSaver, DraftKey, DraftSession

__all__ = [
    "SubmissionStateMachine",
    "SubmissionStatus",
    "Actor",
    "Capability",
    "Role",
    "can",
    "require",
    "DraftSaveResult",
    "DraftStore",
    "SubmissionService",
    "SubmitResult",
    "ApprovalPoster",
    "PostingResult",
    "ReviewService",
    "AutoSaver",
    "DraftKey",
    "DraftSession",
]
