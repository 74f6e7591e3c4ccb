"""ORM models."""

from payroll_submissions.models.base import Base, TimestampMixin
from payroll_submissions.models.employee import Employee
from payroll_submissions.models.organization import AppUser, Location, Organization, UserLocation
from payroll_submissions.models.payments import Payment
from payroll_submissions.models.submission import (
    ApprovalAuditRecord,
    PayrollEntry,
    PayrollSubmission,
)

__all__ = [
    "ApprovalAuditRecord",
    "AppUser",
    "Base",
    "Employee",
    "Location",
    "Organization",
    "Payment",
    "PayrollEntry",
    "PayrollSubmission",
    "TimestampMixin",
    "UserLocation",
]
