"""Recurring payroll submission, approval and posting workflow."""

__version__ = "0.1.0"
