"""Period and compensation calculators."""

from payroll_submissions.calculators.compensation import CompensationCalculator
from payroll_submissions.calculators.period import PeriodCalculator, parse_local_date
from payroll_submissions.calculators.types import (
    CompensationProfile,
    CompensationResult,
    CompensationType,
    EntryInput,
    PayrollGroup,
    PayrollPeriod,
)

__all__ = [
    "CompensationCalculator",
    "CompensationProfile",
    "CompensationResult",
    "CompensationType",
    "EntryInput",
    "PayrollGroup",
    "PayrollPeriod",
    "PeriodCalculator",
    "parse_local_date",
]
