"""Type definitions for period and compensation calculation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PayrollGroup(str, Enum):
    """Alternating payroll cohorts, offset by one week."""

    A = "A"
    B = "B"

    @property
    def other(self) -> PayrollGroup:
        return PayrollGroup.B if self is PayrollGroup.A else PayrollGroup.A


class CompensationType(str, Enum):
    """How an employee's pay is measured."""

    HOURLY = "hourly"
    PRODUCTION = "production"
    FIXED = "fixed"


@dataclass(frozen=True)
class PayrollPeriod:
    """Payroll group and 14-day work period derived from a pay date.

    ``is_valid`` is False for the sentinel returned when the pay date could
    not be parsed; callers must not load employees or save drafts with it.
    """

    pay_date: date | None
    payroll_group: PayrollGroup | None
    period_start: date | None
    period_end: date | None

    @property
    def is_valid(self) -> bool:
        return self.pay_date is not None

    @classmethod
    def invalid(cls) -> PayrollPeriod:
        return cls(pay_date=None, payroll_group=None, period_start=None, period_end=None)


@dataclass(frozen=True)
class CompensationProfile:
    """Rates relevant to an employee's compensation type."""

    compensation_type: CompensationType
    hourly_rate: Decimal | None = None
    piece_rate: Decimal | None = None
    fixed_pay: Decimal | None = None


@dataclass(frozen=True)
class EntryInput:
    """Measures entered for one employee.

    Only the group matching the employee's compensation type is read.
    """

    employee_id: UUID
    hours: Decimal | None = None
    units: Decimal | None = None
    count: Decimal | None = None
    adjustment: Decimal | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CompensationResult:
    """Computed amount and whether the row counts as entered."""

    amount: Decimal
    has_data: bool
    hours: Decimal | None = None
    units: Decimal | None = None
    count: Decimal | None = None
    adjustment: Decimal | None = None
