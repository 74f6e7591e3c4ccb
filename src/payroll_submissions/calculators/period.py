"""Pay period and payroll group derivation from a pay date.

All arithmetic is on naive calendar dates. No timezone conversion is applied,
so the same Y-M-D input always yields the same period regardless of where the
caller runs.
"""

from __future__ import annotations

from datetime import date, timedelta

from payroll_submissions.calculators.types import PayrollGroup, PayrollPeriod

PERIOD_END_OFFSET = timedelta(days=9)
PERIOD_LENGTH_DAYS = 14
DEFAULT_REFERENCE_DATE = date(2025, 1, 3)
FRIDAY = 4


def parse_local_date(value: str) -> date | None:
    """Parse a strict ``YYYY-MM-DD`` string, returning None if malformed."""
    parts = value.strip().split("-")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    try:
        year, month, day = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError:
        return None


class PeriodCalculator:
    """Maps a pay date to its payroll group and 14-day work period.

    The period ends 9 days before the pay date and starts 13 days before that,
    inclusive on both ends. Groups alternate weekly relative to the reference
    date, whose week belongs to ``anchor_group``.
    """

    def __init__(
        self,
        reference_date: date = DEFAULT_REFERENCE_DATE,
        anchor_group: PayrollGroup | str = PayrollGroup.B,
    ):
        self.reference_date = reference_date
        self.anchor_group = PayrollGroup(anchor_group)

    @classmethod
    def from_settings(cls) -> PeriodCalculator:
        """Build a calculator from application settings."""
        from payroll_submissions.config import get_settings

        settings = get_settings()
        return cls(settings.payroll_reference_date, settings.payroll_anchor_group)

    def payroll_group(self, pay_date: date) -> PayrollGroup:
        """Get the payroll group for a pay date."""
        weeks_since_reference = (pay_date - self.reference_date).days // 7
        if weeks_since_reference % 2 == 0:
            return self.anchor_group
        return self.anchor_group.other

    def calculate(self, pay_date: date) -> PayrollPeriod:
        """Calculate group and period bounds for a pay date.

        Pay dates too early for a full period before them give the sentinel.
        """
        try:
            period_end = pay_date - PERIOD_END_OFFSET
            period_start = period_end - timedelta(days=PERIOD_LENGTH_DAYS - 1)
        except OverflowError:
            return PayrollPeriod.invalid()
        return PayrollPeriod(
            pay_date=pay_date,
            payroll_group=self.payroll_group(pay_date),
            period_start=period_start,
            period_end=period_end,
        )

    def calculate_from_string(self, pay_date: str) -> PayrollPeriod:
        """Calculate from a ``YYYY-MM-DD`` string; invalid input gives the sentinel."""
        parsed = parse_local_date(pay_date)
        if parsed is None:
            return PayrollPeriod.invalid()
        return self.calculate(parsed)

    @staticmethod
    def next_pay_date(today: date) -> date:
        """Default pay date: the next Friday on or after ``today``."""
        return today + timedelta(days=(FRIDAY - today.weekday()) % 7)
