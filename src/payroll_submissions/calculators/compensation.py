"""Per-employee compensation calculation."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from payroll_submissions.calculators.types import (
    CompensationProfile,
    CompensationResult,
    CompensationType,
    EntryInput,
)

ZERO = Decimal("0")


class CompensationCalculator:
    """Computes the amount owed for one employee's entered measures.

    Rules:
    - hourly: hours x hourly_rate, hours must be within (0, 80]
    - production: units x piece_rate, units must be > 0
    - fixed: count x fixed_pay + adjustment, count defaults to 1 and must be > 0;
      adjustment is unbounded and may be negative

    Rows outside these bounds are not clamped: the amount is 0 and
    ``has_data`` is False, which excludes them from drafts and submissions.
    Pure and side-effect free.
    """

    MAX_HOURS = Decimal("80")
    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(CompensationCalculator.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @classmethod
    def calculate(cls, profile: CompensationProfile, entry: EntryInput) -> CompensationResult:
        """Calculate the amount for an entry against a compensation profile."""
        if profile.compensation_type == CompensationType.HOURLY:
            return cls.hourly(entry.hours, profile.hourly_rate)
        if profile.compensation_type == CompensationType.PRODUCTION:
            return cls.production(entry.units, profile.piece_rate)
        if profile.compensation_type == CompensationType.FIXED:
            return cls.fixed(entry.count, entry.adjustment, profile.fixed_pay)
        raise ValueError(f"Unknown compensation type: {profile.compensation_type}")

    @classmethod
    def hourly(cls, hours: Decimal | None, rate: Decimal | None) -> CompensationResult:
        if not _is_number(hours) or hours <= ZERO or hours > cls.MAX_HOURS:
            return CompensationResult(amount=ZERO, has_data=False, hours=hours)
        amount = cls.round_to_cents(hours * (rate or ZERO))
        return CompensationResult(amount=amount, has_data=True, hours=hours)

    @classmethod
    def production(cls, units: Decimal | None, rate: Decimal | None) -> CompensationResult:
        if not _is_number(units) or units <= ZERO:
            return CompensationResult(amount=ZERO, has_data=False, units=units)
        amount = cls.round_to_cents(units * (rate or ZERO))
        return CompensationResult(amount=amount, has_data=True, units=units)

    @classmethod
    def fixed(
        cls,
        count: Decimal | None,
        adjustment: Decimal | None,
        fixed_pay: Decimal | None,
    ) -> CompensationResult:
        if count is None:
            count = Decimal("1")
        if adjustment is None or not _is_number(adjustment):
            adjustment = ZERO
        if not _is_number(count) or count <= ZERO:
            return CompensationResult(
                amount=ZERO, has_data=False, count=count, adjustment=adjustment
            )
        amount = cls.round_to_cents(count * (fixed_pay or ZERO) + adjustment)
        return CompensationResult(amount=amount, has_data=True, count=count, adjustment=adjustment)


def _is_number(value: Decimal | None) -> bool:
    return value is not None and value.is_finite()
