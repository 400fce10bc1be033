"""Deterministic money breakdown for a booking.

Everything here is pure: callers resolve the service rate and the pricing
settings first and pass them in, so re-quoting is safe and repeatable.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional

from ..models.service import RateType
from ..utils.errors import (
    InvalidDuration,
    InvalidGuestCount,
    InvalidRatePercent,
    ValidationError,
)

_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")
MAX_DURATION_HOURS = Decimal("12")


@dataclass(frozen=True)
class QuoteSettings:
    referral_percent: Decimal
    deposit_percent: Decimal


@dataclass(frozen=True)
class ServiceRate:
    base_rate: Decimal
    rate_type: RateType
    min_duration_hours: Optional[Decimal] = None


@dataclass(frozen=True)
class QuoteBreakdown:
    base_amount: Decimal
    referral_percent: Decimal
    referral_amount: Decimal
    deposit_percent: Decimal
    deposit_amount: Decimal
    total_amount: Decimal

    def as_booking_fields(self) -> dict[str, Decimal]:
        return {
            "base_amount": self.base_amount,
            "referral_percent": self.referral_percent,
            "referral_amount": self.referral_amount,
            "deposit_percent": self.deposit_percent,
            "deposit_amount": self.deposit_amount,
            "total_amount": self.total_amount,
        }


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"Not a number: {value!r}") from exc


def _check_percent(name: str, value: Decimal) -> Decimal:
    if value < 0 or value > _HUNDRED:
        raise InvalidRatePercent(f"{name} must be between 0 and 100, got {value}", field=name)
    return value


def calculate_quote(
    rate: ServiceRate,
    quote_settings: QuoteSettings,
    duration_hours: Any,
    guest_count: Optional[int] = None,
) -> QuoteBreakdown:
    """Return the base, referral, total and deposit amounts for a booking.

    The referral fee is added on top of the base price. Each output is
    rounded half-up exactly once from the unrounded base, so
    ``total == base + referral`` always holds to the cent.

    The referral is derived as ``total - base`` and is not rounded on its
    own. On half-cent bases it can be a cent below
    ``round2(base * referral_percent / 100)``: 33.33/h for 1.5h at 10%
    quotes a 50.00 base, a 4.99 referral and a 54.99 total.
    """
    referral_percent = _check_percent("referral_percent", to_decimal(quote_settings.referral_percent))
    deposit_percent = _check_percent("deposit_percent", to_decimal(quote_settings.deposit_percent))

    duration = to_decimal(duration_hours)
    if duration <= 0:
        raise InvalidDuration("Duration must be greater than zero")
    if duration > MAX_DURATION_HOURS:
        raise InvalidDuration(f"Duration cannot exceed {MAX_DURATION_HOURS} hours")
    if rate.min_duration_hours is not None and duration < rate.min_duration_hours:
        raise InvalidDuration(
            f"This service requires at least {rate.min_duration_hours} hours"
        )

    base_rate = to_decimal(rate.base_rate)
    if rate.rate_type == RateType.PER_HOUR:
        raw_base = base_rate * duration
    elif rate.rate_type == RateType.PER_PERSON:
        if guest_count is None or guest_count < 1:
            raise InvalidGuestCount("Guest count is required for per-person services")
        raw_base = base_rate * Decimal(guest_count)
    else:
        raw_base = base_rate

    base_amount = round2(raw_base)
    if base_amount <= 0:
        raise ValidationError("Service rate must produce a positive price", field="service_id")
    total_amount = round2(raw_base * (_HUNDRED + referral_percent) / _HUNDRED)
    referral_amount = total_amount - base_amount
    deposit_amount = round2(total_amount * deposit_percent / _HUNDRED)

    return QuoteBreakdown(
        base_amount=base_amount,
        referral_percent=referral_percent,
        referral_amount=referral_amount,
        deposit_percent=deposit_percent,
        deposit_amount=deposit_amount,
        total_amount=total_amount,
    )


def balance_due(total_amount: Decimal, paid: Decimal) -> Decimal:
    """Outstanding amount after ``paid``; never negative."""
    remaining = round2(to_decimal(total_amount) - to_decimal(paid))
    return remaining if remaining > 0 else Decimal("0.00")
