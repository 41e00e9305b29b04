"""
mediagate/features/pricing/service.py

Pricing resolver and checkout accounting.

Durations beyond a plan's base duration are priced greedily with the
additional tiers, smallest block first. Days left over after the tiers are
not billed.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple, Union

from mediagate.core.errors import InvalidRequestError
from mediagate.models.pricing import PricingPlan, PriceQuote


CENTS = Decimal("0.01")
ZERO = Decimal("0")

Rate = Union[Decimal, float, str]


def to_decimal(value: Rate) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _allocate(plan: PricingPlan, requested_duration_days: int) -> Tuple[Decimal, int]:
    """Return (total, leftover_days) for a duration of at least the base duration."""
    total = plan.base_price
    remaining = requested_duration_days - plan.base_duration_days
    for tier in sorted(plan.additional_tiers, key=lambda t: t.days):
        count = remaining // tier.days
        if count > 0:
            total += count * tier.price
            remaining -= count * tier.days
    return total, remaining


def compute_price(plan: PricingPlan, requested_duration_days: int) -> Decimal:
    """Price owed for `requested_duration_days`.

    Returns 0 when the duration is shorter than the base duration; callers
    that need to tell "invalid" from "free" use quote_price instead.
    """
    if requested_duration_days < plan.base_duration_days:
        return ZERO
    total, _ = _allocate(plan, requested_duration_days)
    return total


def quote_price(plan: PricingPlan, requested_duration_days: int) -> PriceQuote:
    """Price a duration, rejecting durations shorter than the base duration.

    Raises:
        InvalidRequestError: requested duration < plan.base_duration_days
    """
    if requested_duration_days < plan.base_duration_days:
        raise InvalidRequestError(
            f"Requested duration {requested_duration_days}d is shorter than the "
            f"base duration {plan.base_duration_days}d",
            code="duration_too_short",
        )
    total, leftover = _allocate(plan, requested_duration_days)
    return PriceQuote(
        price=total,
        requested_days=requested_duration_days,
        billed_days=requested_duration_days - leftover,
        unbilled_days=leftover,
    )


@dataclass(frozen=True)
class VatBreakdown:
    base_amount: Decimal
    vat_amount: Decimal
    gross_amount: Decimal


def apply_vat(price: Decimal, vat_rate: Rate, vat_added: bool) -> VatBreakdown:
    """Split a listed price into base, VAT and gross (gross == base + vat).

    vat_added=True: VAT is charged on top of the price.
    vat_added=False: the price already includes VAT, which is carved out.
    """
    rate = to_decimal(vat_rate)
    price = money(price)
    if vat_added:
        vat = money(price * rate)
        return VatBreakdown(base_amount=price, vat_amount=vat, gross_amount=price + vat)

    vat = money(price - price / (1 + rate))
    return VatBreakdown(base_amount=price - vat, vat_amount=vat, gross_amount=price)


def settlement_amounts(gross_amount: Decimal, vat_amount: Decimal, fee_rate: Rate) -> Tuple[Decimal, Decimal]:
    """Return (transaction_fee, net_amount_for_split) for a confirmed payment."""
    fee = money(gross_amount * to_decimal(fee_rate))
    return fee, gross_amount - vat_amount - fee
