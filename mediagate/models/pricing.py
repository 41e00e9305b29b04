"""
mediagate/models/pricing.py

Pricing plan attached to a lockable content node.
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class PricingTier(BaseModel):
    """An additional block of `days` sold for `price`."""
    model_config = ConfigDict(frozen=True)

    days: int = Field(gt=0)
    price: Decimal = Field(ge=0)


class PricingPlan(BaseModel):
    """
    Cost structure of a locked content node.

    A temporary unlock costs `base_price` for `base_duration_days`; longer
    durations are priced with `additional_tiers`. `permanent_price`, when set,
    buys a non-expiring unlock.
    """
    model_config = ConfigDict(frozen=True)

    content_id: str
    base_price: Decimal = Field(ge=0)
    base_duration_days: int = Field(default=15, gt=0)
    additional_tiers: List[PricingTier] = Field(default_factory=list)
    permanent_price: Optional[Decimal] = Field(default=None, ge=0)
    is_vat_added: bool = True
    currency: str = "ETB"


class PriceQuote(BaseModel):
    """Result of pricing a requested duration against a plan."""
    model_config = ConfigDict(frozen=True)

    price: Decimal
    requested_days: int
    billed_days: int
    unbilled_days: int
