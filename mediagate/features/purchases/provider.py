"""
Payment provider protocol.

Defines the interface for payment gateways (Chapa, test fakes).
Business logic depends only on this, never on a gateway SDK or URL.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Protocol


@dataclass
class CheckoutRequest:
    """Everything a gateway needs to start a hosted checkout."""
    transaction_ref: str
    amount: Decimal
    currency: str
    callback_url: str
    return_url: str
    customization_title: str = "Content unlock"
    customer_email: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class VerifiedTransaction:
    """Gateway-side state of a transaction."""
    reference: str
    status: str  # "success", "failed", "pending"
    amount: Optional[Decimal] = None
    currency: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class PaymentProvider(Protocol):
    """
    Protocol for payment gateways.

    Implementations must handle:
    - Checkout initialization (returns a hosted checkout URL)
    - Transaction verification by reference
    """

    def initialize(self, checkout: CheckoutRequest) -> str:
        """
        Start a hosted checkout.

        Returns:
            Checkout URL the customer is redirected to

        Raises:
            PaymentProviderError: If the gateway rejects the request
        """
        ...

    def verify(self, transaction_ref: str) -> VerifiedTransaction:
        """
        Look up the authoritative status of a transaction.

        Raises:
            PaymentProviderError: If the gateway cannot be reached
        """
        ...


class PaymentProviderError(Exception):
    """Base exception for payment provider errors."""
    pass
