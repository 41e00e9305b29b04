"""
mediagate/models/purchase.py

Purchase records and the pending checkout they are created from.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

from mediagate.models.entitlement import AccessType, ContentScope


class PendingTransaction(BaseModel):
    """Checkout started at the gateway; amounts are fixed at initiation."""
    model_config = ConfigDict(frozen=True)

    transaction_ref: str
    user_id: str
    content_id: str
    content_scope: ContentScope
    access_type: AccessType
    duration_days: Optional[int] = None
    base_amount: Decimal
    vat_amount: Decimal
    gross_amount: Decimal
    created_at: Optional[datetime] = None


class PurchaseRecord(BaseModel):
    """
    A completed, paid transaction.

    Accounting identities:
    - gross_amount == base_amount + vat_amount
    - net_amount_for_split == gross_amount - vat_amount - transaction_fee
    """
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: Optional[str]
    content_id: str
    content_scope: Optional[ContentScope] = None
    access_type: AccessType
    duration_days: Optional[int] = None
    amount_paid: Decimal
    gross_amount: Decimal
    base_amount: Decimal
    vat_amount: Decimal
    transaction_fee: Decimal
    net_amount_for_split: Decimal
    transaction_ref: str
    expires_at: Optional[datetime] = None
    created_at: datetime

    def accounting_errors(self) -> List[str]:
        errors = []
        if self.gross_amount != self.base_amount + self.vat_amount:
            errors.append("gross_amount != base_amount + vat_amount")
        if self.net_amount_for_split != self.gross_amount - self.vat_amount - self.transaction_fee:
            errors.append("net_amount_for_split != gross_amount - vat_amount - transaction_fee")
        return errors

    def check_accounting(self) -> bool:
        return not self.accounting_errors()
