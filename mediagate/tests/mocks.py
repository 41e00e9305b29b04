from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from mediagate.core.errors import ConflictError
from mediagate.features.purchases.provider import (
    CheckoutRequest,
    PaymentProviderError,
    VerifiedTransaction,
)
from mediagate.models.content import ContentKind, ContentNode
from mediagate.models.entitlement import AccessType, Entitlement
from mediagate.models.pricing import PricingPlan
from mediagate.models.purchase import PurchaseRecord
from mediagate.models.settlement import DailySettlement


class FakeContentStore:
    def __init__(self):
        self.nodes: Dict[str, ContentNode] = {}
        self.plans: Dict[str, PricingPlan] = {}
        self.get_calls = 0

    def add(self, node_id: str, kind: ContentKind, parent_id: Optional[str] = None, *, plan=None, **fields):
        node = ContentNode(id=node_id, kind=kind, parent_id=parent_id, is_locked=plan is not None, **fields)
        self.nodes[node_id] = node
        if plan is not None:
            self.plans[node_id] = plan
        return node

    def get(self, content_id):
        self.get_calls += 1
        return self.nodes.get(content_id)

    def get_pricing(self, content_id):
        return self.plans.get(content_id)

    def children(self, content_id):
        return sorted(
            (n for n in self.nodes.values() if n.parent_id == content_id),
            key=lambda n: n.id,
        )


class FakeEntitlementStore:
    def __init__(self, entitlements: Optional[List[Entitlement]] = None):
        self.entitlements: List[Entitlement] = list(entitlements or [])

    def find_valid(self, user_id, scope_ids, now):
        return [
            e for e in self.entitlements
            if e.user_id == user_id and e.content_id in scope_ids and e.is_valid_at(now)
        ]

    def list_valid_content_ids(self, user_id, now):
        return frozenset(e.content_id for e in self.entitlements if e.user_id == user_id and e.is_valid_at(now))

    def add(self, entitlement):
        self.entitlements.append(entitlement)
        return entitlement

    def count_expired(self, now):
        return sum(1 for e in self.entitlements if not e.is_valid_at(now))


class FakePaymentProvider:
    def __init__(self, status: str = "success", checkout_url: str = "https://checkout.test/pay", fail_initialize: bool = False):
        self.status = status
        self.checkout_url = checkout_url
        self.fail_initialize = fail_initialize
        self.checkouts: List[CheckoutRequest] = []
        self.verified: List[str] = []
        self.paid_amount: Optional[Decimal] = None

    def initialize(self, checkout):
        if self.fail_initialize:
            raise PaymentProviderError("gateway down")
        self.checkouts.append(checkout)
        return f"{self.checkout_url}/{checkout.transaction_ref}"

    def verify(self, transaction_ref):
        self.verified.append(transaction_ref)
        return VerifiedTransaction(reference=transaction_ref, status=self.status, amount=self.paid_amount)


class FakePurchaseStore:
    def __init__(self, purchases: Optional[List[PurchaseRecord]] = None):
        self.purchases: List[PurchaseRecord] = list(purchases or [])

    def get_by_ref(self, transaction_ref):
        return next((p for p in self.purchases if p.transaction_ref == transaction_ref), None)

    def add(self, purchase):
        if self.get_by_ref(purchase.transaction_ref):
            raise ConflictError("duplicate")
        self.purchases.append(purchase)
        return purchase

    def list_between(self, start: datetime, end: datetime):
        return sorted(
            (p for p in self.purchases if start <= p.created_at < end),
            key=lambda p: p.created_at,
        )


class FakeSettlementStore:
    def __init__(self):
        self.records: Dict = {}
        self.add_calls = 0

    def get(self, settlement_date):
        return self.records.get(settlement_date)

    def add(self, settlement: DailySettlement):
        self.add_calls += 1
        if settlement.settlement_date in self.records:
            raise ConflictError("duplicate")
        self.records[settlement.settlement_date] = settlement
        return settlement

    def list_between(self, start, end, status=None):
        rows = [
            r for d, r in self.records.items()
            if start <= d <= end and (status is None or r.status == status)
        ]
        return sorted(rows, key=lambda r: r.settlement_date, reverse=True)


def make_purchase(
    purchase_id: str,
    net: str,
    *,
    created_at: datetime,
    content_id: str = "movie-1",
    vat: str = "0",
    fee: str = "0",
) -> PurchaseRecord:
    """Purchase whose amounts satisfy both accounting identities."""
    net_d, vat_d, fee_d = Decimal(net), Decimal(vat), Decimal(fee)
    gross = net_d + vat_d + fee_d
    return PurchaseRecord(
        id=purchase_id,
        user_id="user-1",
        content_id=content_id,
        access_type=AccessType.TEMPORARY,
        duration_days=15,
        amount_paid=gross,
        gross_amount=gross,
        base_amount=gross - vat_d,
        vat_amount=vat_d,
        transaction_fee=fee_d,
        net_amount_for_split=net_d,
        transaction_ref=f"tx-{purchase_id}",
        created_at=created_at,
    )
