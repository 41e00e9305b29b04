"""
mediagate/features/purchases/service.py

Purchase-to-entitlement flow.

initiate:
- Resolve the content chain, refuse unlocked / already-entitled / unpriced content
- Price the duration (or the permanent price), apply VAT
- Open a hosted checkout at the gateway and park the amounts as a pending row

verify_and_grant:
- Idempotent on transaction_ref
- Confirms with the gateway, then writes purchase + entitlement atomically
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import uuid4
import logging

from pydantic import BaseModel, ConfigDict

from mediagate.core.config import Settings, settings
from mediagate.core.errors import ConflictError, InvalidRequestError, PaymentGatewayError
from mediagate.features.content.hierarchy import effective_lock, pricing_source, resolve_chain
from mediagate.features.content.store import ContentStore, SqlContentStore
from mediagate.features.entitlements.service import EntitlementService
from mediagate.features.pricing.service import apply_vat, quote_price, settlement_amounts
from mediagate.features.purchases.provider import (
    CheckoutRequest,
    PaymentProvider,
    PaymentProviderError,
)
from mediagate.features.purchases.store import (
    PendingTransactionStore,
    PurchaseStore,
    SqlPendingTransactionStore,
    SqlPurchaseStore,
)
from mediagate.models.entitlement import (
    AccessType,
    Entitlement,
    EntitlementSource,
    normalize_now,
    scope_for_kind,
)
from mediagate.models.purchase import PendingTransaction, PurchaseRecord


logger = logging.getLogger(__name__)


class InitiatedPurchase(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_ref: str
    checkout_url: str
    content_id: str
    access_type: AccessType
    duration_days: Optional[int] = None
    base_amount: Decimal
    vat_amount: Decimal
    gross_amount: Decimal
    currency: str


class PurchaseService:
    """Checkout initiation and payment confirmation."""

    def __init__(
        self,
        provider: Optional[PaymentProvider] = None,
        content_store: Optional[ContentStore] = None,
        entitlement_service: Optional[EntitlementService] = None,
        pending_store: Optional[PendingTransactionStore] = None,
        purchase_store: Optional[PurchaseStore] = None,
        settings_obj: Optional[Settings] = None,
    ) -> None:
        self._provider = provider
        self.content_store = content_store or SqlContentStore()
        self.entitlements = entitlement_service or EntitlementService(content_store=self.content_store)
        self.pending_store = pending_store or SqlPendingTransactionStore()
        self.purchase_store = purchase_store or SqlPurchaseStore()
        self.settings = settings_obj or settings

    @property
    def provider(self) -> PaymentProvider:
        if self._provider is None:
            from mediagate.features.purchases.chapa_provider import ChapaProvider
            self._provider = ChapaProvider()
        return self._provider

    def initiate(
        self,
        user_id: str,
        content_id: str,
        access_type: AccessType = AccessType.TEMPORARY,
        duration_days: Optional[int] = None,
        *,
        email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> InitiatedPurchase:
        """
        Start a purchase of `content_id` for `user_id`.

        Raises:
            NotFoundError: unknown content
            InvalidRequestError: content not for sale, already entitled, or bad duration
            PaymentGatewayError: the gateway refused to open a checkout
        """
        now = normalize_now(now)
        chain = resolve_chain(content_id, self.content_store)

        if not effective_lock(chain):
            raise InvalidRequestError("This content is not available for purchase.", code="not_purchasable")

        if self.entitlements.find_grant(user_id, [n.id for n in chain], now) is not None:
            raise InvalidRequestError("User already has access to this content.", code="already_entitled")

        plan = pricing_source(chain, self.content_store)
        if plan is None:
            raise InvalidRequestError("This content is not available for purchase.", code="not_purchasable")

        if access_type == AccessType.PERMANENT:
            if plan.permanent_price is None:
                raise InvalidRequestError(
                    "Permanent access is not offered for this content.", code="not_purchasable"
                )
            price = plan.permanent_price
            duration_days = None
        else:
            quote = quote_price(plan, duration_days or plan.base_duration_days)
            price = quote.price
            duration_days = quote.requested_days

        breakdown = apply_vat(price, self.settings.vat_rate, plan.is_vat_added)
        target = next(n for n in chain if n.id == plan.content_id)
        transaction_ref = f"tx-{uuid4().hex}"
        api_domain = self.settings.API_DOMAIN.rstrip("/")

        checkout = CheckoutRequest(
            transaction_ref=transaction_ref,
            amount=breakdown.gross_amount,
            currency=plan.currency,
            callback_url=f"{api_domain}/api/purchases/webhook",
            return_url=f"{api_domain}/api/purchases/verify-redirect?tx_ref={transaction_ref}",
            customization_title=target.title or "Content unlock",
            customer_email=email,
            metadata={"user_id": user_id, "content_id": target.id},
        )
        try:
            checkout_url = self.provider.initialize(checkout)
        except PaymentProviderError as e:
            logger.error(
                "[purchase] checkout initialization failed",
                extra={"user_id": user_id, "content_id": target.id, "transaction_ref": transaction_ref, "error": str(e)},
            )
            raise PaymentGatewayError("Could not initiate payment.")

        self.pending_store.add(
            PendingTransaction(
                transaction_ref=transaction_ref,
                user_id=user_id,
                content_id=target.id,
                content_scope=scope_for_kind(target.kind),
                access_type=access_type,
                duration_days=duration_days,
                base_amount=breakdown.base_amount,
                vat_amount=breakdown.vat_amount,
                gross_amount=breakdown.gross_amount,
                created_at=now,
            )
        )
        logger.info(
            "[purchase] initiated",
            extra={
                "user_id": user_id,
                "content_id": target.id,
                "transaction_ref": transaction_ref,
                "access_type": access_type.value,
                "gross_amount": str(breakdown.gross_amount),
            },
        )
        return InitiatedPurchase(
            transaction_ref=transaction_ref,
            checkout_url=checkout_url,
            content_id=target.id,
            access_type=access_type,
            duration_days=duration_days,
            base_amount=breakdown.base_amount,
            vat_amount=breakdown.vat_amount,
            gross_amount=breakdown.gross_amount,
            currency=plan.currency,
        )

    def verify_and_grant(self, transaction_ref: Optional[str], now: Optional[datetime] = None) -> bool:
        """
        Confirm `transaction_ref` with the gateway and grant access.

        Returns True when the purchase is (or already was) recorded, False
        when the reference is unknown or the payment did not succeed.
        """
        if not transaction_ref:
            logger.warning("[purchase] verification without transaction_ref")
            return False

        pending = self.pending_store.get(transaction_ref)
        if pending is None:
            if self.purchase_store.get_by_ref(transaction_ref) is not None:
                return True
            logger.warning("[purchase] unknown or already processed transaction", extra={"transaction_ref": transaction_ref})
            return False

        try:
            verified = self.provider.verify(transaction_ref)
        except PaymentProviderError as e:
            # Pending row stays so a later webhook or redirect can retry.
            logger.error("[purchase] verification failed", extra={"transaction_ref": transaction_ref, "error": str(e)})
            return False

        if not verified.succeeded:
            self.pending_store.remove(transaction_ref)
            logger.info(
                "[purchase] payment not successful",
                extra={"transaction_ref": transaction_ref, "status": verified.status},
            )
            return False

        if verified.amount is not None and verified.amount != pending.gross_amount:
            logger.error(
                "[purchase] paid amount mismatch",
                extra={
                    "transaction_ref": transaction_ref,
                    "expected": str(pending.gross_amount),
                    "paid": str(verified.amount),
                },
            )
            return False

        now = normalize_now(now)
        fee, net = settlement_amounts(pending.gross_amount, pending.vat_amount, self.settings.fee_rate)
        expires_at = None
        if pending.access_type == AccessType.TEMPORARY:
            expires_at = now + timedelta(days=pending.duration_days)

        purchase = PurchaseRecord(
            id=str(uuid4()),
            user_id=pending.user_id,
            content_id=pending.content_id,
            content_scope=pending.content_scope,
            access_type=pending.access_type,
            duration_days=pending.duration_days,
            amount_paid=pending.gross_amount,
            gross_amount=pending.gross_amount,
            base_amount=pending.base_amount,
            vat_amount=pending.vat_amount,
            transaction_fee=fee,
            net_amount_for_split=net,
            transaction_ref=transaction_ref,
            expires_at=expires_at,
            created_at=now,
        )
        entitlement = Entitlement(
            id=str(uuid4()),
            user_id=pending.user_id,
            content_id=pending.content_id,
            content_scope=pending.content_scope,
            access_type=pending.access_type,
            valid_from=now,
            valid_until=expires_at,
            source=EntitlementSource.TOP_UP,
            purchase_id=purchase.id,
        )

        try:
            self.purchase_store.complete(purchase, entitlement)
        except ConflictError:
            # Concurrent confirmation already recorded it.
            self.pending_store.remove(transaction_ref)
            return True

        logger.info(
            "[purchase] completed",
            extra={
                "user_id": pending.user_id,
                "content_id": pending.content_id,
                "transaction_ref": transaction_ref,
                "net_amount_for_split": str(net),
            },
        )
        return True
