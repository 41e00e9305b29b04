"""Tests for the purchase-to-entitlement flow against the SQL stores."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from mediagate.core.config import Settings
from mediagate.core.errors import InvalidRequestError, NotFoundError, PaymentGatewayError
from mediagate.features.content.store import SqlContentStore
from mediagate.features.entitlements.service import EntitlementService
from mediagate.features.purchases.service import PurchaseService
from mediagate.features.purchases.store import SqlPendingTransactionStore, SqlPurchaseStore
from mediagate.models.content import ContentKind
from mediagate.models.entitlement import AccessType, ContentScope, EntitlementSource
from mediagate.models.pricing import PricingPlan, PricingTier
from mediagate.tests.mocks import FakePaymentProvider


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog(db):
    store = SqlContentStore()
    store.create(ContentKind.SERIES, "Series", content_id="series-1")
    store.create(ContentKind.SEASON, "Season 1", parent_id="series-1", content_id="season-1")
    store.create(ContentKind.EPISODE, "Episode 1", parent_id="season-1", content_id="ep-1")
    store.create(ContentKind.MOVIE, "Free movie", content_id="free-1")
    store.lock(
        "series-1",
        PricingPlan(
            content_id="series-1",
            base_price=Decimal("100"),
            base_duration_days=15,
            additional_tiers=[PricingTier(days=30, price=Decimal("50"))],
        ),
    )
    return store


def make_service(provider=None):
    return PurchaseService(
        provider=provider or FakePaymentProvider(),
        settings_obj=Settings(VAT_PERCENTAGE=15.0, CHAPA_FEE_PERCENTAGE=3.5, API_DOMAIN="https://api.test"),
    )


def test_initiate_prices_and_parks_pending_row(catalog):
    provider = FakePaymentProvider()
    result = make_service(provider).initiate("user-1", "ep-1", AccessType.TEMPORARY, 45, now=NOW)

    assert result.content_id == "series-1"
    assert result.base_amount == Decimal("150.00")
    assert result.vat_amount == Decimal("22.50")
    assert result.gross_amount == Decimal("172.50")
    assert result.checkout_url.endswith(result.transaction_ref)

    checkout = provider.checkouts[0]
    assert checkout.amount == Decimal("172.50")
    assert checkout.callback_url == "https://api.test/api/purchases/webhook"
    assert checkout.return_url.endswith(f"tx_ref={result.transaction_ref}")

    pending = SqlPendingTransactionStore().get(result.transaction_ref)
    assert pending.content_scope == ContentScope.SERIES
    assert pending.duration_days == 45


def test_verify_grants_access_and_records_purchase(catalog):
    service = make_service()
    started = service.initiate("user-1", "ep-1", now=NOW)

    assert service.verify_and_grant(started.transaction_ref, now=NOW) is True

    purchase = SqlPurchaseStore().get_by_ref(started.transaction_ref)
    assert purchase.check_accounting()
    assert purchase.gross_amount == Decimal("115.00")
    assert purchase.transaction_fee == Decimal("4.03")
    assert purchase.net_amount_for_split == Decimal("95.97")
    assert purchase.expires_at == NOW + timedelta(days=15)
    assert SqlPendingTransactionStore().get(started.transaction_ref) is None

    grant = EntitlementService().check_user_access("user-1", "ep-1", now=NOW + timedelta(days=1))
    assert grant.source == EntitlementSource.TOP_UP
    assert grant.purchase_id == purchase.id
    assert grant.valid_until == NOW + timedelta(days=15)


def test_verify_is_idempotent(catalog):
    provider = FakePaymentProvider()
    service = make_service(provider)
    started = service.initiate("user-1", "series-1", now=NOW)

    assert service.verify_and_grant(started.transaction_ref, now=NOW) is True
    assert service.verify_and_grant(started.transaction_ref, now=NOW) is True
    assert provider.verified == [started.transaction_ref]


def test_unknown_reference_is_rejected(catalog):
    assert make_service().verify_and_grant("tx-unknown") is False
    assert make_service().verify_and_grant(None) is False


def test_failed_payment_discards_pending_row(catalog):
    service = make_service(FakePaymentProvider(status="failed"))
    started = service.initiate("user-1", "series-1", now=NOW)

    assert service.verify_and_grant(started.transaction_ref, now=NOW) is False
    assert SqlPendingTransactionStore().get(started.transaction_ref) is None
    assert EntitlementService().check_user_access("user-1", "series-1", now=NOW) is None


def test_paid_amount_mismatch_is_not_granted(catalog):
    provider = FakePaymentProvider()
    service = make_service(provider)
    started = service.initiate("user-1", "series-1", now=NOW)
    provider.paid_amount = Decimal("1.00")

    assert service.verify_and_grant(started.transaction_ref, now=NOW) is False
    assert SqlPurchaseStore().get_by_ref(started.transaction_ref) is None


def test_already_entitled_user_cannot_buy_again(catalog):
    service = make_service()
    started = service.initiate("user-1", "series-1", now=NOW)
    service.verify_and_grant(started.transaction_ref, now=NOW)

    with pytest.raises(InvalidRequestError) as exc:
        service.initiate("user-1", "ep-1", now=NOW + timedelta(days=1))
    assert exc.value.code == "already_entitled"


def test_unlocked_content_is_not_purchasable(catalog):
    with pytest.raises(InvalidRequestError):
        make_service().initiate("user-1", "free-1", now=NOW)


def test_unknown_content_is_not_found(catalog):
    with pytest.raises(NotFoundError):
        make_service().initiate("user-1", "missing", now=NOW)


def test_short_duration_is_rejected(catalog):
    with pytest.raises(InvalidRequestError) as exc:
        make_service().initiate("user-1", "series-1", AccessType.TEMPORARY, 5, now=NOW)
    assert exc.value.code == "duration_too_short"


def test_permanent_requires_permanent_price(catalog):
    with pytest.raises(InvalidRequestError):
        make_service().initiate("user-1", "series-1", AccessType.PERMANENT, now=NOW)


def test_permanent_purchase_never_expires(catalog):
    catalog.lock(
        "series-1",
        PricingPlan(content_id="series-1", base_price=Decimal("100"), permanent_price=Decimal("300")),
    )
    service = make_service()
    started = service.initiate("user-1", "series-1", AccessType.PERMANENT, now=NOW)
    assert started.gross_amount == Decimal("345.00")

    assert service.verify_and_grant(started.transaction_ref, now=NOW) is True
    grant = EntitlementService().check_user_access("user-1", "ep-1", now=NOW + timedelta(days=3650))
    assert grant.access_type == AccessType.PERMANENT
    assert grant.valid_until is None


def test_gateway_failure_surfaces_as_502(catalog):
    with pytest.raises(PaymentGatewayError) as exc:
        make_service(FakePaymentProvider(fail_initialize=True)).initiate("user-1", "series-1", now=NOW)
    assert exc.value.status_code == 502
