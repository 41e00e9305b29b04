"""Expired entitlement report: counts grants past their window. Nothing is deleted."""
from datetime import datetime, timezone
import logging

from mediagate.features.entitlements.store import EntitlementStore, SqlEntitlementStore

logger = logging.getLogger("mediagate.jobs.expired_entitlements")


def report_expired_entitlements(
    *,
    now: datetime | None = None,
    store: EntitlementStore | None = None,
) -> dict:
    checked_at = now or datetime.now(timezone.utc)
    expired = (store or SqlEntitlementStore()).count_expired(checked_at)
    logger.info(
        "[entitlement] expired grants",
        extra={"expired": expired, "checked_at": checked_at.isoformat()},
    )
    return {"expired": expired, "checked_at": checked_at.isoformat()}


if __name__ == "__main__":
    result = report_expired_entitlements()
    print(result)
