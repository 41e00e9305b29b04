"""Daily settlement job: settles yesterday (UTC) and records a job run."""
from datetime import date, datetime, timedelta, timezone
import json
import logging

from sqlalchemy import insert

from mediagate.core.database import get_db_session, job_runs
from mediagate.features.settlements.service import run_daily_settlement

logger = logging.getLogger("mediagate.jobs.daily_settlement")

JOB_NAME = "settlement.daily"


def settle_yesterday(*, now: datetime | None = None, settlement_date: date | None = None) -> dict:
    started_at = now or datetime.now(timezone.utc)
    target = settlement_date or (started_at.astimezone(timezone.utc).date() - timedelta(days=1))

    status = "success"
    record = None
    try:
        record = run_daily_settlement(target)
    except Exception:
        status = "failed"
        logger.exception("[settlement] daily job failed", extra={"settlement_date": target.isoformat()})
        raise
    finally:
        stats = {
            "settlement_date": target.isoformat(),
            "settled": record is not None,
            "total_transactions": record.total_transactions if record else 0,
        }
        with get_db_session() as session:
            session.execute(
                insert(job_runs).values(
                    job_name=JOB_NAME,
                    started_at=started_at,
                    finished_at=datetime.now(timezone.utc),
                    status=status,
                    stats_json=json.dumps(stats),
                )
            )

    logger.info("[settlement] daily job finished", extra=stats)
    return stats


if __name__ == "__main__":
    result = settle_yesterday()
    print(result)
