"""ARQ job definitions."""

import uuid
from typing import Any

from arq import create_pool
from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.logging import get_logger

log = get_logger(__name__)


async def _run_with_dlq(
    job_name: str,
    job_id: str | None,
    args: list[Any],
    kwargs: dict[str, Any],
    coro,
) -> None:
    """Run coroutine; on exception persist to FailedJob then re-raise."""
    try:
        await coro
    except Exception as e:
        from app.models.failed_job import FailedJob
        fid = job_id or str(uuid.uuid4())
        await FailedJob(
            job_name=job_name,
            job_id=fid,
            args=args,
            kwargs=kwargs,
            reason=str(e)[:2000],
        ).insert()
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        raise


async def send_transaction_notification(ctx: dict[str, Any], record_id: str) -> None:
    """Send the email for one committed transaction record."""
    from app.models.transaction_record import TransactionRecord
    from app.services.notifications import notify

    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None

    async def _run() -> None:
        log.info("job_start", job="send_transaction_notification", record_id=record_id)
        record = await TransactionRecord.get(record_id)
        if record is None:
            log.warning("job_skipped", job="send_transaction_notification", record_id=record_id)
            return
        await notify(record)
        log.info("job_done", job="send_transaction_notification", record_id=record_id)

    await _run_with_dlq("send_transaction_notification", job_id, [record_id], {}, _run())


async def startup(ctx: dict) -> None:
    from app.db.init import init_db
    await init_db()


async def shutdown(ctx: dict) -> None:
    from app.db.init import close_db
    close_db()


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path and u.path != "/" else 0,
    )


async def enqueue_notification(record_id: str) -> None:
    """Enqueue send_transaction_notification (called after the ledger commits)."""
    redis = await create_pool(get_redis_settings())
    try:
        await redis.enqueue_job("send_transaction_notification", record_id)
    finally:
        await redis.close()
