"""Autoquote Celery tasks: periodic quote maintenance jobs.

Each task wraps an async function through the shared ``_run_async`` helper,
which drives the coroutine on a fresh event loop and releases the
connection pool before the loop closes.

Task inventory:
    1. expire_stale_quotes : mark QUOTED policies older than the window EXPIRED
    2. health_check        : verify connectivity and log quote/reference counts
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Coroutine, TypeVar

from celery import Task
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autoquote.celery_app import app
from autoquote.config import settings
from autoquote.db import Coverage, Policy, async_session, engine
from autoquote.quoting.policy_service import STATUS_QUOTED, PolicyCreationService

logger = logging.getLogger("autoquote.tasks")

T = TypeVar("T")


def _run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Execute an async coroutine from a synchronous Celery task.

    Pooled connections are bound to the loop that opened them, so the pool
    is disposed before ``asyncio.run`` tears the loop down.
    """

    async def _runner() -> T:
        try:
            return await coro
        finally:
            await engine.dispose()

    return asyncio.run(_runner())


# ---------------------------------------------------------------------------
# Task 1: expire_stale_quotes
# ---------------------------------------------------------------------------


@app.task(
    name="autoquote.tasks.expire_stale_quotes",
    bind=True,
    max_retries=3,
    default_retry_delay=300,
    queue="maintenance",
)
def expire_stale_quotes(self: Task) -> dict:
    """Expire quotes older than ``settings.quote_expiration_days``.

    Returns:
        Dict with ``expired`` count and the ``run_at`` timestamp.
    """
    logger.info("Task: expire_stale_quotes started")
    try:
        return _run_async(_expire_stale_quotes_async())
    except Exception as exc:
        logger.error("expire_stale_quotes failed: %s", exc)
        raise self.retry(exc=exc)


async def _expire_stale_quotes_async(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    now: datetime | None = None,
) -> dict:
    """Async implementation of the expire_stale_quotes task."""
    now = now or datetime.now(timezone.utc)
    service = PolicyCreationService(session_factory or async_session)
    expired = await service.expire_stale_quotes(now=now)
    logger.info(
        "expire_stale_quotes complete: expired=%d window=%dd",
        expired, settings.quote_expiration_days,
    )
    return {"expired": expired, "run_at": now.isoformat()}


# ---------------------------------------------------------------------------
# Task 2: health_check
# ---------------------------------------------------------------------------


@app.task(
    name="autoquote.tasks.health_check",
    bind=True,
    max_retries=1,
    default_retry_delay=30,
    queue="default",
)
def health_check(self: Task) -> dict:
    """Verify database connectivity and report reference and quote counts.

    Returns:
        Dict with ``status`` (healthy/degraded/unhealthy) and detail fields.
    """
    logger.info("Task: health_check started")
    return _run_async(_health_check_async())


async def _health_check_async(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict:
    """Async implementation of the health_check task."""
    session_factory = session_factory or async_session
    report: dict = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "unknown",
        "coverages_loaded": 0,
        "open_quotes": 0,
        "issues": [],
    }

    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        report["database"] = "ok"
    except Exception as exc:
        report["database"] = f"error: {exc}"
        report["issues"].append(f"Database connection failed: {exc}")
        report["status"] = "unhealthy"
        logger.error("Health check: DB connectivity failed: %s", exc)
        return report

    # Quotes cannot carry coverages until reference data is seeded
    try:
        async with session_factory() as session:
            coverages = await session.scalar(select(func.count()).select_from(Coverage))
            report["coverages_loaded"] = int(coverages or 0)
            if not coverages:
                report["issues"].append("No coverage reference data loaded")
                report["status"] = "degraded"
    except Exception as exc:
        logger.warning("Health check: could not count coverages: %s", exc)

    try:
        async with session_factory() as session:
            open_quotes = await session.scalar(
                select(func.count())
                .select_from(Policy)
                .where(Policy.status_code == STATUS_QUOTED)
            )
            report["open_quotes"] = int(open_quotes or 0)
    except Exception as exc:
        logger.warning("Health check: could not count open quotes: %s", exc)

    logger.info(
        "Health check: status=%s coverages=%d open_quotes=%d",
        report["status"], report["coverages_loaded"], report["open_quotes"],
    )
    return report
