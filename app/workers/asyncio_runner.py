from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_on_fresh_engine(awaitable: Awaitable[T], *, job: str) -> T:
    # Pooled connections are bound to the loop that opened them.
    await dispose_engine()
    started_at = time.monotonic()
    with structlog.contextvars.bound_contextvars(job=job):
        try:
            return await awaitable
        finally:
            await dispose_engine()
            logger.info("async_job_finished", duration_ms=int((time.monotonic() - started_at) * 1000))


def run_async_job(awaitable: Awaitable[T], *, job: str) -> T:
    """Runs one Celery job body on its own event loop."""
    return asyncio.run(_run_on_fresh_engine(awaitable, job=job))
