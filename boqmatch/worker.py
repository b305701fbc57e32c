"""arq worker for background BOQ processing.

Run with: arq boqmatch.worker.WorkerSettings
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from boqmatch.config import get_config
from boqmatch.core.logging import configure_logging
from boqmatch.core.queue import get_redis_settings
from boqmatch.pipeline.orchestrator import build_processor

logger = logging.getLogger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """Initialize resources when worker starts."""
    configure_logging()
    engine = create_async_engine(get_config().db.url, echo=False)
    ctx["engine"] = engine
    ctx["session_maker"] = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    logger.info("Worker started. Database connection initialized.")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Cleanup resources when worker stops."""
    engine = ctx.get("engine")
    if engine is not None:
        await engine.dispose()
    logger.info("Worker stopped. Database connection closed.")


async def process_boq_upload(
    ctx: dict[str, Any],
    upload_id: str,
    content: str,
    column_mappings: dict[str, dict] | None = None,
) -> dict[str, Any]:
    """Process one BOQ upload as a background job.

    The upload status record carries the outcome; the returned dict is the
    job result stored by arq.
    """
    logger.info(f"Starting BOQ processing job for upload_id={upload_id}")
    processor = build_processor(session_factory=ctx["session_maker"])
    result = await processor.process(UUID(str(upload_id)), content, column_mappings)
    logger.info(f"BOQ processing job finished: {result.status.value} ({result.message})")
    return result.as_dict()


class WorkerSettings:
    """Configuration for the arq worker."""

    functions = [process_boq_upload]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()
    job_timeout = 1800
    max_jobs = 4
