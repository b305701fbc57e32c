import os

from arq.connections import ArqRedis, RedisSettings, create_pool


def get_redis_settings() -> RedisSettings:
    """Get Redis settings from environment variables."""
    return RedisSettings.from_dsn(os.environ.get("REDIS_URL", "redis://localhost:6379"))


async def get_queue() -> ArqRedis:
    """Create a connection pool to the BOQ processing queue."""
    return await create_pool(get_redis_settings())


async def enqueue_processing(
    upload_id: str,
    content: str,
    column_mappings: dict[str, dict] | None = None,
) -> str | None:
    """Queue a BOQ upload for the arq worker.

    Returns:
        The arq job id, or None if an identical job is already queued.
    """
    queue = await get_queue()
    try:
        job = await queue.enqueue_job(
            "process_boq_upload",
            upload_id,
            content,
            column_mappings,
            _job_id=f"boq:{upload_id}",
        )
        return job.job_id if job else None
    finally:
        await queue.close()
