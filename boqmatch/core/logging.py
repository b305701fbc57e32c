import logging
import os
import sys
from typing import Any

import structlog


def _shared_processors(json_logs: bool) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    return processors


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Route stdlib and structlog records through one structlog renderer.

    Modules keep using ``logging.getLogger(__name__)``; the upload id bound by
    ``bind_upload_context`` is merged into every record they emit.

    Args:
        level: Root level (default: LOG_LEVEL env var, then INFO)
        json_logs: JSON output (default: JSON_LOGS env var)
    """
    if json_logs is None:
        json_logs = os.getenv("JSON_LOGS", "false").lower() == "true"
    shared = _shared_processors(json_logs)

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    handler.set_name("boqmatch")

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == "boqmatch":
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())


def bind_upload_context(upload_id: Any) -> None:
    """Attach the upload id to every log line emitted by this task."""
    structlog.contextvars.bind_contextvars(upload_id=str(upload_id))


def clear_upload_context() -> None:
    structlog.contextvars.unbind_contextvars("upload_id")
