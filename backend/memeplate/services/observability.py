"""
Observability and Logging Service
"""

import logging
import sys
from typing import Optional

import structlog


# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

# Get logger
logger = structlog.get_logger("memeplate")


def configure_logging(log_level: str = "INFO") -> None:
    """
    Route stdlib logging (and therefore structlog) to stdout at log_level

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
    """
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level, force=True)


def log_asset_uploaded(storage_key: str, url: str, size_bytes: int, content_type: str) -> None:
    """
    Log blob upload

    Args:
        storage_key: Provider handle of the new blob
        url: Public URL of the new blob
        size_bytes: Payload size
        content_type: Declared content type
    """
    logger.info(
        "asset_uploaded",
        storage_key=storage_key,
        url=url,
        size_bytes=size_bytes,
        content_type=content_type,
    )


def log_asset_deleted(storage_key: str, found: bool, reason: str) -> None:
    """
    Log blob deletion

    Args:
        storage_key: Provider handle of the deleted blob
        found: False when the blob was already gone
        reason: "rollback", "replaced" or "template_deleted"
    """
    logger.info("asset_deleted", storage_key=storage_key, found=found, reason=reason)


def log_compensation_failed(
    storage_key: str,
    reason: str,
    error: Exception,
    template_id: Optional[str] = None,
) -> None:
    """
    Log a failed rollback/cleanup; the blob is now orphaned

    Args:
        storage_key: Blob that could not be deleted
        reason: Which cleanup step failed
        error: Exception raised by the blob store
        template_id: Optional template ID for context
    """
    log_data = {
        "storage_key": storage_key,
        "reason": reason,
        "error": str(error),
        "error_type": type(error).__name__,
        "orphaned_blob": True,
    }
    if template_id:
        log_data["template_id"] = template_id

    logger.error("compensation_failed", **log_data)


def log_template_event(event: str, template_id: str, **context) -> None:
    """
    Log a template lifecycle event

    Args:
        event: template_created, template_updated, template_deleted, ...
        template_id: Template ID
        **context: Extra fields
    """
    logger.info(event, template_id=template_id, **context)
