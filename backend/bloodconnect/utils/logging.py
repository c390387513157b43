from __future__ import annotations

from loguru import logger


def log_db_error(context: str, exc: Exception) -> None:
    logger.error("Database error in {}: {}", context, exc)


def log_delivery_failure(donor_id: str, channel: str, reason: str) -> None:
    logger.warning("Notification via {} failed for donor {}: {}", channel, donor_id, reason)
