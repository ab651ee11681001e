"""
Structured logging helpers for consistent log formatting.

Provides utilities for structured, clean logging without excessive decorative separators.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tvsync.services.sync_types import ReconcileResult


def log_section_start(logger: logging.Logger, section_name: str) -> None:
    """
    Log the start of a processing section.

    Args:
        logger: Logger instance
        section_name: Name of the section being started
    """
    logger.info("Starting: %s", section_name)


def log_section_end(logger: logging.Logger, section_name: str) -> None:
    """
    Log the end of a processing section.

    Args:
        logger: Logger instance
        section_name: Name of the section being ended
    """
    logger.info("Completed: %s", section_name)


def log_sync_start(logger: logging.Logger, input_id: str) -> None:
    """Log channel sync start."""
    logger.info(
        "Channel sync for %s started at %s",
        input_id,
        datetime.now(timezone.utc).isoformat(),
    )


def log_sync_end(logger: logging.Logger, input_id: str) -> None:
    """Log channel sync end."""
    logger.info(
        "Channel sync for %s completed at %s",
        input_id,
        datetime.now(timezone.utc).isoformat(),
    )


def log_reconcile_summary(logger: logging.Logger, result: ReconcileResult) -> None:
    """
    Log the mutation counts of a reconciliation pass.

    Args:
        logger: Logger instance
        result: Outcome of the pass
    """
    logger.info(
        "Reconciled input %s - inserted: %s, updated: %s, deleted: %s, logos queued: %s",
        result.input_id,
        result.inserted,
        result.updated,
        result.deleted,
        len(result.logo_queue),
    )
