"""Service layer logging utilities.

Provides structured logging functions for service operations, so export,
verification and import jobs log with one consistent format.

Usage:
    from src.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="bulk_update_foods",
        outcome="success",
        locale_id="en_GB",
        affected=120,
    )

    log_operation(
        logger,
        operation="bulk_update_foods",
        outcome="conflict",
        level=logging.WARNING,
        locale_id="en_GB",
        codes=["A", "C"],
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named 'food_package.services.<module>'.

    Example:
        >>> get_service_logger("src.services.package_exporter").name
        'food_package.services.package_exporter'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"food_package.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The message is "<operation>: <outcome>"; the context fields travel in
    the record's 'extra' so handlers that understand structure can use them.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "export_package", "verify_package")
        outcome: Outcome description (e.g., "started", "success", "conflict")
        level: Log level (default: INFO). Use DEBUG for per-batch logs.
        **context: Additional context fields (locale ids, counts, codes)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
