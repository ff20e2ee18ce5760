"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across stock, QC and production
operations.

Usage:
    from bakehouse.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="execute_production",
        outcome="success",
        production_run_id=123,
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "bakehouse.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger under the 'bakehouse.services' prefix.

    Example:
        >>> logger = get_service_logger("bakehouse.services.batch_service")
        >>> logger.name
        'bakehouse.services.batch_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "reserve_stock", "execute_production")
        outcome: Outcome description (e.g., "success", "insufficient_stock")
        level: Log level (default: INFO)
        **context: Additional context fields (entity IDs, quantities, ...)

    Example:
        >>> log_operation(
        ...     logger,
        ...     operation="reserve_stock",
        ...     outcome="insufficient_stock",
        ...     level=logging.WARNING,
        ...     material_id=4,
        ... )
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
