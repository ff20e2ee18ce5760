"""
Enumerations for stock and production tracking.

This module contains enums used across inventory-related models:
- QcStatus: Quality-control state of a raw-material batch
- ProductionRunStatus: Lifecycle state of a production run
- TransactionType: Kind of stock movement recorded in the transaction log
"""

from enum import Enum


class QcStatus(str, Enum):
    """
    Quality-control status of a raw-material batch.

    Values:
        PENDING: Received, awaiting QC review (not usable)
        RELEASE: Approved for consumption
        HOLD: Temporarily blocked; may be released again
        REJECT: Failed QC (terminal)
        EXPIRED: Past expiry date, persisted by mark_as_expired (terminal)
    """

    PENDING = "pending"
    RELEASE = "release"
    HOLD = "hold"
    REJECT = "reject"
    EXPIRED = "expired"

    @classmethod
    def values(cls) -> list:
        return [member.value for member in cls]


# Statuses that the FEFO allocator may draw from
USABLE_QC_STATUSES = frozenset({QcStatus.RELEASE.value})

# Statuses that never move again except through disposal
TERMINAL_QC_STATUSES = frozenset({QcStatus.REJECT.value, QcStatus.EXPIRED.value})


class ProductionRunStatus(str, Enum):
    """
    Production run lifecycle status.

    Values:
        PLANNED: Created by plan_production; the only state that can change
        COMPLETED: Executed; stock consumed and produced
        CANCELLED: Cancelled before execution
    """

    PLANNED = "planned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransactionType(str, Enum):
    """
    Stock movement recorded in the transaction log.

    Values:
        BATCH_RECEIVED: A raw-material batch was received
        BATCH_USED: Quantity was allocated from a batch
        BATCH_EXPIRED_DISPOSED: A batch was disposed as waste
        PRODUCTION_COMPLETED: A production run was executed
    """

    BATCH_RECEIVED = "batch_received"
    BATCH_USED = "batch_used"
    BATCH_EXPIRED_DISPOSED = "batch_expired_disposed"
    PRODUCTION_COMPLETED = "production_completed"
