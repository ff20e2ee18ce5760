"""
QC Service - quality-control state machine for raw-material batches.

States:
    pending -> release | hold | reject
    hold <-> release
    any non-terminal state past its expiry date -> expired
    expired -> disposed (batch deleted, see batch_service.approve_expired_disposal)

``set_qc_status`` overwrites the status unconditionally; the only check is
that the new value is a known QcStatus. QC changes are not written to the
transaction log.

Expiry is computed live from the wall clock (``Batch.is_expired``); the
``expired`` status is only persisted by ``mark_as_expired`` or the manual
``mark_all_expired`` sweep.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from bakehouse.models import Batch, QcStatus
from bakehouse.models.enums import TERMINAL_QC_STATUSES
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import BatchNotFound, ValidationError
from bakehouse.services.logging_utils import get_service_logger, log_operation
from bakehouse.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)


def _coerce_status(status) -> QcStatus:
    try:
        return QcStatus(status)
    except ValueError:
        raise ValidationError(
            [f"Unknown QC status {status!r}; expected one of {QcStatus.values()}"]
        )


def _get_batch_or_raise(batch_id: int, session: Session) -> Batch:
    batch = session.get(Batch, batch_id)
    if batch is None:
        raise BatchNotFound(batch_id)
    return batch


def set_qc_status(
    batch_id: int,
    new_status,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Set the QC status of a batch.

    Transaction boundary: Own session unless one is passed.

    Args:
        batch_id: Batch to update
        new_status: QcStatus member or value
        notes: Optional reviewer note (logged, not persisted)
        session: Optional database session

    Returns:
        {"success": True, "batch_id": ..., "previous_status": ..., "new_status": ...}

    Raises:
        BatchNotFound: If the batch doesn't exist
        ValidationError: If new_status is not a QcStatus
    """
    if session is not None:
        return _set_qc_status_impl(batch_id, new_status, notes, session)
    with session_scope() as session:
        return _set_qc_status_impl(batch_id, new_status, notes, session)


def _set_qc_status_impl(batch_id, new_status, notes, session: Session) -> Dict[str, Any]:
    status = _coerce_status(new_status)
    batch = _get_batch_or_raise(batch_id, session)

    previous = batch.qc_status
    batch.qc_status = status.value
    session.flush()

    log_operation(
        logger,
        operation="set_qc_status",
        outcome="success",
        batch_id=batch_id,
        previous_status=previous,
        new_status=status.value,
        qc_notes=notes,
    )
    return {
        "success": True,
        "batch_id": batch_id,
        "previous_status": previous,
        "new_status": status.value,
    }


def mark_as_expired(batch_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Persist the ``expired`` status on a batch.

    Re-applying is harmless: the batch ends up ``expired`` from any state.

    Raises:
        BatchNotFound: If the batch doesn't exist
    """
    if session is not None:
        return _mark_as_expired_impl(batch_id, session)
    with session_scope() as session:
        return _mark_as_expired_impl(batch_id, session)


def _mark_as_expired_impl(batch_id: int, session: Session) -> Dict[str, Any]:
    batch = _get_batch_or_raise(batch_id, session)
    batch.qc_status = QcStatus.EXPIRED.value
    session.flush()

    log_operation(logger, operation="mark_as_expired", outcome="success", batch_id=batch_id)
    return {"success": True, "batch_id": batch_id, "new_status": QcStatus.EXPIRED.value}


def mark_all_expired(
    now: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> Dict[str, int]:
    """
    Persist ``expired`` on every batch that is past its expiry date.

    Batches already ``reject`` or ``expired`` are skipped. This is a manual
    sweep; nothing schedules it.

    Returns:
        {"marked_count": n}
    """
    if session is not None:
        return _mark_all_expired_impl(now, session)
    with session_scope() as session:
        return _mark_all_expired_impl(now, session)


def _mark_all_expired_impl(now: Optional[datetime], session: Session) -> Dict[str, int]:
    now = now or utc_now()
    candidates = (
        session.query(Batch)
        .filter(Batch.qc_status.notin_(list(TERMINAL_QC_STATUSES)))
        .all()
    )

    marked = 0
    for batch in candidates:
        if batch.is_expired_at(now):
            batch.qc_status = QcStatus.EXPIRED.value
            marked += 1
    session.flush()

    log_operation(logger, operation="mark_all_expired", outcome="success", marked_count=marked)
    return {"marked_count": marked}


def backfill_missing_qc_status(session: Optional[Session] = None) -> int:
    """
    Give legacy batches stored without a QC status an explicit ``release``.

    Older databases allowed a NULL status, which was treated as released.
    Run once during data load so allocation only ever checks ``release``.

    Returns:
        Number of rows updated
    """
    if session is not None:
        return _backfill_impl(session)
    with session_scope() as session:
        return _backfill_impl(session)


def _backfill_impl(session: Session) -> int:
    result = session.execute(
        text("UPDATE batches SET qc_status = :status WHERE qc_status IS NULL"),
        {"status": QcStatus.RELEASE.value},
    )
    updated = result.rowcount or 0
    if updated:
        log_operation(
            logger,
            operation="backfill_missing_qc_status",
            outcome="migrated",
            level=logging.WARNING,
            updated_count=updated,
        )
    return updated
