"""
Transaction Log Service - append-only audit trail of stock movements.

Entries are written by the stock and production services inside their own
transactions (always pass ``session``). Once written, an entry is never
modified; archiving only sets ``archived_at``.

Key Functions:
- append_entry: Write one log entry
- list_logs / list_logs_by_material: Non-archived entries, newest first
- archive_logs: Soft-delete entries older than N days
- list_archived_logs: Archived entries for audits
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from bakehouse.models import TransactionLog, TransactionType
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import ValidationError
from bakehouse.services.logging_utils import get_service_logger, log_operation
from bakehouse.utils.datetime_utils import utc_now, days_ago

logger = get_service_logger(__name__)


def append_entry(
    entry_type,
    quantity,
    *,
    batch_id: Optional[int] = None,
    batch_number: Optional[str] = None,
    material_id: Optional[int] = None,
    production_run_id: Optional[int] = None,
    user_id: Optional[str] = None,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> TransactionLog:
    """
    Append one entry to the transaction log.

    Transaction boundary: Joins the caller's session when given.

    Args:
        entry_type: TransactionType (or its string value)
        quantity: Quantity moved
        batch_id: Batch involved, if any
        batch_number: Batch number snapshot
        material_id: Raw material involved, if any
        production_run_id: Production run involved, if any
        user_id: Actor identifier
        notes: Free-text note
        session: Optional database session

    Returns:
        The new TransactionLog (flushed, id assigned)

    Raises:
        ValidationError: If entry_type is not a TransactionType
    """
    if session is not None:
        return _append_entry_impl(
            entry_type, quantity, batch_id, batch_number, material_id,
            production_run_id, user_id, notes, session,
        )
    with session_scope() as session:
        return _append_entry_impl(
            entry_type, quantity, batch_id, batch_number, material_id,
            production_run_id, user_id, notes, session,
        )


def _append_entry_impl(
    entry_type,
    quantity,
    batch_id,
    batch_number,
    material_id,
    production_run_id,
    user_id,
    notes,
    session: Session,
) -> TransactionLog:
    try:
        entry_type = TransactionType(entry_type)
    except ValueError:
        raise ValidationError([f"Unknown transaction type: {entry_type!r}"])

    entry = TransactionLog(
        type=entry_type.value,
        batch_id=batch_id,
        batch_number=batch_number,
        material_id=material_id,
        production_run_id=production_run_id,
        quantity=Decimal(str(quantity)),
        user_id=user_id,
        notes=notes,
        created_at=utc_now(),
    )
    session.add(entry)
    session.flush()
    return entry


def _log_to_dict(entry: TransactionLog) -> Dict[str, Any]:
    result = entry.to_dict()
    result["material_name"] = entry.material.name if entry.material else None
    return result


def list_logs(
    entry_type: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    List non-archived log entries, newest first.

    Args:
        entry_type: Optional TransactionType filter
        session: Optional database session

    Returns:
        List of entry dicts enriched with material_name
    """
    if session is not None:
        return _list_logs_impl(entry_type, None, session)
    with session_scope() as session:
        return _list_logs_impl(entry_type, None, session)


def list_logs_by_material(
    material_id: int,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """List non-archived log entries for one raw material, newest first."""
    if session is not None:
        return _list_logs_impl(None, material_id, session)
    with session_scope() as session:
        return _list_logs_impl(None, material_id, session)


def _list_logs_impl(entry_type, material_id, session: Session) -> List[Dict[str, Any]]:
    query = (
        session.query(TransactionLog)
        .options(joinedload(TransactionLog.material))
        .filter(TransactionLog.archived_at.is_(None))
    )
    if entry_type is not None:
        try:
            entry_type = TransactionType(entry_type)
        except ValueError:
            raise ValidationError([f"Unknown transaction type: {entry_type!r}"])
        query = query.filter(TransactionLog.type == entry_type.value)
    if material_id is not None:
        query = query.filter(TransactionLog.material_id == material_id)

    entries = query.order_by(TransactionLog.created_at.desc(), TransactionLog.id.desc()).all()
    return [_log_to_dict(entry) for entry in entries]


def list_logs_for_run(production_run_id: int, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List every entry linked to a production run, oldest first."""
    if session is not None:
        return _list_logs_for_run_impl(production_run_id, session)
    with session_scope() as session:
        return _list_logs_for_run_impl(production_run_id, session)


def _list_logs_for_run_impl(production_run_id: int, session: Session) -> List[Dict[str, Any]]:
    entries = (
        session.query(TransactionLog)
        .options(joinedload(TransactionLog.material))
        .filter(TransactionLog.production_run_id == production_run_id)
        .order_by(TransactionLog.id.asc())
        .all()
    )
    return [_log_to_dict(entry) for entry in entries]


def archive_logs(older_than_days: float, session: Optional[Session] = None) -> Dict[str, int]:
    """
    Archive (soft-delete) entries created more than ``older_than_days`` ago.

    Already archived entries are left untouched.

    Returns:
        {"archived_count": n}
    """
    if session is not None:
        return _archive_logs_impl(older_than_days, session)
    with session_scope() as session:
        return _archive_logs_impl(older_than_days, session)


def _archive_logs_impl(older_than_days: float, session: Session) -> Dict[str, int]:
    if older_than_days < 0:
        raise ValidationError(["older_than_days must not be negative"])

    now = utc_now()
    cutoff = days_ago(older_than_days, now)

    entries = (
        session.query(TransactionLog)
        .filter(
            TransactionLog.archived_at.is_(None),
            TransactionLog.created_at < cutoff,
        )
        .all()
    )
    for entry in entries:
        entry.archived_at = now
    session.flush()

    log_operation(
        logger,
        operation="archive_logs",
        outcome="success",
        archived_count=len(entries),
        older_than_days=older_than_days,
    )
    return {"archived_count": len(entries)}


def list_archived_logs(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List archived entries, newest first."""
    if session is not None:
        return _list_archived_logs_impl(session)
    with session_scope() as session:
        return _list_archived_logs_impl(session)


def _list_archived_logs_impl(session: Session) -> List[Dict[str, Any]]:
    entries = (
        session.query(TransactionLog)
        .options(joinedload(TransactionLog.material))
        .filter(TransactionLog.archived_at.isnot(None))
        .order_by(TransactionLog.created_at.desc(), TransactionLog.id.desc())
        .all()
    )
    return [_log_to_dict(entry) for entry in entries]
