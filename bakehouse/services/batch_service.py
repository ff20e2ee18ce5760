"""
Batch Service - raw-material receipt, consumption and disposal.

This module provides functions for:
- Receiving stock as a new batch awaiting QC (``receive_stock``)
- FEFO consumption of released batches (``reserve_stock``)
- Disposal of expired batches into the waste ledger
  (``approve_expired_disposal``)
- Batch listings for the inventory and QC screens

Every mutation writes its transaction-log entry in the same transaction as
the stock change.

Session Pattern:
All functions accept an optional ``session`` parameter. If provided, the
function joins the caller's transaction; if None, it creates its own
session via session_scope().
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from bakehouse.models import (
    Batch,
    QcStatus,
    RawMaterial,
    Supplier,
    TransactionType,
    WasteRecord,
)
from bakehouse.services import fefo_allocator, transaction_log_service
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import (
    BatchNotFound,
    InsufficientStock,
    RawMaterialNotFound,
    SupplierNotFound,
    ValidationError,
)
from bakehouse.services.logging_utils import get_service_logger, log_operation
from bakehouse.utils.datetime_utils import utc_now, as_utc

logger = get_service_logger(__name__)


# =============================================================================
# Receipt
# =============================================================================


def receive_stock(
    material_id: int,
    batch_number: str,
    quantity,
    expiry_date: datetime,
    supplier_id: Optional[int] = None,
    user_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Receive a raw-material lot.

    The batch is always created ``pending``: it cannot be consumed until QC
    releases it. Any expiry date is accepted, including one in the past.

    Args:
        material_id: Raw material received
        batch_number: Supplier lot number (not required to be unique)
        quantity: Quantity received (> 0)
        expiry_date: Expiry date of the lot
        supplier_id: Optional supplier
        user_id: Optional actor recorded in the transaction log
        session: Optional database session

    Returns:
        The new batch as a dictionary

    Raises:
        RawMaterialNotFound: If the material doesn't exist
        SupplierNotFound: If supplier_id is given but doesn't exist
        ValidationError: If quantity is not positive or batch_number is blank
    """
    if session is not None:
        return _receive_stock_impl(
            material_id, batch_number, quantity, expiry_date, supplier_id, user_id, session
        )
    with session_scope() as session:
        return _receive_stock_impl(
            material_id, batch_number, quantity, expiry_date, supplier_id, user_id, session
        )


def _receive_stock_impl(
    material_id, batch_number, quantity, expiry_date, supplier_id, user_id, session: Session
) -> Dict[str, Any]:
    quantity = fefo_allocator.require_positive(quantity)
    if batch_number is None or not str(batch_number).strip():
        raise ValidationError(["Batch number is required"])
    if not isinstance(expiry_date, datetime):
        raise ValidationError(["expiry_date must be a datetime"])

    if session.get(RawMaterial, material_id) is None:
        raise RawMaterialNotFound(material_id)
    if supplier_id is not None and session.get(Supplier, supplier_id) is None:
        raise SupplierNotFound(supplier_id)

    batch = Batch(
        material_id=material_id,
        supplier_id=supplier_id,
        batch_number=str(batch_number).strip(),
        quantity=quantity,
        expiry_date=as_utc(expiry_date),
        received_date=utc_now(),
        qc_status=QcStatus.PENDING.value,
    )
    session.add(batch)
    session.flush()

    transaction_log_service.append_entry(
        TransactionType.BATCH_RECEIVED,
        quantity,
        batch_id=batch.id,
        batch_number=batch.batch_number,
        material_id=material_id,
        user_id=user_id,
        session=session,
    )

    log_operation(
        logger,
        operation="receive_stock",
        outcome="success",
        batch_id=batch.id,
        material_id=material_id,
        quantity=str(quantity),
    )
    return batch.to_dict()


# =============================================================================
# FEFO consumption
# =============================================================================


def reserve_stock(
    material_id: int,
    quantity,
    user_id: Optional[str] = None,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    Deduct a raw material from its released batches, earliest expiry first.

    All-or-nothing: if released, unexpired stock is short nothing is
    deducted and nothing is logged.

    Args:
        material_id: Raw material to consume
        quantity: Quantity requested (> 0)
        user_id: Optional actor recorded in the transaction log
        notes: Optional note recorded in the transaction log
        session: Optional database session

    Returns:
        Ordered list of {"batch_id", "quantity"} (quantity as Decimal)

    Raises:
        RawMaterialNotFound: If the material doesn't exist
        ValidationError: If quantity is not positive
        InsufficientStock: If eligible stock is below the request
    """
    if session is not None:
        return _reserve_stock_impl(material_id, quantity, user_id, notes, session)
    with session_scope() as session:
        return _reserve_stock_impl(material_id, quantity, user_id, notes, session)


def _reserve_stock_impl(material_id, quantity, user_id, notes, session: Session):
    material = session.get(RawMaterial, material_id)
    if material is None:
        raise RawMaterialNotFound(material_id)

    try:
        allocations = fefo_allocator.allocate_batches(
            session,
            material_id,
            material.name,
            quantity,
            user_id=user_id,
            notes=notes,
        )
    except InsufficientStock as e:
        log_operation(
            logger,
            operation="reserve_stock",
            outcome="insufficient_stock",
            level=logging.WARNING,
            material_id=material_id,
            required=str(e.required),
            available=str(e.available),
        )
        raise

    log_operation(
        logger,
        operation="reserve_stock",
        outcome="success",
        material_id=material_id,
        batches_used=len(allocations),
    )
    return [{"batch_id": a.lot_id, "quantity": a.quantity} for a in allocations]


# =============================================================================
# Disposal
# =============================================================================


def approve_expired_disposal(
    batch_id: int,
    user_id: str,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Dispose of a batch: record waste, log the disposal, delete the batch.

    The whole remaining quantity is disposed; partial disposal is not
    supported. This is the only path that removes stock without allocation.

    Args:
        batch_id: Batch to dispose of
        user_id: Actor approving the disposal
        notes: Optional notes stored on the waste record and log entry
        session: Optional database session

    Returns:
        The WasteRecord as a dictionary

    Raises:
        BatchNotFound: If the batch doesn't exist
        ValidationError: If user_id is blank
    """
    if session is not None:
        return _approve_expired_disposal_impl(batch_id, user_id, notes, session)
    with session_scope() as session:
        return _approve_expired_disposal_impl(batch_id, user_id, notes, session)


def _approve_expired_disposal_impl(batch_id, user_id, notes, session: Session) -> Dict[str, Any]:
    if not user_id:
        raise ValidationError(["Disposal must be approved by a user"])

    batch = session.get(Batch, batch_id)
    if batch is None:
        raise BatchNotFound(batch_id)

    waste = WasteRecord(
        original_batch_id=batch.id,
        batch_number=batch.batch_number,
        material_id=batch.material_id,
        quantity=batch.quantity,
        expiry_date=batch.expiry_date,
        disposed_by=user_id,
        disposed_at=utc_now(),
        notes=notes,
    )
    session.add(waste)

    transaction_log_service.append_entry(
        TransactionType.BATCH_EXPIRED_DISPOSED,
        batch.quantity,
        batch_id=batch.id,
        batch_number=batch.batch_number,
        material_id=batch.material_id,
        user_id=user_id,
        notes=notes,
        session=session,
    )

    session.delete(batch)
    session.flush()

    log_operation(
        logger,
        operation="approve_expired_disposal",
        outcome="success",
        batch_id=batch_id,
        waste_record_id=waste.id,
        quantity=str(waste.quantity),
    )
    return waste.to_dict()


def delete_batch(batch_id: int, session: Optional[Session] = None) -> None:
    """
    Delete a batch outright (data-entry correction).

    Unlike disposal this writes no waste record or log entry.

    Raises:
        BatchNotFound: If the batch doesn't exist
    """
    if session is not None:
        return _delete_batch_impl(batch_id, session)
    with session_scope() as session:
        return _delete_batch_impl(batch_id, session)


def _delete_batch_impl(batch_id: int, session: Session) -> None:
    batch = session.get(Batch, batch_id)
    if batch is None:
        raise BatchNotFound(batch_id)
    session.delete(batch)
    session.flush()
    log_operation(logger, operation="delete_batch", outcome="success", batch_id=batch_id)


# =============================================================================
# Queries
# =============================================================================


def _batch_to_dict(batch: Batch, now: datetime) -> Dict[str, Any]:
    result = batch.to_dict()
    result["is_expired"] = batch.is_expired_at(now)
    result["material_name"] = batch.material.name if batch.material else None
    result["material_unit"] = batch.material.unit if batch.material else None
    result["supplier_name"] = batch.supplier.name if batch.supplier else None
    return result


def _batch_query(session: Session):
    return session.query(Batch).options(
        joinedload(Batch.material),
        joinedload(Batch.supplier),
    )


def get_batch(batch_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get one batch with material/supplier names and live ``is_expired``.

    Raises:
        BatchNotFound: If the batch doesn't exist
    """
    if session is not None:
        return _get_batch_impl(batch_id, session)
    with session_scope() as session:
        return _get_batch_impl(batch_id, session)


def _get_batch_impl(batch_id: int, session: Session) -> Dict[str, Any]:
    batch = _batch_query(session).filter(Batch.id == batch_id).first()
    if batch is None:
        raise BatchNotFound(batch_id)
    return _batch_to_dict(batch, utc_now())


def list_all_batches(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List every batch, enriched with names and live ``is_expired``."""
    if session is not None:
        return _list_batches_impl(session, None)
    with session_scope() as session:
        return _list_batches_impl(session, None)


def list_batches_by_material(material_id: int, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List the batches of one material in FEFO order."""
    if session is not None:
        return _list_batches_impl(session, material_id)
    with session_scope() as session:
        return _list_batches_impl(session, material_id)


def _list_batches_impl(session: Session, material_id: Optional[int]) -> List[Dict[str, Any]]:
    query = _batch_query(session)
    if material_id is not None:
        query = query.filter(Batch.material_id == material_id)
    now = utc_now()
    batches = fefo_allocator.sort_fefo(query.all())
    return [_batch_to_dict(batch, now) for batch in batches]


def get_expired_batches(
    now: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    List batches awaiting disposal, earliest expiry first.

    A batch qualifies when its status is ``expired`` or its expiry date has
    passed (the live view), whatever its recorded status.
    """
    if session is not None:
        return _get_expired_batches_impl(now, session)
    with session_scope() as session:
        return _get_expired_batches_impl(now, session)


def _get_expired_batches_impl(now: Optional[datetime], session: Session) -> List[Dict[str, Any]]:
    now = now or utc_now()
    batches = _batch_query(session).all()
    expired = [
        batch
        for batch in batches
        if batch.qc_status == QcStatus.EXPIRED.value or batch.is_expired_at(now)
    ]
    return [_batch_to_dict(batch, now) for batch in fefo_allocator.sort_fefo(expired)]


def list_pending_qc(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List batches waiting for QC review, oldest receipt first."""
    if session is not None:
        return _list_pending_qc_impl(session)
    with session_scope() as session:
        return _list_pending_qc_impl(session)


def _list_pending_qc_impl(session: Session) -> List[Dict[str, Any]]:
    now = utc_now()
    batches = (
        _batch_query(session)
        .filter(Batch.qc_status == QcStatus.PENDING.value)
        .order_by(Batch.received_date.asc(), Batch.id.asc())
        .all()
    )
    return [_batch_to_dict(batch, now) for batch in batches]
