"""
FEFO (First-Expired-First-Out) allocator.

This module implements the stock consumption algorithm shared by
raw-material batches and finished-goods lots:

    1. Collect the eligible lots for one material/product
    2. Sort them by expiry date (earliest first), then by received/produced
       date, then by id
    3. Preflight: eligible total must cover the request, otherwise raise
       InsufficientStock before anything is touched
    4. Walk the lots taking min(lot remaining, still needed); a lot that
       reaches exactly zero is deleted, otherwise its quantity is patched

Planning (steps 1-3) is pure and side-effect free, so callers that need to
validate several materials before mutating any of them can plan
everything first and apply afterwards.

Raw-material allocations append one ``batch_used`` transaction-log entry per
batch touched. Finished-goods allocations are not logged in the
transaction log.
"""

from datetime import datetime
from decimal import ROUND_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bakehouse.models import Batch, ProductStock, TransactionType
from bakehouse.services import transaction_log_service
from bakehouse.services.exceptions import (
    DatabaseError,
    InsufficientStock,
    ValidationError,
)
from bakehouse.utils.constants import QUANTITY_SCALE, ZERO_QUANTITY
from bakehouse.utils.datetime_utils import utc_now, as_utc

Lot = Union[Batch, ProductStock]

# Smallest quantity the Numeric columns can hold
QUANTITY_STEP = Decimal(1).scaleb(-QUANTITY_SCALE)


class Allocation(NamedTuple):
    """Quantity taken from one lot."""

    lot_id: int
    quantity: Decimal


# =============================================================================
# Helpers
# =============================================================================


def to_quantity(value, field: str = "quantity") -> Decimal:
    """
    Convert a numeric input to Decimal.

    Args:
        value: int, float, str or Decimal
        field: Field name used in the validation message

    Returns:
        Decimal value

    Raises:
        ValidationError: If value is not numeric
    """
    if isinstance(value, Decimal):
        quantity = value
    else:
        try:
            quantity = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError([f"{field} must be a number, got {value!r}"])
    if not quantity.is_finite():
        raise ValidationError([f"{field} must be a number, got {value!r}"])
    return quantity


def to_stored_quantity(value, field: str = "quantity") -> Decimal:
    """
    Convert to Decimal, rejecting more decimal places than the store keeps.

    Raises:
        ValidationError: If value is not numeric or is finer than QUANTITY_STEP
    """
    quantity = to_quantity(value, field)
    try:
        stored = quantity.quantize(QUANTITY_STEP)
    except InvalidOperation:
        raise ValidationError([f"{field} is out of range, got {quantity}"])
    if quantity != stored:
        raise ValidationError(
            [f"{field} allows at most {QUANTITY_SCALE} decimal places, got {quantity}"]
        )
    return quantity


def round_up_quantity(value) -> Decimal:
    """Round a computed quantity up to the stored precision."""
    quantity = to_quantity(value)
    if quantity == quantity.quantize(QUANTITY_STEP):
        return quantity
    return quantity.quantize(QUANTITY_STEP, rounding=ROUND_UP)


def require_positive(value, field: str = "quantity") -> Decimal:
    """Convert to a stored-precision Decimal and require a value greater than zero."""
    quantity = to_stored_quantity(value, field)
    if quantity <= ZERO_QUANTITY:
        raise ValidationError([f"{field} must be greater than 0, got {quantity}"])
    return quantity


def _lot_date(lot: Lot) -> Optional[datetime]:
    if isinstance(lot, Batch):
        return lot.received_date
    return lot.produced_date


def fefo_sort_key(lot: Lot):
    """Sort key: expiry date, then received/produced date, then id."""
    return (
        as_utc(lot.expiry_date),
        as_utc(_lot_date(lot) or datetime.min),
        lot.id or 0,
    )


def sort_fefo(lots: Iterable[Lot]) -> List[Lot]:
    """Return lots ordered for FEFO consumption."""
    return sorted(lots, key=fefo_sort_key)


def total_quantity(lots: Iterable[Lot]) -> Decimal:
    """Sum the quantities of lots."""
    return sum((to_quantity(lot.quantity) for lot in lots), ZERO_QUANTITY)


# =============================================================================
# Planning (pure)
# =============================================================================


def plan_allocation(
    lots: Sequence[Lot],
    quantity,
    item_name: str,
) -> List[Allocation]:
    """
    Compute a FEFO allocation without modifying any lot.

    Args:
        lots: Eligible lots, already in FEFO order
        quantity: Quantity requested (> 0)
        item_name: Material/product name for the error message

    Returns:
        Ordered list of Allocation(lot_id, quantity)

    Raises:
        ValidationError: If quantity is not positive
        InsufficientStock: If the lots cannot cover the request
    """
    requested = require_positive(quantity)
    available = total_quantity(lots)

    if available < requested:
        raise InsufficientStock(item_name, requested, available)

    allocations = []
    remaining = requested

    for lot in lots:
        if remaining <= ZERO_QUANTITY:
            break

        lot_quantity = to_quantity(lot.quantity)
        if lot_quantity <= ZERO_QUANTITY:
            continue

        take = min(lot_quantity, remaining)
        allocations.append(Allocation(lot.id, take))
        remaining -= take

    return allocations


def apply_allocation(
    session: Session,
    lots: Sequence[Lot],
    allocations: Sequence[Allocation],
) -> None:
    """
    Deduct a planned allocation from its lots.

    Lots reaching exactly zero are deleted; others are patched.

    Raises:
        DatabaseError: If the store rejects the write
    """
    lots_by_id: Dict[int, Lot] = {lot.id: lot for lot in lots}

    try:
        for allocation in allocations:
            lot = lots_by_id[allocation.lot_id]
            new_quantity = to_quantity(lot.quantity) - allocation.quantity

            if new_quantity == ZERO_QUANTITY:
                session.delete(lot)
            else:
                lot.quantity = new_quantity

        session.flush()
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to apply stock allocation", original_error=e) from e


# =============================================================================
# Raw materials
# =============================================================================


def get_eligible_batches(
    session: Session,
    material_id: int,
    now: Optional[datetime] = None,
) -> List[Batch]:
    """
    Get the batches of a material the allocator may draw from, in FEFO order.

    Only released batches whose expiry date has not passed are returned.
    """
    now = now or utc_now()
    batches = session.query(Batch).filter(Batch.material_id == material_id).all()
    return sort_fefo(batch for batch in batches if batch.is_eligible(now))


def allocate_batches(
    session: Session,
    material_id: int,
    material_name: str,
    quantity,
    *,
    production_run_id: Optional[int] = None,
    user_id: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Allocation]:
    """
    Allocate a raw material FEFO and record one ``batch_used`` entry per batch.

    Args:
        session: Caller's session (the caller owns the transaction)
        material_id: Raw material to draw from
        material_name: Name used in the InsufficientStock message
        quantity: Quantity requested (> 0)
        production_run_id: Optional run to link the log entries to
        user_id: Optional actor recorded on the log entries
        notes: Optional note recorded on the log entries
        now: Reference time for the expiry check

    Returns:
        Ordered list of Allocation(lot_id, quantity)

    Raises:
        ValidationError: If quantity is not positive
        InsufficientStock: If released, unexpired stock is short
        DatabaseError: If the store rejects the write
    """
    batches = get_eligible_batches(session, material_id, now)
    allocations = plan_allocation(batches, quantity, material_name)
    commit_batch_allocation(
        session,
        batches,
        allocations,
        material_id,
        production_run_id=production_run_id,
        user_id=user_id,
        notes=notes,
    )
    return allocations


def commit_batch_allocation(
    session: Session,
    batches: Sequence[Batch],
    allocations: Sequence[Allocation],
    material_id: int,
    *,
    production_run_id: Optional[int] = None,
    user_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> None:
    """Apply a planned batch allocation and write its ``batch_used`` entries."""
    batch_numbers = {batch.id: batch.batch_number for batch in batches}

    apply_allocation(session, batches, allocations)

    for allocation in allocations:
        transaction_log_service.append_entry(
            TransactionType.BATCH_USED,
            allocation.quantity,
            batch_id=allocation.lot_id,
            batch_number=batch_numbers.get(allocation.lot_id),
            material_id=material_id,
            production_run_id=production_run_id,
            user_id=user_id,
            notes=notes,
            session=session,
        )


# =============================================================================
# Finished goods
# =============================================================================


def get_product_lots(session: Session, product_id: int) -> List[ProductStock]:
    """Get all finished-goods lots of a product in FEFO order (no QC gate)."""
    lots = session.query(ProductStock).filter(ProductStock.product_id == product_id).all()
    return sort_fefo(lots)


def allocate_product_stock(
    session: Session,
    product_id: int,
    product_name: str,
    quantity,
) -> List[Allocation]:
    """
    Allocate finished goods FEFO across every lot of a product.

    Returns:
        Ordered list of Allocation(lot_id, quantity)

    Raises:
        ValidationError: If quantity is not positive
        InsufficientStock: If total stock is short
        DatabaseError: If the store rejects the write
    """
    lots = get_product_lots(session, product_id)
    allocations = plan_allocation(lots, quantity, product_name)
    apply_allocation(session, lots, allocations)
    return allocations
