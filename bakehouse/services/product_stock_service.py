"""
Product Stock Service - finished-goods lots.

Key Functions:
- create_stock_entry: New lot for a product (used by production execute)
- deduct_stock: FEFO deduction across all lots of a product (no QC gate)
- get_stock_entries / get_all_stock_entries: Lot listings

Session Pattern:
All functions accept an optional ``session`` parameter. If provided, the
function uses the caller's session; if None it creates its own session via
session_scope().
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from bakehouse.models import FinishedProduct, ProductStock
from bakehouse.services import fefo_allocator
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import FinishedProductNotFound, InsufficientStock
from bakehouse.services.logging_utils import get_service_logger, log_operation
from bakehouse.utils.datetime_utils import days_from

logger = get_service_logger(__name__)


def create_stock_entry(
    product: FinishedProduct,
    quantity,
    production_run_id: Optional[int],
    produced_at: datetime,
    session: Session,
) -> ProductStock:
    """
    Create a finished-goods lot expiring ``shelf life`` days after production.

    Transaction boundary: Caller's session (always required).

    Args:
        product: FinishedProduct being stocked
        quantity: Quantity produced
        production_run_id: Run that produced the lot, if any
        produced_at: Production timestamp
        session: Caller's session

    Returns:
        The new ProductStock (flushed)
    """
    entry = ProductStock(
        product_id=product.id,
        production_run_id=production_run_id,
        quantity=fefo_allocator.to_quantity(quantity),
        expiry_date=days_from(produced_at, product.effective_shelf_life_days),
        produced_date=produced_at,
    )
    session.add(entry)
    session.flush()
    return entry


def deduct_stock(
    product_id: int,
    quantity,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    Deduct finished goods FEFO (earliest expiry first).

    Every lot of the product is eligible; outgoing finished goods have no QC
    gate. All-or-nothing on shortage.

    Args:
        product_id: Finished product to deduct
        quantity: Quantity requested (> 0)
        session: Optional database session

    Returns:
        Ordered list of {"entry_id", "quantity"} (quantity as Decimal)

    Raises:
        FinishedProductNotFound: If the product doesn't exist
        ValidationError: If quantity is not positive
        InsufficientStock: If total stock is below the request
    """
    if session is not None:
        return _deduct_stock_impl(product_id, quantity, session)
    with session_scope() as session:
        return _deduct_stock_impl(product_id, quantity, session)


def _deduct_stock_impl(product_id: int, quantity, session: Session) -> List[Dict[str, Any]]:
    product = session.get(FinishedProduct, product_id)
    if product is None:
        raise FinishedProductNotFound(product_id)

    try:
        allocations = fefo_allocator.allocate_product_stock(
            session, product_id, product.name, quantity
        )
    except InsufficientStock as e:
        log_operation(
            logger,
            operation="deduct_stock",
            outcome="insufficient_stock",
            level=logging.WARNING,
            product_id=product_id,
            required=str(e.required),
            available=str(e.available),
        )
        raise

    log_operation(
        logger,
        operation="deduct_stock",
        outcome="success",
        product_id=product_id,
        lots_used=len(allocations),
    )
    return [{"entry_id": a.lot_id, "quantity": a.quantity} for a in allocations]


def get_stock_entries(product_id: int, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List the lots of one product, earliest expiry first."""
    if session is not None:
        return _get_stock_entries_impl(product_id, session)
    with session_scope() as session:
        return _get_stock_entries_impl(product_id, session)


def _get_stock_entries_impl(product_id: int, session: Session) -> List[Dict[str, Any]]:
    return [lot.to_dict() for lot in fefo_allocator.get_product_lots(session, product_id)]


def get_all_stock_entries(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List every finished-goods lot."""
    if session is not None:
        return _get_all_stock_entries_impl(session)
    with session_scope() as session:
        return _get_all_stock_entries_impl(session)


def _get_all_stock_entries_impl(session: Session) -> List[Dict[str, Any]]:
    lots = session.query(ProductStock).order_by(ProductStock.product_id, ProductStock.id).all()
    return [lot.to_dict() for lot in lots]


def get_total_stock(product_id: int, session: Optional[Session] = None):
    """Total quantity on hand for a product across all lots (Decimal)."""
    if session is not None:
        return fefo_allocator.total_quantity(fefo_allocator.get_product_lots(session, product_id))
    with session_scope() as session:
        return fefo_allocator.total_quantity(fefo_allocator.get_product_lots(session, product_id))
