"""Supplier Service - minimal supplier records for batch receipts.

Example Usage:
    >>> from bakehouse.services.supplier_service import create_supplier
    >>> supplier = create_supplier(name="Mill & Co", contact="orders@mill.example")
    >>> supplier["name"]
    'Mill & Co'
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from bakehouse.models import Supplier
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import SupplierNotFound, ValidationError


def create_supplier(
    name: str,
    contact: str = "",
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Create a new supplier.

    Args:
        name: Supplier name (required)
        contact: Contact details
        session: Optional database session

    Returns:
        Created supplier as dictionary

    Raises:
        ValidationError: If name is blank
    """
    if session is not None:
        return _create_supplier_impl(name, contact, session)
    with session_scope() as session:
        return _create_supplier_impl(name, contact, session)


def _create_supplier_impl(name: str, contact: str, session: Session) -> Dict[str, Any]:
    if not name or not name.strip():
        raise ValidationError(["Supplier name is required"])

    supplier = Supplier(name=name.strip(), contact=contact or "")
    session.add(supplier)
    session.flush()
    return supplier.to_dict()


def get_supplier(supplier_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get supplier by ID.

    Raises:
        SupplierNotFound: If the supplier doesn't exist
    """
    if session is not None:
        return _get_supplier_impl(supplier_id, session)
    with session_scope() as session:
        return _get_supplier_impl(supplier_id, session)


def _get_supplier_impl(supplier_id: int, session: Session) -> Dict[str, Any]:
    supplier = session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFound(supplier_id)
    return supplier.to_dict()


def list_suppliers(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List all suppliers ordered by name."""
    if session is not None:
        return [s.to_dict() for s in session.query(Supplier).order_by(Supplier.name).all()]
    with session_scope() as session:
        return [s.to_dict() for s in session.query(Supplier).order_by(Supplier.name).all()]
