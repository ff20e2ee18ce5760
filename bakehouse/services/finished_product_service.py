"""Finished Product Service - catalog of goods produced by production runs.

Mirrors raw_material_service: CRUD with unique SKUs and a list view that
reports total stock across all lots and a low-stock flag. A product with a
recipe cannot be deleted.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from bakehouse.models import Bom, FinishedProduct
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import (
    EntityInUse,
    FinishedProductNotFound,
    SkuAlreadyExists,
    ValidationError,
)
from bakehouse.services.fefo_allocator import to_quantity, total_quantity
from bakehouse.services.logging_utils import get_service_logger, log_operation
from bakehouse.utils.constants import ZERO_QUANTITY

logger = get_service_logger(__name__)


def _validate_product_data(name, sku, unit, min_stock, shelf_life_days) -> list:
    errors = []
    if not name or not name.strip():
        errors.append("Name is required")
    if not sku or not sku.strip():
        errors.append("SKU is required")
    if not unit or not unit.strip():
        errors.append("Unit is required")
    if to_quantity(min_stock, "min_stock") < ZERO_QUANTITY:
        errors.append("min_stock must not be negative")
    if shelf_life_days is not None and int(shelf_life_days) <= 0:
        errors.append("shelf_life_days must be greater than 0")
    return errors


def create_finished_product(
    name: str,
    sku: str,
    unit: str,
    min_stock=0,
    price=None,
    shelf_life_days: Optional[int] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Create a finished product.

    Args:
        name: Display name
        sku: Unique stock keeping unit
        unit: Unit of measure
        min_stock: Low-stock threshold
        price: Optional price
        shelf_life_days: Days a produced lot stays sellable (default 3 when None)
        session: Optional database session

    Raises:
        ValidationError: If required fields are missing
        SkuAlreadyExists: If the SKU is taken
    """
    if session is not None:
        return _create_impl(name, sku, unit, min_stock, price, shelf_life_days, session)
    with session_scope() as session:
        return _create_impl(name, sku, unit, min_stock, price, shelf_life_days, session)


def _create_impl(name, sku, unit, min_stock, price, shelf_life_days, session: Session):
    errors = _validate_product_data(name, sku, unit, min_stock, shelf_life_days)
    if errors:
        raise ValidationError(errors)

    sku = sku.strip()
    if session.query(FinishedProduct).filter(FinishedProduct.sku == sku).first():
        raise SkuAlreadyExists(sku)

    product = FinishedProduct(
        name=name.strip(),
        sku=sku,
        unit=unit.strip(),
        min_stock=to_quantity(min_stock, "min_stock"),
        price=to_quantity(price, "price") if price is not None else None,
        shelf_life_days=shelf_life_days,
    )
    session.add(product)
    session.flush()

    log_operation(logger, operation="create_finished_product", outcome="success", product_id=product.id)
    return product.to_dict()


def update_finished_product(
    product_id: int,
    name: str,
    sku: str,
    unit: str,
    min_stock=0,
    price=None,
    shelf_life_days: Optional[int] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Update a finished product.

    Raises:
        FinishedProductNotFound: If the product doesn't exist
        ValidationError: If required fields are missing
        SkuAlreadyExists: If the new SKU belongs to another product
    """
    if session is not None:
        return _update_impl(product_id, name, sku, unit, min_stock, price, shelf_life_days, session)
    with session_scope() as session:
        return _update_impl(product_id, name, sku, unit, min_stock, price, shelf_life_days, session)


def _update_impl(product_id, name, sku, unit, min_stock, price, shelf_life_days, session: Session):
    product = _get_product_or_raise(product_id, session)

    errors = _validate_product_data(name, sku, unit, min_stock, shelf_life_days)
    if errors:
        raise ValidationError(errors)

    sku = sku.strip()
    clash = (
        session.query(FinishedProduct)
        .filter(FinishedProduct.sku == sku, FinishedProduct.id != product_id)
        .first()
    )
    if clash:
        raise SkuAlreadyExists(sku)

    product.name = name.strip()
    product.sku = sku
    product.unit = unit.strip()
    product.min_stock = to_quantity(min_stock, "min_stock")
    product.price = to_quantity(price, "price") if price is not None else None
    product.shelf_life_days = shelf_life_days
    session.flush()
    return product.to_dict()


def _get_product_or_raise(product_id: int, session: Session) -> FinishedProduct:
    product = session.get(FinishedProduct, product_id)
    if product is None:
        raise FinishedProductNotFound(product_id)
    return product


def get_finished_product(product_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get a finished product by ID, including its effective shelf life.

    Raises:
        FinishedProductNotFound: If the product doesn't exist
    """
    if session is not None:
        return _get_impl(product_id, session)
    with session_scope() as session:
        return _get_impl(product_id, session)


def _get_impl(product_id: int, session: Session) -> Dict[str, Any]:
    product = _get_product_or_raise(product_id, session)
    result = product.to_dict()
    result["effective_shelf_life_days"] = product.effective_shelf_life_days
    return result


def list_finished_products(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List finished products with total stock and low-stock flag."""
    if session is not None:
        return _list_impl(session)
    with session_scope() as session:
        return _list_impl(session)


def _list_impl(session: Session) -> List[Dict[str, Any]]:
    products = (
        session.query(FinishedProduct)
        .options(selectinload(FinishedProduct.stock_entries))
        .order_by(FinishedProduct.name)
        .all()
    )
    results = []
    for product in products:
        total_stock = total_quantity(product.stock_entries)
        result = product.to_dict()
        result["total_stock"] = str(total_stock)
        result["is_low_stock"] = total_stock < to_quantity(product.min_stock)
        results.append(result)
    return results


def delete_finished_product(product_id: int, session: Optional[Session] = None) -> None:
    """Delete a finished product that has no recipe.

    Raises:
        FinishedProductNotFound: If the product doesn't exist
        EntityInUse: If a BOM produces this product
    """
    if session is not None:
        return _delete_impl(product_id, session)
    with session_scope() as session:
        return _delete_impl(product_id, session)


def _delete_impl(product_id: int, session: Session) -> None:
    product = _get_product_or_raise(product_id, session)

    if session.query(Bom).filter(Bom.product_id == product_id).first():
        raise EntityInUse("finished product", product_id, "product has a recipe")

    session.delete(product)
    session.flush()
    log_operation(logger, operation="delete_finished_product", outcome="success", product_id=product_id)
