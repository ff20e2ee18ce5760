"""BOM Service - recipes mapping a finished product to raw-material needs.

Each BOM produces exactly one finished product and lists, per ingredient,
the quantity of raw material needed for one unit of product. The
production service reads BOMs through ``get_bom_items``.

Example Usage:
    >>> bom = create_bom(product_id=1, name="Sourdough loaf")
    >>> add_ingredient(bom["id"], material_id=3, quantity=0.5)
    >>> get_bom_items(bom["id"])
    [{'bom_item_id': 1, 'material_id': 3, 'quantity_per_unit': Decimal('0.5')}]
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from bakehouse.models import Bom, BomItem, FinishedProduct, ProductionRun, RawMaterial
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import (
    BomItemNotFound,
    BomNotFound,
    EntityInUse,
    FinishedProductNotFound,
    RawMaterialNotFound,
    ValidationError,
)
from bakehouse.services.fefo_allocator import require_positive
from bakehouse.services.logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


def create_bom(
    product_id: int,
    name: str,
    description: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Create a BOM for a finished product.

    Raises:
        FinishedProductNotFound: If the product doesn't exist
        ValidationError: If name is blank
    """
    if session is not None:
        return _create_bom_impl(product_id, name, description, session)
    with session_scope() as session:
        return _create_bom_impl(product_id, name, description, session)


def _create_bom_impl(product_id, name, description, session: Session) -> Dict[str, Any]:
    if not name or not name.strip():
        raise ValidationError(["BOM name is required"])
    if session.get(FinishedProduct, product_id) is None:
        raise FinishedProductNotFound(product_id)

    bom = Bom(product_id=product_id, name=name.strip(), description=description)
    session.add(bom)
    session.flush()

    log_operation(logger, operation="create_bom", outcome="success", bom_id=bom.id, product_id=product_id)
    return bom.to_dict()


def _get_bom_or_raise(bom_id: int, session: Session) -> Bom:
    bom = (
        session.query(Bom)
        .options(
            joinedload(Bom.product),
            selectinload(Bom.items).joinedload(BomItem.material),
        )
        .filter(Bom.id == bom_id)
        .first()
    )
    if bom is None:
        raise BomNotFound(bom_id)
    return bom


def get_bom(bom_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get a BOM with its product and enriched ingredient lines.

    Returns:
        BOM dict with product_name, product_sku and "ingredients", each
        carrying material_name, material_unit and material_sku.

    Raises:
        BomNotFound: If the BOM doesn't exist
    """
    if session is not None:
        return _get_bom_impl(bom_id, session)
    with session_scope() as session:
        return _get_bom_impl(bom_id, session)


def _get_bom_impl(bom_id: int, session: Session) -> Dict[str, Any]:
    bom = _get_bom_or_raise(bom_id, session)

    result = bom.to_dict()
    result["product_name"] = bom.product.name
    result["product_sku"] = bom.product.sku
    result["ingredients"] = []
    for item in bom.items:
        ingredient = item.to_dict()
        ingredient["material_name"] = item.material.name
        ingredient["material_unit"] = item.material.unit
        ingredient["material_sku"] = item.material.sku
        result["ingredients"].append(ingredient)
    return result


def get_bom_items(bom_id: int, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """Get the ingredient lines of a BOM as material/quantity pairs.

    Returns:
        List of {"bom_item_id", "material_id", "quantity_per_unit"} in
        insertion order; quantity_per_unit is a Decimal.

    Raises:
        BomNotFound: If the BOM doesn't exist
    """
    if session is not None:
        return _get_bom_items_impl(bom_id, session)
    with session_scope() as session:
        return _get_bom_items_impl(bom_id, session)


def _get_bom_items_impl(bom_id: int, session: Session) -> List[Dict[str, Any]]:
    bom = _get_bom_or_raise(bom_id, session)
    return [
        {
            "bom_item_id": item.id,
            "material_id": item.material_id,
            "quantity_per_unit": item.quantity,
        }
        for item in bom.items
    ]


def list_boms(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List BOMs with product name/SKU and ingredient count."""
    if session is not None:
        return _list_boms_impl(session)
    with session_scope() as session:
        return _list_boms_impl(session)


def _list_boms_impl(session: Session) -> List[Dict[str, Any]]:
    boms = (
        session.query(Bom)
        .options(joinedload(Bom.product), selectinload(Bom.items))
        .order_by(Bom.name)
        .all()
    )
    results = []
    for bom in boms:
        result = bom.to_dict()
        result["product_name"] = bom.product.name
        result["product_sku"] = bom.product.sku
        result["ingredient_count"] = len(bom.items)
        results.append(result)
    return results


def add_ingredient(
    bom_id: int,
    material_id: int,
    quantity,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Add an ingredient line to a BOM.

    Args:
        bom_id: BOM to extend
        material_id: Raw material required
        quantity: Amount per 1 unit of finished product (> 0)

    Raises:
        BomNotFound: If the BOM doesn't exist
        RawMaterialNotFound: If the material doesn't exist
        ValidationError: If quantity is not positive
    """
    if session is not None:
        return _add_ingredient_impl(bom_id, material_id, quantity, session)
    with session_scope() as session:
        return _add_ingredient_impl(bom_id, material_id, quantity, session)


def _add_ingredient_impl(bom_id, material_id, quantity, session: Session) -> Dict[str, Any]:
    quantity = require_positive(quantity)
    if session.get(Bom, bom_id) is None:
        raise BomNotFound(bom_id)
    if session.get(RawMaterial, material_id) is None:
        raise RawMaterialNotFound(material_id)

    item = BomItem(bom_id=bom_id, material_id=material_id, quantity=quantity)
    session.add(item)
    session.flush()
    return item.to_dict()


def remove_ingredient(bom_item_id: int, session: Optional[Session] = None) -> None:
    """Remove an ingredient line.

    Raises:
        BomItemNotFound: If the line doesn't exist
    """
    if session is not None:
        return _remove_ingredient_impl(bom_item_id, session)
    with session_scope() as session:
        return _remove_ingredient_impl(bom_item_id, session)


def _remove_ingredient_impl(bom_item_id: int, session: Session) -> None:
    item = session.get(BomItem, bom_item_id)
    if item is None:
        raise BomItemNotFound(bom_item_id)
    session.delete(item)
    session.flush()


def delete_bom(bom_id: int, session: Optional[Session] = None) -> None:
    """Delete a BOM and its ingredient lines.

    Raises:
        BomNotFound: If the BOM doesn't exist
        EntityInUse: If production runs reference the BOM
    """
    if session is not None:
        return _delete_bom_impl(bom_id, session)
    with session_scope() as session:
        return _delete_bom_impl(bom_id, session)


def _delete_bom_impl(bom_id: int, session: Session) -> None:
    bom = session.get(Bom, bom_id)
    if bom is None:
        raise BomNotFound(bom_id)

    run_count = session.query(ProductionRun).filter(ProductionRun.bom_id == bom_id).count()
    if run_count:
        raise EntityInUse("BOM", bom_id, f"used by {run_count} production run(s)")

    session.delete(bom)
    session.flush()
    log_operation(logger, operation="delete_bom", outcome="success", bom_id=bom_id)
