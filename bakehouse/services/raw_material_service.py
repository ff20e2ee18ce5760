"""Raw Material Service - catalog of production inputs.

Provides CRUD for raw materials plus the stock summary shown on the
materials list:

- total_stock: sum of every batch, regardless of QC status
- available_stock: sum of released, unexpired batches (what FEFO can use)
- is_low_stock: available_stock below min_stock

A material can only be deleted while no BOM item references it.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from bakehouse.models import BomItem, RawMaterial
from bakehouse.services.database import session_scope
from bakehouse.services.exceptions import (
    EntityInUse,
    RawMaterialNotFound,
    SkuAlreadyExists,
    ValidationError,
)
from bakehouse.services.fefo_allocator import to_quantity, total_quantity
from bakehouse.services.logging_utils import get_service_logger, log_operation
from bakehouse.utils.constants import ZERO_QUANTITY
from bakehouse.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)


def _validate_material_data(name: str, sku: str, unit: str, min_stock) -> list:
    errors = []
    if not name or not name.strip():
        errors.append("Name is required")
    if not sku or not sku.strip():
        errors.append("SKU is required")
    if not unit or not unit.strip():
        errors.append("Unit is required")
    if to_quantity(min_stock, "min_stock") < ZERO_QUANTITY:
        errors.append("min_stock must not be negative")
    return errors


def create_raw_material(
    name: str,
    sku: str,
    unit: str,
    min_stock=0,
    price=None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Create a raw material.

    Args:
        name: Display name
        sku: Unique stock keeping unit
        unit: Unit of measure
        min_stock: Low-stock threshold
        price: Optional unit price
        session: Optional database session

    Returns:
        Created material as dictionary

    Raises:
        ValidationError: If required fields are missing
        SkuAlreadyExists: If the SKU is taken
    """
    if session is not None:
        return _create_raw_material_impl(name, sku, unit, min_stock, price, session)
    with session_scope() as session:
        return _create_raw_material_impl(name, sku, unit, min_stock, price, session)


def _create_raw_material_impl(name, sku, unit, min_stock, price, session: Session) -> Dict[str, Any]:
    errors = _validate_material_data(name, sku, unit, min_stock)
    if errors:
        raise ValidationError(errors)

    sku = sku.strip()
    if session.query(RawMaterial).filter(RawMaterial.sku == sku).first():
        raise SkuAlreadyExists(sku)

    material = RawMaterial(
        name=name.strip(),
        sku=sku,
        unit=unit.strip(),
        min_stock=to_quantity(min_stock, "min_stock"),
        price=to_quantity(price, "price") if price is not None else None,
    )
    session.add(material)
    session.flush()

    log_operation(logger, operation="create_raw_material", outcome="success", material_id=material.id)
    return material.to_dict()


def update_raw_material(
    material_id: int,
    name: str,
    sku: str,
    unit: str,
    min_stock=0,
    price=None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Update a raw material.

    Raises:
        RawMaterialNotFound: If the material doesn't exist
        ValidationError: If required fields are missing
        SkuAlreadyExists: If the new SKU belongs to another material
    """
    if session is not None:
        return _update_raw_material_impl(material_id, name, sku, unit, min_stock, price, session)
    with session_scope() as session:
        return _update_raw_material_impl(material_id, name, sku, unit, min_stock, price, session)


def _update_raw_material_impl(material_id, name, sku, unit, min_stock, price, session: Session):
    material = _get_material_or_raise(material_id, session)

    errors = _validate_material_data(name, sku, unit, min_stock)
    if errors:
        raise ValidationError(errors)

    sku = sku.strip()
    clash = (
        session.query(RawMaterial)
        .filter(RawMaterial.sku == sku, RawMaterial.id != material_id)
        .first()
    )
    if clash:
        raise SkuAlreadyExists(sku)

    material.name = name.strip()
    material.sku = sku
    material.unit = unit.strip()
    material.min_stock = to_quantity(min_stock, "min_stock")
    material.price = to_quantity(price, "price") if price is not None else None
    session.flush()
    return material.to_dict()


def _get_material_or_raise(material_id: int, session: Session) -> RawMaterial:
    material = session.get(RawMaterial, material_id)
    if material is None:
        raise RawMaterialNotFound(material_id)
    return material


def get_raw_material(material_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get a raw material by ID.

    Raises:
        RawMaterialNotFound: If the material doesn't exist
    """
    if session is not None:
        return _get_material_or_raise(material_id, session).to_dict()
    with session_scope() as session:
        return _get_material_or_raise(material_id, session).to_dict()


def _material_with_stock(material: RawMaterial, now) -> Dict[str, Any]:
    total_stock = total_quantity(material.batches)
    available_stock = total_quantity(b for b in material.batches if b.is_eligible(now))

    result = material.to_dict()
    result["total_stock"] = str(total_stock)
    result["available_stock"] = str(available_stock)
    result["is_low_stock"] = available_stock < to_quantity(material.min_stock)
    return result


def list_raw_materials(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List raw materials with total/available stock and low-stock flag."""
    if session is not None:
        return _list_raw_materials_impl(session)
    with session_scope() as session:
        return _list_raw_materials_impl(session)


def _list_raw_materials_impl(session: Session) -> List[Dict[str, Any]]:
    now = utc_now()
    materials = (
        session.query(RawMaterial)
        .options(selectinload(RawMaterial.batches))
        .order_by(RawMaterial.name)
        .all()
    )
    return [_material_with_stock(material, now) for material in materials]


def delete_raw_material(material_id: int, session: Optional[Session] = None) -> None:
    """Delete a raw material that no recipe uses.

    Its batches are deleted with it.

    Raises:
        RawMaterialNotFound: If the material doesn't exist
        EntityInUse: If a BOM item references the material
    """
    if session is not None:
        return _delete_raw_material_impl(material_id, session)
    with session_scope() as session:
        return _delete_raw_material_impl(material_id, session)


def _delete_raw_material_impl(material_id: int, session: Session) -> None:
    material = _get_material_or_raise(material_id, session)

    in_bom = session.query(BomItem).filter(BomItem.material_id == material_id).first()
    if in_bom:
        raise EntityInUse("raw material", material_id, "material is used in a recipe")

    session.delete(material)
    session.flush()
    log_operation(logger, operation="delete_raw_material", outcome="success", material_id=material_id)
