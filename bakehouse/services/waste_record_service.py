"""
Waste Record Service - read side of the waste ledger.

Waste records are written only by ``batch_service.approve_expired_disposal``
and are never modified afterwards.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from bakehouse.models import WasteRecord
from bakehouse.services.database import session_scope
from bakehouse.services.fefo_allocator import to_quantity
from bakehouse.utils.constants import ZERO_QUANTITY


def _record_to_dict(record: WasteRecord) -> Dict[str, Any]:
    result = record.to_dict()
    result["material_name"] = record.material.name if record.material else None
    result["material_unit"] = record.material.unit if record.material else None
    return result


def _records(session: Session, material_id: Optional[int] = None) -> List[WasteRecord]:
    query = session.query(WasteRecord).options(joinedload(WasteRecord.material))
    if material_id is not None:
        query = query.filter(WasteRecord.material_id == material_id)
    return query.order_by(WasteRecord.disposed_at.desc(), WasteRecord.id.desc()).all()


def list_waste_records(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List every waste record, newest disposal first."""
    if session is not None:
        return [_record_to_dict(r) for r in _records(session)]
    with session_scope() as session:
        return [_record_to_dict(r) for r in _records(session)]


def list_waste_records_by_material(
    material_id: int,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """List the waste records of one material, newest disposal first."""
    if session is not None:
        return [_record_to_dict(r) for r in _records(session, material_id)]
    with session_scope() as session:
        return [_record_to_dict(r) for r in _records(session, material_id)]


def get_waste_summary(session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Summarize waste per material.

    Returns:
        {
            "total_records": int,
            "by_material": [
                {"material_id", "name", "total_quantity" (Decimal), "count"}
            ],
        }
    """
    if session is not None:
        return _get_waste_summary_impl(session)
    with session_scope() as session:
        return _get_waste_summary_impl(session)


def _get_waste_summary_impl(session: Session) -> Dict[str, Any]:
    records = _records(session)

    by_material: Dict[Any, Dict[str, Any]] = {}
    for record in records:
        entry = by_material.setdefault(
            record.material_id,
            {
                "material_id": record.material_id,
                "name": record.material.name if record.material else "Unknown",
                "total_quantity": ZERO_QUANTITY,
                "count": 0,
            },
        )
        entry["total_quantity"] += to_quantity(record.quantity)
        entry["count"] += 1

    return {
        "total_records": len(records),
        "by_material": list(by_material.values()),
    }
