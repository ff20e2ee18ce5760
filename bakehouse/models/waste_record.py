"""
WasteRecord model: immutable snapshot of a disposed batch.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from bakehouse.utils.constants import QUANTITY_PRECISION, QUANTITY_SCALE
from bakehouse.utils.datetime_utils import utc_now


class WasteRecord(BaseModel):
    """
    WasteRecord model.

    Attributes:
        original_batch_id: Id of the disposed batch (the batch row is gone)
        batch_number: Batch number snapshot
        material_id: Foreign key to RawMaterial
        quantity: Quantity disposed (the full remaining lot)
        expiry_date: Expiry date of the disposed batch
        disposed_by: Actor who approved the disposal
        disposed_at: Disposal timestamp
        notes: Optional notes
    """

    __tablename__ = "waste_records"

    original_batch_id = Column(Integer, nullable=False)
    batch_number = Column(String(100), nullable=False)
    material_id = Column(
        Integer, ForeignKey("raw_materials.id", ondelete="SET NULL"), nullable=True
    )
    quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)
    expiry_date = Column(DateTime, nullable=False)
    disposed_by = Column(String(100), nullable=False)
    disposed_at = Column(DateTime, nullable=False, default=utc_now)
    notes = Column(Text, nullable=True)

    material = relationship("RawMaterial")

    __table_args__ = (
        Index("idx_waste_record_material", "material_id"),
        Index("idx_waste_record_disposed", "disposed_at"),
    )
