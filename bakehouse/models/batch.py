"""
Batch model for raw-material lots.

A batch is a quantity of one raw material received together. It carries
its own expiry date and QC status; the FEFO allocator draws from released,
unexpired batches in expiry order.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import QcStatus, USABLE_QC_STATUSES
from bakehouse.utils.constants import QUANTITY_PRECISION, QUANTITY_SCALE
from bakehouse.utils.datetime_utils import utc_now, as_utc


class Batch(BaseModel):
    """
    Batch model representing a raw-material lot on hand.

    Attributes:
        material_id: Foreign key to RawMaterial
        supplier_id: Optional foreign key to Supplier
        batch_number: Supplier lot number (free text, not unique)
        quantity: Remaining quantity (never negative; the row is deleted at 0)
        expiry_date: When the lot expires (immutable)
        received_date: When the lot was received
        qc_status: QcStatus value
    """

    __tablename__ = "batches"

    material_id = Column(
        Integer, ForeignKey("raw_materials.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = Column(
        Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    batch_number = Column(String(100), nullable=False)
    quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)
    expiry_date = Column(DateTime, nullable=False)
    received_date = Column(DateTime, nullable=False, default=utc_now)

    # Non-nullable: rows created without an explicit status are released.
    # receive_stock always writes PENDING.
    qc_status = Column(String(20), nullable=False, default=QcStatus.RELEASE.value)

    material = relationship("RawMaterial", back_populates="batches")
    supplier = relationship("Supplier", back_populates="batches")

    __table_args__ = (
        Index("idx_batch_material", "material_id"),
        Index("idx_batch_material_expiry", "material_id", "expiry_date"),
        Index("idx_batch_qc_status", "qc_status"),
        CheckConstraint("quantity >= 0", name="ck_batch_quantity_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"Batch(id={self.id}, material_id={self.material_id}, "
            f"batch_number='{self.batch_number}', quantity={self.quantity}, "
            f"qc_status='{self.qc_status}')"
        )

    def is_expired_at(self, now: Optional[datetime] = None) -> bool:
        """Check whether the expiry date lies before ``now``."""
        return as_utc(self.expiry_date) < as_utc(now or utc_now())

    @property
    def is_expired(self) -> bool:
        """Live expiry check against the wall clock."""
        return self.is_expired_at()

    def is_eligible(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether the FEFO allocator may draw from this batch.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            True if the batch is released and not past its expiry date
        """
        return self.qc_status in USABLE_QC_STATUSES and not self.is_expired_at(now)

    def to_dict(self, include_relationships: bool = False) -> dict:
        result = super().to_dict(include_relationships)
        result["is_expired"] = self.is_expired
        return result
