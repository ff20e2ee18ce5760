"""
ProductionRun model for planned and executed production.

A run is created in the ``planned`` state and moves exactly once, either to
``completed`` (stock consumed, finished goods created) or to ``cancelled``.
``archived_at`` is an orthogonal soft-delete marker.
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
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import ProductionRunStatus
from bakehouse.utils.constants import QUANTITY_PRECISION, QUANTITY_SCALE
from bakehouse.utils.datetime_utils import utc_now


class ProductionRun(BaseModel):
    """
    ProductionRun model.

    Attributes:
        bom_id: Foreign key to the Bom being produced
        status: ProductionRunStatus value
        target_quantity: Units planned
        produced_quantity: Good units made (set on completion)
        rejected_quantity: Units rejected (set on completion)
        notes: Optional notes
        start_date: Planned start
        completed_date: Set on completion
        archived_at: Soft-delete marker
    """

    __tablename__ = "production_runs"

    bom_id = Column(Integer, ForeignKey("boms.id", ondelete="RESTRICT"), nullable=False)
    status = Column(String(20), nullable=False, default=ProductionRunStatus.PLANNED.value)

    target_quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)
    produced_quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=True)
    rejected_quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=True)
    notes = Column(Text, nullable=True)

    start_date = Column(DateTime, nullable=False, default=utc_now)
    completed_date = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    bom = relationship("Bom", back_populates="production_runs")
    stock_entries = relationship("ProductStock", back_populates="production_run")

    __table_args__ = (
        Index("idx_production_run_bom", "bom_id"),
        Index("idx_production_run_status", "status"),
        Index("idx_production_run_start", "start_date"),
        CheckConstraint("target_quantity > 0", name="ck_production_run_target_positive"),
        CheckConstraint(
            "produced_quantity IS NULL OR produced_quantity >= 0",
            name="ck_production_run_produced_non_negative",
        ),
        CheckConstraint(
            "rejected_quantity IS NULL OR rejected_quantity >= 0",
            name="ck_production_run_rejected_non_negative",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"ProductionRun(id={self.id}, bom_id={self.bom_id}, "
            f"status='{self.status}', target_quantity={self.target_quantity})"
        )

    @property
    def is_planned(self) -> bool:
        return self.status == ProductionRunStatus.PLANNED.value

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert production run to dictionary.

        Args:
            include_relationships: If True, include BOM and product names

        Returns:
            Dictionary representation with formatted fields
        """
        result = super().to_dict(False)

        if include_relationships and self.bom:
            result["bom_name"] = self.bom.name
            result["product_id"] = self.bom.product_id
            result["product_name"] = self.bom.product.name if self.bom.product else "Unknown"

        return result
