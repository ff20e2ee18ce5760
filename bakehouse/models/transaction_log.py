"""
TransactionLog model: append-only audit trail of stock movements.

Rows are never updated after insertion except for ``archived_at``.
``batch_id`` is a plain integer rather than a foreign key so entries
survive deletion of the batch they describe.
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


class TransactionLog(BaseModel):
    """
    TransactionLog model.

    Attributes:
        type: TransactionType value
        batch_id: Id of the batch involved (may no longer exist)
        batch_number: Batch number snapshot
        material_id: Optional foreign key to RawMaterial
        production_run_id: Optional foreign key to ProductionRun
        quantity: Quantity moved
        user_id: Optional actor identifier
        notes: Free-text note
        archived_at: Soft-delete marker
    """

    __tablename__ = "transaction_logs"

    type = Column(String(40), nullable=False)
    batch_id = Column(Integer, nullable=True)
    batch_number = Column(String(100), nullable=True)
    material_id = Column(
        Integer, ForeignKey("raw_materials.id", ondelete="SET NULL"), nullable=True
    )
    production_run_id = Column(
        Integer, ForeignKey("production_runs.id", ondelete="SET NULL"), nullable=True
    )
    quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)
    user_id = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    material = relationship("RawMaterial")
    production_run = relationship("ProductionRun")

    __table_args__ = (
        Index("idx_transaction_log_type", "type"),
        Index("idx_transaction_log_material", "material_id"),
        Index("idx_transaction_log_run", "production_run_id"),
        Index("idx_transaction_log_created", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"TransactionLog(id={self.id}, type='{self.type}', "
            f"batch_id={self.batch_id}, quantity={self.quantity})"
        )
