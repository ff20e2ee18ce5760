"""
ProductStock model for finished-goods lots.

Each production run creates one lot; the lot expires shelf_life_days after
it was produced. Finished goods are consumed FEFO without a QC gate.
"""

from sqlalchemy import (
    Column,
    Integer,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from bakehouse.utils.constants import QUANTITY_PRECISION, QUANTITY_SCALE
from bakehouse.utils.datetime_utils import utc_now, as_utc


class ProductStock(BaseModel):
    """
    ProductStock model representing a finished-goods lot.

    Attributes:
        product_id: Foreign key to FinishedProduct
        production_run_id: Optional foreign key to the ProductionRun that made it
        quantity: Remaining quantity (the row is deleted at 0)
        expiry_date: produced_date + shelf life
        produced_date: When the lot was produced
    """

    __tablename__ = "product_stock"

    product_id = Column(
        Integer, ForeignKey("finished_products.id", ondelete="CASCADE"), nullable=False
    )
    production_run_id = Column(
        Integer,
        ForeignKey("production_runs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)
    expiry_date = Column(DateTime, nullable=False)
    produced_date = Column(DateTime, nullable=False, default=utc_now)

    product = relationship("FinishedProduct", back_populates="stock_entries")
    production_run = relationship("ProductionRun", back_populates="stock_entries")

    __table_args__ = (
        Index("idx_product_stock_product", "product_id"),
        Index("idx_product_stock_product_expiry", "product_id", "expiry_date"),
        CheckConstraint("quantity >= 0", name="ck_product_stock_quantity_non_negative"),
    )

    @property
    def is_expired(self) -> bool:
        return as_utc(self.expiry_date) < utc_now()

    def to_dict(self, include_relationships: bool = False) -> dict:
        result = super().to_dict(include_relationships)
        result["is_expired"] = self.is_expired
        return result
