"""
FinishedProduct model for goods produced by production runs.
"""

from decimal import Decimal

from sqlalchemy import Column, Integer, String, Numeric, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel
from bakehouse.utils.constants import (
    DEFAULT_SHELF_LIFE_DAYS,
    QUANTITY_PRECISION,
    QUANTITY_SCALE,
)


class FinishedProduct(BaseModel):
    """
    FinishedProduct model (bread, cakes, pastries).

    Attributes:
        name: Display name
        sku: Stock keeping unit (unique)
        unit: Unit of measure
        min_stock: Low-stock threshold
        price: Optional selling price
        shelf_life_days: Days a produced lot stays sellable (default 3 when unset)
    """

    __tablename__ = "finished_products"

    name = Column(String(200), nullable=False)
    sku = Column(String(100), nullable=False, unique=True)
    unit = Column(String(50), nullable=False)
    min_stock = Column(
        Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False, default=Decimal("0")
    )
    price = Column(Numeric(10, 2), nullable=True)
    shelf_life_days = Column(Integer, nullable=True)

    stock_entries = relationship(
        "ProductStock",
        back_populates="product",
        cascade="all, delete-orphan",
    )
    boms = relationship("Bom", back_populates="product")

    __table_args__ = (
        Index("idx_finished_product_sku", "sku"),
        CheckConstraint("min_stock >= 0", name="ck_finished_product_min_stock_non_negative"),
    )

    @property
    def effective_shelf_life_days(self) -> int:
        """Shelf life in days, falling back to the bakery default."""
        return self.shelf_life_days or DEFAULT_SHELF_LIFE_DAYS
