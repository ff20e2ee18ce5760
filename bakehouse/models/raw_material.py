"""
RawMaterial model for ingredients and other production inputs.
"""

from decimal import Decimal

from sqlalchemy import Column, String, Numeric, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel
from bakehouse.utils.constants import QUANTITY_PRECISION, QUANTITY_SCALE


class RawMaterial(BaseModel):
    """
    RawMaterial model (flour, sugar, butter, ...).

    Stock is not stored on the material itself; it is the sum of the
    quantities of its batches.

    Attributes:
        name: Display name
        sku: Stock keeping unit (unique)
        unit: Unit of measure batches are counted in
        min_stock: Threshold below which the material is reported as low
        price: Optional unit price
    """

    __tablename__ = "raw_materials"

    name = Column(String(200), nullable=False)
    sku = Column(String(100), nullable=False, unique=True)
    unit = Column(String(50), nullable=False)
    min_stock = Column(
        Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False, default=Decimal("0")
    )
    price = Column(Numeric(10, 2), nullable=True)

    batches = relationship(
        "Batch",
        back_populates="material",
        cascade="all, delete-orphan",
    )
    bom_items = relationship("BomItem", back_populates="material")

    __table_args__ = (
        Index("idx_raw_material_sku", "sku"),
        CheckConstraint("min_stock >= 0", name="ck_raw_material_min_stock_non_negative"),
    )

    def __repr__(self) -> str:
        return f"RawMaterial(id={self.id}, sku='{self.sku}', name='{self.name}')"
