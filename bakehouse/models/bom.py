"""
Bill of materials (recipe) models.

This module contains:
- Bom: A recipe producing exactly one finished product
- BomItem: Quantity of one raw material required per unit of product
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel
from bakehouse.utils.constants import QUANTITY_PRECISION, QUANTITY_SCALE


class Bom(BaseModel):
    """
    Bom model representing a recipe for one finished product.

    Attributes:
        product_id: Foreign key to FinishedProduct
        name: Recipe name
        description: Optional description
    """

    __tablename__ = "boms"

    product_id = Column(
        Integer, ForeignKey("finished_products.id", ondelete="RESTRICT"), nullable=False
    )
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    product = relationship("FinishedProduct", back_populates="boms")
    items = relationship(
        "BomItem",
        back_populates="bom",
        cascade="all, delete-orphan",
        order_by="BomItem.id",
    )
    production_runs = relationship("ProductionRun", back_populates="bom")

    __table_args__ = (Index("idx_bom_product", "product_id"),)


class BomItem(BaseModel):
    """
    BomItem model: one ingredient line of a recipe.

    Attributes:
        bom_id: Foreign key to Bom
        material_id: Foreign key to RawMaterial
        quantity: Amount of material per 1 unit of finished product (> 0)
    """

    __tablename__ = "bom_items"

    bom_id = Column(Integer, ForeignKey("boms.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(
        Integer, ForeignKey("raw_materials.id", ondelete="RESTRICT"), nullable=False
    )
    quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_SCALE), nullable=False)

    bom = relationship("Bom", back_populates="items")
    material = relationship("RawMaterial", back_populates="bom_items")

    __table_args__ = (
        Index("idx_bom_item_bom", "bom_id"),
        Index("idx_bom_item_material", "material_id"),
        CheckConstraint("quantity > 0", name="ck_bom_item_quantity_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"BomItem(id={self.id}, bom_id={self.bom_id}, "
            f"material_id={self.material_id}, quantity={self.quantity})"
        )
