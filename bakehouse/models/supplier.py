"""
Supplier model for raw-material sources.
"""

from sqlalchemy import Column, String, Index
from sqlalchemy.orm import relationship

from .base import BaseModel


class Supplier(BaseModel):
    """
    Supplier model representing a source of raw-material batches.

    Attributes:
        name: Supplier name
        contact: Free-text contact details (phone, email, person)
    """

    __tablename__ = "suppliers"

    name = Column(String(200), nullable=False)
    contact = Column(String(200), nullable=False, default="")

    batches = relationship("Batch", back_populates="supplier")

    __table_args__ = (Index("idx_supplier_name", "name"),)
