"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import QcStatus, ProductionRunStatus, TransactionType
from .supplier import Supplier
from .raw_material import RawMaterial
from .batch import Batch
from .finished_product import FinishedProduct
from .product_stock import ProductStock
from .bom import Bom, BomItem
from .production_run import ProductionRun
from .transaction_log import TransactionLog
from .waste_record import WasteRecord

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "QcStatus",
    "ProductionRunStatus",
    "TransactionType",
    # Raw-material side
    "Supplier",
    "RawMaterial",
    "Batch",
    # Finished-goods side
    "FinishedProduct",
    "ProductStock",
    # Recipes and production
    "Bom",
    "BomItem",
    "ProductionRun",
    # Audit trail
    "TransactionLog",
    "WasteRecord",
]
