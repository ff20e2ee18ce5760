"""
Constants for the Bakehouse inventory application.

This module defines system-wide constants including:
- Application metadata
- Stock and shelf-life defaults
- Quantity precision
"""

from decimal import Decimal

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Bakehouse Inventory"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "bakehouse.db"

# ============================================================================
# Stock Defaults
# ============================================================================

# Shelf life applied to finished goods when the product has none configured
DEFAULT_SHELF_LIFE_DAYS = 3

# Default retention window for archive operations (production runs, logs)
DEFAULT_ARCHIVE_DAYS = 30

# Quantities are stored as Numeric(QUANTITY_PRECISION, QUANTITY_SCALE)
QUANTITY_PRECISION = 12
QUANTITY_SCALE = 4
ZERO_QUANTITY = Decimal("0")
