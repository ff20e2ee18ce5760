"""Service layer exception classes for Bakehouse inventory.

Exception Hierarchy:
    ServiceError (base)
    ├── EntityNotFound
    │   ├── BatchNotFound
    │   ├── RawMaterialNotFound
    │   ├── SupplierNotFound
    │   ├── FinishedProductNotFound
    │   ├── BomNotFound
    │   ├── BomItemNotFound
    │   └── ProductionRunNotFound
    ├── InvalidStateError
    ├── InsufficientStock
    ├── ValidationError
    ├── SkuAlreadyExists
    ├── EntityInUse
    └── DatabaseError
"""

from decimal import Decimal
from typing import Union

Number = Union[int, float, Decimal]


class ServiceError(Exception):
    """Base exception for all service layer errors."""

    pass


class EntityNotFound(ServiceError):
    """Raised when a referenced record does not exist.

    Args:
        entity: Human-readable entity name (e.g. "Batch")
        entity_id: The id that was looked up
    """

    entity = "Record"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} with ID {entity_id} not found")


class BatchNotFound(EntityNotFound):
    """Raised when a raw-material batch cannot be found by ID."""

    entity = "Batch"


class RawMaterialNotFound(EntityNotFound):
    """Raised when a raw material cannot be found by ID."""

    entity = "Raw material"


class SupplierNotFound(EntityNotFound):
    """Raised when a supplier cannot be found by ID."""

    entity = "Supplier"


class FinishedProductNotFound(EntityNotFound):
    """Raised when a finished product cannot be found by ID."""

    entity = "Finished product"


class BomNotFound(EntityNotFound):
    """Raised when a BOM (recipe) cannot be found by ID."""

    entity = "BOM"


class BomItemNotFound(EntityNotFound):
    """Raised when a BOM ingredient line cannot be found by ID."""

    entity = "BOM item"


class ProductionRunNotFound(EntityNotFound):
    """Raised when a production run cannot be found by ID."""

    entity = "Production run"


class InvalidStateError(ServiceError):
    """Raised when an operation targets a record in the wrong state.

    Example:
        >>> raise InvalidStateError("Production run", 7, "completed", "execute")
        InvalidStateError: Cannot execute Production run 7: status is 'completed'
    """

    def __init__(self, entity: str, entity_id, current_state: str, operation: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current_state = current_state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity} {entity_id}: status is '{current_state}'"
        )


class InsufficientStock(ServiceError):
    """Raised when eligible stock does not cover a requested quantity."""

    def __init__(self, item_name: str, required: Number, available: Number):
        self.item_name = item_name
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_name}: "
            f"required {required}, available {available}"
        )


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class SkuAlreadyExists(ServiceError):
    """Raised when creating a material or product with a duplicate SKU."""

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU '{sku}' already exists")


class EntityInUse(ServiceError):
    """Raised when deleting a record that other records depend on.

    Example:
        >>> raise EntityInUse("raw material", 3, "used in a recipe")
        EntityInUse: Cannot delete raw material 3: used in a recipe
    """

    def __init__(self, entity: str, entity_id, reason: str):
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot delete {entity} {entity_id}: {reason}")


class DatabaseError(ServiceError):
    """Raised when the store rejects an operation (e.g. a conflicting write)."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
