"""Domain errors for stock inventory operations."""


class StockError(Exception):
    """Base class for stock domain errors."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SchemaError(StockError):
    """Required columns could not be resolved from a CSV header."""
    status_code = 400


class RowValidationError(StockError):
    status_code = 400


class DuplicateUnitError(StockError):
    """Engine or chassis number already held by another unit."""
    status_code = 409


class StateConflictError(StockError):
    """Operation not allowed in the unit's current state."""
    status_code = 409


class NotFoundError(StockError):
    status_code = 404
