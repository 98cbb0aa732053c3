"""
Business-rule error taxonomy for the financial document engine.

Every error carries a human readable ``message`` that the API layer hands
back to the caller unchanged as ``{"error": message}``, plus a stable
``error_code`` and an HTTP status for the endpoint to use.
"""
from typing import Any, Dict, Optional


class FinanceError(Exception):
    """Base class for expected business-rule failures."""

    status_code: int = 400
    default_code: str = "FINANCE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(FinanceError):
    """Obviously invalid state that slipped past request validation."""
    status_code = 422
    default_code = "VALIDATION_ERROR"


class NotFoundError(FinanceError):
    """Entity missing, or owned by another team (never distinguished)."""
    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, entity: str, message: Optional[str] = None):
        self.entity = entity
        super().__init__(message or f"{entity} not found", details={"entity": entity})


class InvalidTransitionError(FinanceError):
    """Requested status change is not allowed from the current status."""
    status_code = 409
    default_code = "INVALID_TRANSITION"

    def __init__(
        self,
        current: str,
        requested: str,
        message: Optional[str] = None,
        document_type: Optional[str] = None,
    ):
        self.current = current
        self.requested = requested
        self.document_type = document_type
        super().__init__(
            message or f"Cannot change status from {current} to {requested}",
            details={"current": current, "requested": requested, "document_type": document_type},
        )


class BalanceExceededError(FinanceError):
    """An amount exceeds the balance available to absorb it."""
    status_code = 400
    default_code = "BALANCE_EXCEEDED"


class PeriodLockedError(FinanceError):
    """Mutation would touch a document dated inside a filed GST period."""
    status_code = 423
    default_code = "PERIOD_LOCKED"


class PermissionDeniedError(FinanceError):
    """Caller's team role is not allowed to perform the operation."""
    status_code = 403
    default_code = "PERMISSION_DENIED"


class ConcurrencyError(FinanceError):
    """The database reported a serialization or lock failure; retry the whole action."""
    status_code = 409
    default_code = "CONCURRENCY_CONFLICT"

    def __init__(self, message: str = "The record was modified concurrently. Please retry."):
        super().__init__(message)
