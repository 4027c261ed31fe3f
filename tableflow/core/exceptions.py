"""
Error taxonomy for the coordination core.

Every failure a lifecycle, aggregator or processor operation can report is one
of these. They are raised to the immediate caller and never retried here.
"""

from typing import Any, Optional


class TableflowError(Exception):
    """
    Base class for all coordination errors.

    Attributes:
        message: Human readable description, safe to show on a toast
        code: Machine-readable error code
        details: Extra context (ids, statuses, amounts)
    """

    code = "tableflow_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_code": self.code,
            "error_message": self.message,
            "details": self.details,
        }


class ValidationError(TableflowError):
    """Malformed or insufficient input (empty item list, negative amounts...)."""

    code = "validation_error"


class NotFoundError(ValidationError):
    """A referenced table, order, item or reservation does not exist for the tenant."""

    code = "not_found"


class InvalidTransitionError(TableflowError):
    """A status change that the transition graph does not allow."""

    code = "invalid_transition"

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        current: Any,
        target: Any,
        message: Optional[str] = None,
    ):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            message or f"Cannot move {entity} {entity_id} from '{current_value}' to '{target_value}'",
            {"entity": entity, "id": entity_id, "current": current_value, "target": target_value},
        )
        self.current = current
        self.target = target


class InsufficientPaymentError(TableflowError):
    """Cash tendered is below the payable total."""

    code = "insufficient_payment"

    def __init__(self, total, received):
        super().__init__(
            f"Received amount {received} is below the total {total}",
            {"total": str(total), "received": str(received), "missing": str(total - received)},
        )
        self.total = total
        self.received = received


class EmptyBillError(TableflowError):
    """A table has no billable orders."""

    code = "empty_bill"


class StaleBillError(TableflowError):
    """The bill snapshot no longer matches the store; regenerate it."""

    code = "stale_bill"
