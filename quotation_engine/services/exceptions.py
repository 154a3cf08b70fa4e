"""
Quotation engine errors.

Every error carries a machine-readable kind, a message and a context dict,
and is returned to the caller as {kind, message, context}.
"""

from typing import Any


class QuotationEngineError(Exception):
    """Base class for all engine errors."""

    kind = "engine_error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
        }


class ValidationError(QuotationEngineError):
    """Bad discount value, non-positive quantity, out-of-range percent, ..."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(QuotationEngineError):
    """Quotation, line item, discount or version absent."""

    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: str, **context: Any):
        super().__init__(
            f"{resource} not found: {resource_id}",
            resource=resource,
            resource_id=resource_id,
            **context,
        )


class InvalidStateError(QuotationEngineError):
    """Illegal status or discount-resolution transition."""

    kind = "invalid_state"
    status_code = 409

    def __init__(self, current_status: Any, attempted_action: str, message: str | None = None, **context: Any):
        current = getattr(current_status, "value", current_status)
        super().__init__(
            message or f"Cannot {attempted_action} while {current}",
            current_status=current,
            attempted_action=attempted_action,
            **context,
        )
        self.current_status = current
        self.attempted_action = attempted_action


class MissingPriceError(QuotationEngineError):
    """No catalog match and no manual price."""

    kind = "missing_price"
    status_code = 422

    def __init__(self, vehicle_model_id: str, category_id: str | None, feature_type_id: str | None):
        super().__init__(
            "No catalog price for "
            f"(model={vehicle_model_id}, category={category_id}, type={feature_type_id})",
            vehicle_model_id=vehicle_model_id,
            category_id=category_id,
            feature_type_id=feature_type_id,
        )


class ConcurrencyConflictError(QuotationEngineError):
    """Another writer changed the quotation between read and write."""

    kind = "concurrency_conflict"
    status_code = 409


class AuthorizationError(QuotationEngineError):
    """Rejected by the external auth collaborator."""

    kind = "authorization_error"
    status_code = 401


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)
