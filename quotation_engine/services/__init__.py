"""
Services module for the Quotation Engine.

Contains the pricing, discount, versioning and life cycle logic plus the
clients for external collaborators.
"""

from quotation_engine.services.exceptions import (
    QuotationEngineError,
    ValidationError,
    NotFoundError,
    InvalidStateError,
    MissingPriceError,
    ConcurrencyConflictError,
    AuthorizationError,
)

__all__ = [
    "QuotationEngineError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "MissingPriceError",
    "ConcurrencyConflictError",
    "AuthorizationError",
]
