"""
Utility modules for the Quotation Engine.

Provides shared functionality across services:
- Fixed-point money helpers
- Token verification
- Structured logging
"""

from quotation_engine.utils.money import (
    CENT,
    ZERO,
    HUNDRED,
    to_decimal,
    to_money,
    percent_of,
    clamp_non_negative,
)
from quotation_engine.utils.security import create_access_token, decode_token
from quotation_engine.utils.logging import (
    setup_logging,
    get_logger,
    RequestLogger,
    AuditLogger,
    ServiceLogger,
    request_logger,
    audit_logger,
)

__all__ = [
    # Money
    "CENT",
    "ZERO",
    "HUNDRED",
    "to_decimal",
    "to_money",
    "percent_of",
    "clamp_non_negative",
    # Security
    "create_access_token",
    "decode_token",
    # Logging
    "setup_logging",
    "get_logger",
    "RequestLogger",
    "AuditLogger",
    "ServiceLogger",
    "request_logger",
    "audit_logger",
]
