"""
Data models for the Quotation Engine.

This module provides SQLAlchemy ORM models for:
- Feature catalog (categories, types, per-vehicle-model prices)
- Quotations with line items
- Discount, version and override ledgers
"""

from quotation_engine.models.catalog import (
    FeatureCategory,
    FeatureType,
    FeaturePrice,
)

from quotation_engine.models.quotation import (
    Quotation,
    QuotationLineItem,
    DiscountEntry,
    QuotationVersion,
    OverrideRecord,
    QuotationStatus,
    DiscountMode,
    DiscountStatus,
    PriceSource,
    FinalTotalSource,
)

__all__ = [
    # Catalog
    "FeatureCategory",
    "FeatureType",
    "FeaturePrice",
    # Quotation
    "Quotation",
    "QuotationLineItem",
    "DiscountEntry",
    "QuotationVersion",
    "OverrideRecord",
    "QuotationStatus",
    "DiscountMode",
    "DiscountStatus",
    "PriceSource",
    "FinalTotalSource",
]
