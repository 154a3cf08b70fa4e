"""
Quotation pricing engine.

Provides functionality for:
- Catalog price resolution with a read-through cache
- Base-total aggregation over line items
- Append-only discount ledger with approval workflow
- Immutable version snapshots and deterministic printing
- Manual final-total override
- The quotation status life cycle
"""

from quotation_engine.services.quotation.catalog_service import CatalogService
from quotation_engine.services.quotation.price_resolver import (
    PriceCache,
    PriceResolver,
    ResolvedPrice,
    price_cache,
)
from quotation_engine.services.quotation.aggregator import QuotationAggregator
from quotation_engine.services.quotation.discount_ledger import (
    DiscountBreakdown,
    DiscountLedger,
    fold_discounts,
)
from quotation_engine.services.quotation.version_store import VersionStore
from quotation_engine.services.quotation.manual_override import ManualOverrideService
from quotation_engine.services.quotation.print_service import PrintService
from quotation_engine.services.quotation.quotation_service import (
    FeatureInput,
    QuotationService,
)

__all__ = [
    "CatalogService",
    "PriceCache",
    "PriceResolver",
    "ResolvedPrice",
    "price_cache",
    "QuotationAggregator",
    "DiscountBreakdown",
    "DiscountLedger",
    "fold_discounts",
    "VersionStore",
    "ManualOverrideService",
    "PrintService",
    "FeatureInput",
    "QuotationService",
]
