"""
Pydantic schemas for API responses.

Money fields are Decimal and serialise as strings, so totals round-trip
without binary float drift.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from quotation_engine.models.quotation import (
    DiscountMode, DiscountStatus, FinalTotalSource, PriceSource, QuotationStatus
)


class ORMModel(BaseModel):
    """Response model readable straight from ORM rows."""
    model_config = ConfigDict(from_attributes=True)


# Base schemas
class PaginatedResponse(BaseModel):
    """Paginated list response."""
    items: list[Any]
    total: int
    limit: int
    offset: int


class ErrorResponse(BaseModel):
    """Error body returned for every engine error."""
    kind: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


# Quotation schemas
class LineItemResponse(ORMModel):
    """Quotation line item response."""
    id: str
    line_number: int
    feature_type_id: str | None
    feature_category_id: str | None
    custom_name: str | None
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    price_source: PriceSource


class QuotationSummaryResponse(ORMModel):
    """Quotation row in list results."""
    id: str
    quotation_number: str
    quotation_date: date | None
    vehicle_model_id: str
    vehicle_number: str | None
    customer_id: str | None
    customer_name: str
    customer_phone: str | None
    status: QuotationStatus
    base_total: Decimal
    discounted_total: Decimal
    final_total: Decimal | None
    display_total: Decimal
    created_at: datetime


class QuotationResponse(QuotationSummaryResponse):
    """Full quotation with totals, workflow stamps and line items."""
    vehicle_maker_id: str | None
    customer_email: str | None
    customer_address: str | None
    total_discount: Decimal
    final_total_source: FinalTotalSource | None
    approved_discounted_total: Decimal | None
    divergence: Decimal | None = None
    created_by: str | None
    submitted_by: str | None
    submitted_at: datetime | None
    approved_by: str | None
    approved_at: datetime | None
    rejected_by: str | None
    rejected_at: datetime | None
    rejection_reason: str | None
    converted_by: str | None
    converted_at: datetime | None
    work_order_id: str | None
    last_version_number: int
    row_version: int
    updated_at: datetime
    line_items: list[LineItemResponse] = Field(default_factory=list)
    allowed_actions: list[str] = Field(default_factory=list)


class DiscountResponse(ORMModel):
    """Discount ledger entry response."""
    id: str
    sequence: int
    mode: DiscountMode
    value: Decimal
    status: DiscountStatus
    note: str | None
    created_by: str | None
    created_at: datetime
    approved_by: str | None
    approved_at: datetime | None
    rejected_by: str | None
    rejected_at: datetime | None


class DiscountListResponse(BaseModel):
    """All discount entries plus the current fold of the approved ones."""
    items: list[DiscountResponse]
    base_total: Decimal
    total_discount: Decimal
    discounted_total: Decimal


class VersionResponse(ORMModel):
    """Frozen version snapshot response."""
    id: str
    version_number: int
    base_total: Decimal
    discount_total: Decimal
    discounted_total: Decimal
    adjustment_mode: DiscountMode
    adjustment_value: Decimal
    note: str | None
    created_by: str | None
    created_at: datetime


class OverrideResponse(ORMModel):
    """Manual override audit record."""
    id: str
    old_final_total: Decimal | None
    new_final_total: Decimal
    note: str | None
    actor: str | None
    timestamp: datetime = Field(validation_alias="created_at")


# Catalog schemas
class FeatureCategoryResponse(ORMModel):
    """Feature category response."""
    id: str
    name: str
    description: str | None
    parent_id: str | None


class FeatureTypeResponse(ORMModel):
    """Feature type response."""
    id: str
    name: str
    description: str | None
    category_id: str


class FeaturePriceResponse(ORMModel):
    """Catalog price response."""
    id: str
    vehicle_model_id: str
    feature_category_id: str
    feature_type_id: str | None
    price: Decimal
    updated_at: datetime


class ResolvedPriceResponse(ORMModel):
    """Result of a catalog price resolution."""
    unit_price: Decimal
    source: PriceSource
    vehicle_model_id: str
    feature_category_id: str | None
    feature_type_id: str | None
    price_id: str | None
