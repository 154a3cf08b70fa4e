"""
Quotation models.

A quotation owns its line items plus three append-only ledgers: discount
entries, version snapshots and manual overrides. Totals on the quotation row
are caches derived from the line items and approved discounts; the ledgers
are the system of record.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON, Date, DateTime, Enum as SQLEnum, ForeignKey,
    Integer, Numeric, String, Text, UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column

from quotation_engine.database.base import Base


class QuotationStatus(str, Enum):
    """Quotation life cycle status."""
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONVERTED = "converted"


class DiscountMode(str, Enum):
    """How a discount value is applied to the running total."""
    AMOUNT = "amount"
    PERCENT = "percent"


class DiscountStatus(str, Enum):
    """Discount approval status. Resolved exactly once."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PriceSource(str, Enum):
    """Where a line item's unit price came from."""
    MANUAL = "manual"
    FEATURE_TYPE = "feature_type"
    CATEGORY = "category"


class FinalTotalSource(str, Enum):
    """What last set the quotation's final total."""
    APPROVAL = "approval"
    OVERRIDE = "override"


class Quotation(Base):
    """
    Priced vehicle configuration awaiting approval.

    Created from a configurator submission, never physically deleted.
    `row_version` is checked on every flush so concurrent writers on one
    quotation cannot both commit.
    """

    __tablename__ = "quotations"

    # Identification
    quotation_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    quotation_date: Mapped[date] = mapped_column(Date, default=date.today)

    # Vehicle (external vehicle catalog references)
    vehicle_maker_id: Mapped[str | None] = mapped_column(String(64))
    vehicle_model_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vehicle_number: Mapped[str | None] = mapped_column(String(50))

    # Customer reference plus the details as quoted
    customer_id: Mapped[str | None] = mapped_column(String(64), index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(50))
    customer_email: Mapped[str | None] = mapped_column(String(255))
    customer_address: Mapped[str | None] = mapped_column(Text)

    # Status
    status: Mapped[QuotationStatus] = mapped_column(
        SQLEnum(QuotationStatus),
        default=QuotationStatus.DRAFT,
        index=True,
    )

    # Totals. base/discounted are derived caches; final is a decision.
    base_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0.00"))
    discounted_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0.00"))
    final_total: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    final_total_source: Mapped[FinalTotalSource | None] = mapped_column(SQLEnum(FinalTotalSource))
    approved_discounted_total: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))

    # Workflow
    created_by: Mapped[str | None] = mapped_column(String(64))
    submitted_by: Mapped[str | None] = mapped_column(String(64))
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime)
    approved_by: Mapped[str | None] = mapped_column(String(64))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime)
    rejected_by: Mapped[str | None] = mapped_column(String(64))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime)
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    converted_by: Mapped[str | None] = mapped_column(String(64))
    converted_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Work order hand-off; unique so a quotation yields at most one
    work_order_id: Mapped[str | None] = mapped_column(String(64), unique=True)

    # Ledger counters, incremented under the quotation lock
    line_count: Mapped[int] = mapped_column(Integer, default=0)
    discount_count: Mapped[int] = mapped_column(Integer, default=0)
    last_version_number: Mapped[int] = mapped_column(Integer, default=0)

    # Optimistic concurrency
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": row_version}

    @property
    def total_discount(self) -> Decimal:
        return self.base_total - self.discounted_total

    @property
    def display_total(self) -> Decimal:
        """The actual price: the decided final total, else the computed one."""
        if self.final_total is not None:
            return self.final_total
        return self.discounted_total


class QuotationLineItem(Base):
    """
    One quoted feature.

    Either references the catalog (feature type and/or category) or is a
    custom item with a free-text name.
    """

    __tablename__ = "quotation_line_items"

    quotation_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Catalog reference
    feature_type_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False))
    feature_category_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False))

    # Custom item (when not linked to catalog)
    custom_name: Mapped[str | None] = mapped_column(String(255))

    # Display name as quoted
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Quantity and pricing
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    price_source: Mapped[PriceSource] = mapped_column(
        SQLEnum(PriceSource),
        default=PriceSource.MANUAL,
    )

    __table_args__ = (
        UniqueConstraint("quotation_id", "line_number", name="uq_quotation_line_number"),
    )


class DiscountEntry(Base):
    """
    Proposed price reduction.

    Always created pending; approved or rejected exactly once. Never
    deleted. Approved entries fold into the discounted total in `sequence`
    order.
    """

    __tablename__ = "quotation_discounts"

    quotation_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    mode: Mapped[DiscountMode] = mapped_column(SQLEnum(DiscountMode), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    status: Mapped[DiscountStatus] = mapped_column(
        SQLEnum(DiscountStatus),
        default=DiscountStatus.PENDING,
        index=True,
    )
    note: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(64))
    approved_by: Mapped[str | None] = mapped_column(String(64))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime)
    rejected_by: Mapped[str | None] = mapped_column(String(64))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        UniqueConstraint("quotation_id", "sequence", name="uq_quotation_discount_sequence"),
    )


class QuotationVersion(Base):
    """
    Immutable numbered snapshot of a quotation's totals.

    The system of record for reprinting: `snapshot` freezes the line items
    and header as they were, so reprints never read live rows.
    """

    __tablename__ = "quotation_versions"

    quotation_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    base_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    discount_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    discounted_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    # The adjustment applied on top of the live discounted total
    adjustment_mode: Mapped[DiscountMode] = mapped_column(SQLEnum(DiscountMode), nullable=False)
    adjustment_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    note: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(64))

    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("quotation_id", "version_number", name="uq_quotation_version_number"),
    )


class OverrideRecord(Base):
    """Audit record of a manual final-total override."""

    __tablename__ = "quotation_overrides"

    quotation_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    old_final_total: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    new_final_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    actor: Mapped[str | None] = mapped_column(String(64))
