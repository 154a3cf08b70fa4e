"""
Feature catalog models.

The catalog is maintained by the pricing-admin surface. The quotation engine
reads it to resolve line-item prices: a price row is keyed by vehicle model
and feature category, and optionally narrowed to one feature type.
"""

from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from quotation_engine.database.base import Base


class FeatureCategory(Base):
    """
    Group of interchangeable body-building features (e.g. "Flooring").

    Categories nest one level: a parent groups related child categories in
    the configurator.
    """

    __tablename__ = "feature_categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    parent_id: Mapped[str | None] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("feature_categories.id", ondelete="SET NULL"),
        index=True,
    )


class FeatureType(Base):
    """A concrete selectable feature within a category."""

    __tablename__ = "feature_types"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("feature_categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class FeaturePrice(Base):
    """
    Catalog price for a feature on one vehicle model.

    Rows with a feature type are type-specific; rows without one price the
    whole category for that model.
    """

    __tablename__ = "feature_prices"

    # Vehicle models live in the external vehicle catalog
    vehicle_model_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    feature_category_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("feature_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    feature_type_id: Mapped[str | None] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("feature_types.id", ondelete="CASCADE"),
    )
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "vehicle_model_id",
            "feature_category_id",
            "feature_type_id",
            name="uq_feature_price_key",
        ),
    )
