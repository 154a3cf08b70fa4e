"""
Line-item price resolution against the feature catalog.

Precedence, most specific first:
1. a manual unit price supplied by the caller
2. a catalog row for (vehicle model, feature type)
3. a catalog row for (vehicle model, category) with no feature type

Anything else is a MissingPriceError naming the (model, category, type)
tuple. Catalog hits go through a process-wide read-through cache that the
catalog service invalidates per vehicle model on every price upsert.
"""

from time import monotonic
from dataclasses import dataclass, replace
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quotation_engine.config.settings import settings
from quotation_engine.models.catalog import FeatureCategory, FeaturePrice, FeatureType
from quotation_engine.models.quotation import PriceSource
from quotation_engine.services.exceptions import (
    MissingPriceError, NotFoundError, ValidationError
)
from quotation_engine.utils.logging import ServiceLogger
from quotation_engine.utils.money import MAX_MONEY, ZERO, fits_column, to_money

PriceKey = tuple[str, str | None, str | None]


@dataclass(frozen=True)
class ResolvedPrice:
    """Unit price for one line item and where it came from."""
    unit_price: Decimal
    source: PriceSource
    vehicle_model_id: str
    feature_category_id: str | None = None
    feature_type_id: str | None = None
    price_id: str | None = None


class PriceCache:
    """
    In-memory read-through cache of catalog prices.

    Keyed by (vehicle model, category, feature type). Entries expire after
    `ttl_seconds`; `invalidate` drops one vehicle model or everything.
    """

    def __init__(self, ttl_seconds: int = 300, max_entries: int = 10_000):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: dict[PriceKey, tuple[float, ResolvedPrice]] = {}

    def get(self, key: PriceKey) -> ResolvedPrice | None:
        item = self._entries.get(key)
        if item is None:
            return None
        stored_at, price = item
        if monotonic() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return price

    def set(self, key: PriceKey, price: ResolvedPrice) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            # Oldest insertion goes first
            self._entries.pop(next(iter(self._entries)))
        self._entries[key] = (monotonic(), price)

    def invalidate(self, vehicle_model_id: str | None = None) -> int:
        """Drop cached prices for one vehicle model, or all. Returns count."""
        if vehicle_model_id is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        stale = [key for key in self._entries if key[0] == vehicle_model_id]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


# Global price cache instance
price_cache = PriceCache(
    ttl_seconds=settings.quotation.price_cache_ttl_seconds,
    max_entries=settings.quotation.price_cache_max_entries,
)


class PriceResolver:
    """
    Resolves unit prices for catalog line items.

    One resolver is created per request; it memoizes its own answers so a
    request sees one consistent price per key even if the shared cache
    expires or is invalidated mid-request.
    """

    def __init__(self, session: AsyncSession, cache: PriceCache | None = None):
        self.session = session
        self.cache = cache if cache is not None else price_cache
        self.logger = ServiceLogger("price_resolver")
        self._resolved: dict[PriceKey, ResolvedPrice] = {}

    async def resolve(
        self,
        vehicle_model_id: str,
        category_id: str | None = None,
        feature_type_id: str | None = None,
        manual_price: object | None = None,
    ) -> ResolvedPrice:
        """
        Resolve the unit price for a catalog feature.

        Args:
            vehicle_model_id: Vehicle model being configured
            category_id: Feature category; derived from the type when omitted
            feature_type_id: Specific feature type, if any
            manual_price: Explicit price that always wins over the catalog

        Returns:
            ResolvedPrice with the unit price and its source

        Raises:
            ValidationError: No catalog reference, or a negative manual price
            NotFoundError: Unknown feature type
            MissingPriceError: No catalog match and no manual price
        """
        if category_id is None and feature_type_id is None:
            raise ValidationError(
                "A catalog feature needs a feature type or a category",
                vehicle_model_id=vehicle_model_id,
            )

        if category_id is None:
            category_id = await self.category_for_type(feature_type_id)

        if manual_price is not None:
            return ResolvedPrice(
                unit_price=self.validate_unit_price(manual_price),
                source=PriceSource.MANUAL,
                vehicle_model_id=vehicle_model_id,
                feature_category_id=category_id,
                feature_type_id=feature_type_id,
            )

        key: PriceKey = (vehicle_model_id, category_id, feature_type_id)
        if key in self._resolved:
            return self._resolved[key]

        price = self.cache.get(key)
        if price is None:
            price = await self._lookup(vehicle_model_id, category_id, feature_type_id)
            self.cache.set(key, price)

        self._resolved[key] = price
        return price

    async def category_for_type(self, feature_type_id: str) -> str:
        feature_type = await self.session.get(FeatureType, feature_type_id)
        if not feature_type:
            raise NotFoundError("FeatureType", feature_type_id)
        return feature_type.category_id

    async def feature_name(self, category_id: str | None, feature_type_id: str | None) -> str:
        """Display name for a catalog line item."""
        if feature_type_id:
            feature_type = await self.session.get(FeatureType, feature_type_id)
            if feature_type:
                return feature_type.name
        if category_id:
            category = await self.session.get(FeatureCategory, category_id)
            if category:
                return category.name
        return "Feature"

    @staticmethod
    def validate_unit_price(value: object) -> Decimal:
        try:
            price = to_money(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Unit price is not a number: {value!r}", unit_price=value) from None
        if price < ZERO:
            raise ValidationError("Unit price must not be negative", unit_price=price)
        if not fits_column(price):
            raise ValidationError(f"Unit price must not exceed {MAX_MONEY}", unit_price=price)
        return price

    async def _lookup(
        self,
        vehicle_model_id: str,
        category_id: str,
        feature_type_id: str | None,
    ) -> ResolvedPrice:
        base = ResolvedPrice(
            unit_price=ZERO,
            source=PriceSource.CATEGORY,
            vehicle_model_id=vehicle_model_id,
            feature_category_id=category_id,
            feature_type_id=feature_type_id,
        )

        if feature_type_id:
            result = await self.session.execute(
                select(FeaturePrice)
                .where(
                    FeaturePrice.vehicle_model_id == vehicle_model_id,
                    FeaturePrice.feature_type_id == feature_type_id,
                )
                .limit(1)
            )
            row = result.scalar_one_or_none()
            if row:
                return replace(
                    base,
                    unit_price=to_money(row.price),
                    source=PriceSource.FEATURE_TYPE,
                    price_id=row.id,
                )

        result = await self.session.execute(
            select(FeaturePrice)
            .where(
                FeaturePrice.vehicle_model_id == vehicle_model_id,
                FeaturePrice.feature_category_id == category_id,
                FeaturePrice.feature_type_id.is_(None),
            )
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row:
            return replace(base, unit_price=to_money(row.price), price_id=row.id)

        self.logger.logger.warning(
            "price_missing",
            vehicle_model_id=vehicle_model_id,
            category_id=category_id,
            feature_type_id=feature_type_id,
        )
        raise MissingPriceError(vehicle_model_id, category_id, feature_type_id)
