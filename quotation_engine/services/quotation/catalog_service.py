"""
Feature catalog service.

Read surface for categories, feature types and prices, plus the price upsert
the pricing-admin surface pushes. Every upsert drops the cached prices for
that vehicle model, once on flush and again when the transaction commits.
"""

from decimal import Decimal

from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession

from quotation_engine.database.base import new_id
from quotation_engine.models.catalog import FeatureCategory, FeaturePrice, FeatureType
from quotation_engine.services.exceptions import NotFoundError, ValidationError
from quotation_engine.services.quotation.price_resolver import (
    PriceCache, PriceResolver, price_cache
)
from quotation_engine.utils.logging import ServiceLogger, audit_logger


class CatalogService:
    """
    Service for the feature catalog.

    Provides:
    - Category and feature type creation and listing
    - Price upsert with cache invalidation
    - Price listing per vehicle model
    """

    def __init__(self, session: AsyncSession, cache: PriceCache | None = None):
        self.session = session
        self.cache = cache if cache is not None else price_cache
        self.logger = ServiceLogger("catalog")

    async def create_category(
        self,
        name: str,
        description: str | None = None,
        parent_id: str | None = None,
    ) -> FeatureCategory:
        if not name or not name.strip():
            raise ValidationError("Category name is required")
        if parent_id:
            await self.get_category(parent_id)

        category = FeatureCategory(
            id=new_id(),
            name=name.strip(),
            description=description,
            parent_id=parent_id,
        )
        self.session.add(category)
        await self.session.flush()
        return category

    async def get_category(self, category_id: str) -> FeatureCategory:
        category = await self.session.get(FeatureCategory, category_id)
        if not category:
            raise NotFoundError("FeatureCategory", category_id)
        return category

    async def list_categories(self, parent_id: str | None = None) -> list[FeatureCategory]:
        query = select(FeatureCategory).order_by(FeatureCategory.name)
        if parent_id:
            query = query.where(FeatureCategory.parent_id == parent_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_feature_type(
        self,
        name: str,
        category_id: str,
        description: str | None = None,
    ) -> FeatureType:
        if not name or not name.strip():
            raise ValidationError("Feature type name is required")
        await self.get_category(category_id)

        feature_type = FeatureType(
            id=new_id(),
            name=name.strip(),
            description=description,
            category_id=category_id,
        )
        self.session.add(feature_type)
        await self.session.flush()
        return feature_type

    async def list_feature_types(self, category_id: str | None = None) -> list[FeatureType]:
        query = select(FeatureType).order_by(FeatureType.name)
        if category_id:
            query = query.where(FeatureType.category_id == category_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def upsert_price(
        self,
        vehicle_model_id: str,
        price: object,
        feature_category_id: str | None = None,
        feature_type_id: str | None = None,
        actor: str | None = None,
    ) -> FeaturePrice:
        """
        Create or replace the catalog price for one key.

        Args:
            vehicle_model_id: Vehicle model the price applies to
            price: Unit price (>= 0)
            feature_category_id: Category; taken from the type when omitted
            feature_type_id: Narrows the price to one feature type

        Returns:
            The stored FeaturePrice
        """
        if not vehicle_model_id:
            raise ValidationError("vehicle_model_id is required")
        amount = PriceResolver.validate_unit_price(price)

        if feature_type_id:
            feature_type = await self.session.get(FeatureType, feature_type_id)
            if not feature_type:
                raise NotFoundError("FeatureType", feature_type_id)
            if feature_category_id and feature_category_id != feature_type.category_id:
                raise ValidationError(
                    "Feature type does not belong to the given category",
                    feature_type_id=feature_type_id,
                    feature_category_id=feature_category_id,
                )
            feature_category_id = feature_type.category_id
        elif feature_category_id:
            await self.get_category(feature_category_id)
        else:
            raise ValidationError("A price needs a feature_category_id or a feature_type_id")

        query = select(FeaturePrice).where(
            FeaturePrice.vehicle_model_id == vehicle_model_id,
            FeaturePrice.feature_category_id == feature_category_id,
        )
        if feature_type_id:
            query = query.where(FeaturePrice.feature_type_id == feature_type_id)
        else:
            query = query.where(FeaturePrice.feature_type_id.is_(None))
        row = (await self.session.execute(query)).scalar_one_or_none()

        old_price: Decimal | None = None
        if row:
            old_price = row.price
            row.price = amount
        else:
            row = FeaturePrice(
                id=new_id(),
                vehicle_model_id=vehicle_model_id,
                feature_category_id=feature_category_id,
                feature_type_id=feature_type_id,
                price=amount,
            )
            self.session.add(row)
        await self.session.flush()

        dropped = self.cache.invalidate(vehicle_model_id)
        # Readers may re-cache the old committed price until this commits
        event.listen(
            self.session.sync_session,
            "after_commit",
            lambda _session: self.cache.invalidate(vehicle_model_id),
            once=True,
        )
        self.logger.log_operation_complete(
            "upsert_price",
            vehicle_model_id=vehicle_model_id,
            feature_category_id=feature_category_id,
            feature_type_id=feature_type_id,
            cache_entries_dropped=dropped,
        )
        audit_logger.log_action(
            action="upsert_price",
            actor_id=actor,
            resource_type="feature_price",
            resource_id=row.id,
            old_values={"price": str(old_price)} if old_price is not None else None,
            new_values={"price": str(amount)},
        )
        return row

    async def list_prices(self, vehicle_model_id: str | None = None) -> list[FeaturePrice]:
        query = select(FeaturePrice).order_by(
            FeaturePrice.vehicle_model_id,
            FeaturePrice.feature_category_id,
            FeaturePrice.feature_type_id,
        )
        if vehicle_model_id:
            query = query.where(FeaturePrice.vehicle_model_id == vehicle_model_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())
