"""
Feature catalog API routes.
"""

from decimal import Decimal

from fastapi import APIRouter, status
from pydantic import BaseModel

from quotation_engine.api.dependencies import ActorDep, DatabaseDep
from quotation_engine.schemas import (
    FeatureCategoryResponse, FeaturePriceResponse, FeatureTypeResponse,
    ResolvedPriceResponse
)
from quotation_engine.services.quotation import CatalogService, PriceResolver

router = APIRouter()


# Schemas
class CategoryCreate(BaseModel):
    name: str
    description: str | None = None
    parent_id: str | None = None


class FeatureTypeCreate(BaseModel):
    name: str
    category_id: str
    description: str | None = None


class PriceUpsert(BaseModel):
    vehicle_model_id: str
    price: Decimal
    feature_category_id: str | None = None
    feature_type_id: str | None = None


# Category endpoints
@router.get("/categories", response_model=list[FeatureCategoryResponse])
async def list_categories(db: DatabaseDep, actor: ActorDep, parent_id: str | None = None):
    service = CatalogService(db)
    return [FeatureCategoryResponse.model_validate(c) for c in await service.list_categories(parent_id)]


@router.post(
    "/categories",
    response_model=FeatureCategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_category(body: CategoryCreate, db: DatabaseDep, actor: ActorDep):
    service = CatalogService(db)
    category = await service.create_category(
        name=body.name,
        description=body.description,
        parent_id=body.parent_id,
    )
    return FeatureCategoryResponse.model_validate(category)


# Feature type endpoints
@router.get("/types", response_model=list[FeatureTypeResponse])
async def list_feature_types(db: DatabaseDep, actor: ActorDep, category_id: str | None = None):
    service = CatalogService(db)
    return [FeatureTypeResponse.model_validate(t) for t in await service.list_feature_types(category_id)]


@router.post(
    "/types",
    response_model=FeatureTypeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_feature_type(body: FeatureTypeCreate, db: DatabaseDep, actor: ActorDep):
    service = CatalogService(db)
    feature_type = await service.create_feature_type(
        name=body.name,
        category_id=body.category_id,
        description=body.description,
    )
    return FeatureTypeResponse.model_validate(feature_type)


# Price endpoints
@router.get("/prices", response_model=list[FeaturePriceResponse])
async def list_prices(db: DatabaseDep, actor: ActorDep, vehicle_model_id: str | None = None):
    service = CatalogService(db)
    return [FeaturePriceResponse.model_validate(p) for p in await service.list_prices(vehicle_model_id)]


@router.put("/prices", response_model=FeaturePriceResponse)
async def upsert_price(body: PriceUpsert, db: DatabaseDep, actor: ActorDep):
    """Create or replace a catalog price; drops cached prices for the model."""
    service = CatalogService(db)
    price = await service.upsert_price(
        vehicle_model_id=body.vehicle_model_id,
        price=body.price,
        feature_category_id=body.feature_category_id,
        feature_type_id=body.feature_type_id,
        actor=actor,
    )
    return FeaturePriceResponse.model_validate(price)


@router.get("/prices/resolve", response_model=ResolvedPriceResponse)
async def resolve_price(
    vehicle_model_id: str,
    db: DatabaseDep,
    actor: ActorDep,
    feature_category_id: str | None = None,
    feature_type_id: str | None = None,
):
    """Resolve the unit price the engine would use for a catalog feature."""
    resolver = PriceResolver(db)
    resolved = await resolver.resolve(
        vehicle_model_id,
        category_id=feature_category_id,
        feature_type_id=feature_type_id,
    )
    return ResolvedPriceResponse.model_validate(resolved)
