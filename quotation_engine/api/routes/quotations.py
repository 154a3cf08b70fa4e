"""
Quotation API routes.
"""

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Query, status
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from quotation_engine.api.dependencies import ActorDep, DatabaseDep, WorkOrderGatewayDep
from quotation_engine.models.quotation import DiscountMode, Quotation, QuotationStatus
from quotation_engine.schemas import (
    DiscountListResponse, DiscountResponse, LineItemResponse, OverrideResponse,
    PaginatedResponse, QuotationResponse, QuotationSummaryResponse, VersionResponse
)
from quotation_engine.services.integrations.work_order_client import WorkOrderParams
from quotation_engine.services.quotation import FeatureInput, ManualOverrideService, QuotationService
from quotation_engine.services.quotation.status_machine import allowed_actions

router = APIRouter()


# Schemas
class FeatureCreate(BaseModel):
    feature_type_id: str | None = None
    feature_category_id: str | None = None
    custom_name: str | None = None
    quantity: int = 1
    unit_price: Decimal | None = None

    def to_input(self) -> FeatureInput:
        return FeatureInput(
            feature_type_id=self.feature_type_id,
            feature_category_id=self.feature_category_id,
            custom_name=self.custom_name,
            quantity=self.quantity,
            unit_price=self.unit_price,
        )


class FeatureUpdate(BaseModel):
    quantity: int | None = None
    unit_price: Decimal | None = None


class QuotationCreate(BaseModel):
    vehicle_model_id: str
    customer_name: str
    vehicle_maker_id: str | None = None
    vehicle_number: str | None = None
    customer_id: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
    customer_address: str | None = None
    quotation_date: date | None = None
    features: list[FeatureCreate] = []


class DiscountCreate(BaseModel):
    mode: DiscountMode
    value: Decimal
    note: str | None = None


class VersionCreate(BaseModel):
    mode: DiscountMode = DiscountMode.AMOUNT
    value: Decimal = Decimal("0")
    note: str | None = None


class ApproveRequest(BaseModel):
    final_total: Decimal | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class OverrideRequest(BaseModel):
    final_total: Decimal
    note: str | None = None


class ConvertRequest(BaseModel):
    appointment_date: date | None = None
    estimated_completion_days: int | None = Field(None, ge=0)
    booking_amount: Decimal | None = Field(None, ge=0)
    notes: str | None = None


async def _detail(service: QuotationService, quotation: Quotation) -> QuotationResponse:
    line_items = await service.aggregator.line_items(quotation.id)
    return QuotationResponse.model_validate(quotation).model_copy(update={
        "line_items": [LineItemResponse.model_validate(item) for item in line_items],
        "allowed_actions": [action.value for action in allowed_actions(quotation.status)],
        "divergence": ManualOverrideService.divergence(quotation),
    })


# Quotation endpoints
@router.get("", response_model=PaginatedResponse)
async def list_quotations(
    db: DatabaseDep,
    actor: ActorDep,
    status_filter: QuotationStatus | None = Query(None, alias="status"),
    search: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List quotations with optional filtering."""
    service = QuotationService(db)
    quotations, total = await service.list_quotations(
        status=status_filter,
        search=search,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )

    return PaginatedResponse(
        items=[QuotationSummaryResponse.model_validate(q) for q in quotations],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=QuotationResponse, status_code=status.HTTP_201_CREATED)
async def create_quotation(body: QuotationCreate, db: DatabaseDep, actor: ActorDep):
    """Create a draft quotation from a configurator submission."""
    service = QuotationService(db)
    quotation = await service.create_quotation(
        vehicle_model_id=body.vehicle_model_id,
        customer_name=body.customer_name,
        vehicle_maker_id=body.vehicle_maker_id,
        vehicle_number=body.vehicle_number,
        customer_id=body.customer_id,
        customer_phone=body.customer_phone,
        customer_email=body.customer_email,
        customer_address=body.customer_address,
        quotation_date=body.quotation_date,
        features=[feature.to_input() for feature in body.features],
        created_by=actor,
    )
    return await _detail(service, quotation)


@router.get("/{quotation_id}", response_model=QuotationResponse)
async def get_quotation(quotation_id: str, db: DatabaseDep, actor: ActorDep):
    """Get a quotation with its totals and line items."""
    service = QuotationService(db)
    quotation = await service.get_quotation(quotation_id)
    return await _detail(service, quotation)


# Line item endpoints
@router.post(
    "/{quotation_id}/features",
    response_model=QuotationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_feature(quotation_id: str, body: FeatureCreate, db: DatabaseDep, actor: ActorDep):
    """Add a feature and recompute the base total."""
    service = QuotationService(db)
    await service.add_feature(quotation_id, body.to_input(), actor=actor)
    return await _detail(service, await service.get_quotation(quotation_id))


@router.patch("/{quotation_id}/features/{line_id}", response_model=QuotationResponse)
async def update_feature(
    quotation_id: str,
    line_id: str,
    body: FeatureUpdate,
    db: DatabaseDep,
    actor: ActorDep,
):
    """Edit a line item's quantity and/or unit price."""
    service = QuotationService(db)
    await service.update_feature(
        quotation_id,
        line_id,
        quantity=body.quantity,
        unit_price=body.unit_price,
        actor=actor,
    )
    return await _detail(service, await service.get_quotation(quotation_id))


@router.delete("/{quotation_id}/features/{line_id}", response_model=QuotationResponse)
async def remove_feature(quotation_id: str, line_id: str, db: DatabaseDep, actor: ActorDep):
    """Remove a line item and recompute the base total."""
    service = QuotationService(db)
    quotation = await service.remove_feature(quotation_id, line_id, actor=actor)
    return await _detail(service, quotation)


# Discount endpoints
@router.get("/{quotation_id}/discounts", response_model=DiscountListResponse)
async def list_discounts(quotation_id: str, db: DatabaseDep, actor: ActorDep):
    """All discount entries with the current discounted total."""
    service = QuotationService(db)
    entries, breakdown = await service.discount_summary(quotation_id)
    return DiscountListResponse(
        items=[DiscountResponse.model_validate(entry) for entry in entries],
        base_total=breakdown.base_total,
        total_discount=breakdown.total_discount,
        discounted_total=breakdown.discounted_total,
    )


@router.post(
    "/{quotation_id}/discounts",
    response_model=DiscountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_discount(quotation_id: str, body: DiscountCreate, db: DatabaseDep, actor: ActorDep):
    """Propose a discount. It stays pending until approved."""
    service = QuotationService(db)
    entry = await service.add_discount(
        quotation_id,
        body.mode,
        body.value,
        note=body.note,
        actor=actor,
    )
    return DiscountResponse.model_validate(entry)


@router.post("/{quotation_id}/discounts/{discount_id}/approve", response_model=DiscountResponse)
async def approve_discount(quotation_id: str, discount_id: str, db: DatabaseDep, actor: ActorDep):
    service = QuotationService(db)
    entry = await service.approve_discount(quotation_id, discount_id, actor=actor)
    return DiscountResponse.model_validate(entry)


@router.post("/{quotation_id}/discounts/{discount_id}/reject", response_model=DiscountResponse)
async def reject_discount(quotation_id: str, discount_id: str, db: DatabaseDep, actor: ActorDep):
    service = QuotationService(db)
    entry = await service.reject_discount(quotation_id, discount_id, actor=actor)
    return DiscountResponse.model_validate(entry)


# Version endpoints
@router.post(
    "/{quotation_id}/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_version(quotation_id: str, body: VersionCreate, db: DatabaseDep, actor: ActorDep):
    """Freeze the current totals as a new numbered version."""
    service = QuotationService(db)
    version = await service.create_version(
        quotation_id,
        body.mode,
        body.value,
        note=body.note,
        actor=actor,
    )
    return VersionResponse.model_validate(version)


@router.get("/{quotation_id}/versions", response_model=list[VersionResponse])
async def list_versions(quotation_id: str, db: DatabaseDep, actor: ActorDep):
    service = QuotationService(db)
    versions = await service.list_versions(quotation_id)
    return [VersionResponse.model_validate(v) for v in versions]


@router.get("/{quotation_id}/print", response_class=HTMLResponse)
async def print_quotation(
    quotation_id: str,
    db: DatabaseDep,
    actor: ActorDep,
    version_id: str | None = None,
):
    """Printable document for a frozen version, or the live quotation."""
    service = QuotationService(db)
    return HTMLResponse(await service.print_document(quotation_id, version_id=version_id))


# Status endpoints
@router.post("/{quotation_id}/submit_for_review", response_model=QuotationResponse)
async def submit_for_review(quotation_id: str, db: DatabaseDep, actor: ActorDep):
    service = QuotationService(db)
    quotation = await service.submit_for_review(quotation_id, actor=actor)
    return await _detail(service, quotation)


@router.post("/{quotation_id}/approve", response_model=QuotationResponse)
async def approve_quotation(
    quotation_id: str,
    db: DatabaseDep,
    actor: ActorDep,
    body: ApproveRequest | None = None,
):
    """Approve a quotation; the final total defaults to the discounted total."""
    service = QuotationService(db)
    quotation = await service.approve(
        quotation_id,
        final_total=body.final_total if body else None,
        actor=actor,
    )
    return await _detail(service, quotation)


@router.post("/{quotation_id}/reject", response_model=QuotationResponse)
async def reject_quotation(
    quotation_id: str,
    db: DatabaseDep,
    actor: ActorDep,
    body: RejectRequest | None = None,
):
    service = QuotationService(db)
    quotation = await service.reject(
        quotation_id,
        reason=body.reason if body else None,
        actor=actor,
    )
    return await _detail(service, quotation)


@router.post("/{quotation_id}/manual_override", response_model=QuotationResponse)
async def manual_override(quotation_id: str, body: OverrideRequest, db: DatabaseDep, actor: ActorDep):
    """Set the final total directly. The override is recorded."""
    service = QuotationService(db)
    await service.manual_override(quotation_id, body.final_total, note=body.note, actor=actor)
    return await _detail(service, await service.get_quotation(quotation_id))


@router.get("/{quotation_id}/overrides", response_model=list[OverrideResponse])
async def list_overrides(quotation_id: str, db: DatabaseDep, actor: ActorDep):
    service = QuotationService(db)
    records = await service.list_overrides(quotation_id)
    return [OverrideResponse.model_validate(r) for r in records]


@router.post("/{quotation_id}/convert", response_model=QuotationResponse)
async def convert_quotation(
    quotation_id: str,
    db: DatabaseDep,
    actor: ActorDep,
    gateway: WorkOrderGatewayDep,
    body: ConvertRequest | None = None,
):
    """Hand an approved quotation to the work order subsystem."""
    service = QuotationService(db)
    body = body or ConvertRequest()
    quotation = await service.convert(
        quotation_id,
        WorkOrderParams(
            appointment_date=body.appointment_date,
            estimated_completion_days=body.estimated_completion_days,
            booking_amount=body.booking_amount,
            notes=body.notes,
        ),
        gateway,
        actor=actor,
    )
    return await _detail(service, quotation)
