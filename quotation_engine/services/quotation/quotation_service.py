"""
Quotation management service.

Orchestrates pricing, discounts, versions, overrides and the status life
cycle. Every mutation follows one pattern inside the caller's transaction:

1. load the quotation locked (SELECT ... FOR UPDATE, fresh from the row)
2. check the status machine allows the action
3. write the change and recompute the cached totals
4. flush; the row-version check turns lost updates into a conflict
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from quotation_engine.config.settings import settings
from quotation_engine.database.base import new_id
from quotation_engine.models.quotation import (
    DiscountEntry, DiscountMode, FinalTotalSource, OverrideRecord, PriceSource,
    Quotation, QuotationLineItem, QuotationStatus, QuotationVersion
)
from quotation_engine.services.exceptions import (
    ConcurrencyConflictError, NotFoundError, ValidationError
)
from quotation_engine.services.integrations.work_order_client import (
    WorkOrderGateway, WorkOrderParams
)
from quotation_engine.services.quotation.aggregator import (
    QuotationAggregator, line_total, validate_quantity
)
from quotation_engine.services.quotation.discount_ledger import (
    DiscountBreakdown, DiscountLedger
)
from quotation_engine.services.quotation.manual_override import ManualOverrideService
from quotation_engine.services.quotation.price_resolver import PriceResolver
from quotation_engine.services.quotation.print_service import PrintService
from quotation_engine.services.quotation.status_machine import (
    QuotationAction, ensure_open, next_status
)
from quotation_engine.services.quotation.version_store import VersionStore
from quotation_engine.utils.logging import ServiceLogger, audit_logger
from quotation_engine.utils.money import MAX_MONEY, ZERO, fits_column, to_money


@dataclass
class FeatureInput:
    """A feature to quote: catalog reference or custom name."""
    feature_type_id: str | None = None
    feature_category_id: str | None = None
    custom_name: str | None = None
    quantity: object = 1
    unit_price: object | None = None

    @property
    def is_custom(self) -> bool:
        return not self.feature_type_id and not self.feature_category_id


class QuotationService:
    """
    Service for managing quotations.

    Provides:
    - Quotation creation, lookup and search
    - Line-item add/edit/remove with base-total recompute
    - Discount proposal and approval
    - Version snapshots and printing
    - Status transitions, manual override and work-order conversion
    """

    def __init__(self, session: AsyncSession, price_resolver: PriceResolver | None = None):
        self.session = session
        self.logger = ServiceLogger("quotation")
        self.prices = price_resolver or PriceResolver(session)
        self.aggregator = QuotationAggregator(session)
        self.ledger = DiscountLedger(session)
        self.versions = VersionStore(session)
        self.overrides = ManualOverrideService(session)
        self.printer = PrintService()

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    async def create_quotation(
        self,
        vehicle_model_id: str,
        customer_name: str,
        vehicle_maker_id: str | None = None,
        vehicle_number: str | None = None,
        customer_id: str | None = None,
        customer_phone: str | None = None,
        customer_email: str | None = None,
        customer_address: str | None = None,
        quotation_date: date | None = None,
        features: list[FeatureInput] | None = None,
        created_by: str | None = None,
    ) -> Quotation:
        """
        Create a draft quotation from a configurator submission.

        Args:
            vehicle_model_id: Vehicle model being configured
            customer_name: Customer name as quoted
            features: Initial features, each priced through the catalog

        Returns:
            Created Quotation with its base total computed once
        """
        self.logger.log_operation_start("create_quotation", vehicle_model_id=vehicle_model_id)

        if not vehicle_model_id:
            raise ValidationError("vehicle_model_id is required")
        if not customer_name or not customer_name.strip():
            raise ValidationError("customer_name is required")

        quotation = Quotation(
            id=new_id(),
            quotation_number=await self._generate_quotation_number(),
            quotation_date=quotation_date or date.today(),
            vehicle_maker_id=vehicle_maker_id,
            vehicle_model_id=vehicle_model_id,
            vehicle_number=vehicle_number,
            customer_id=customer_id,
            customer_name=customer_name.strip(),
            customer_phone=customer_phone,
            customer_email=customer_email,
            customer_address=customer_address,
            status=QuotationStatus.DRAFT,
            base_total=ZERO,
            discounted_total=ZERO,
            line_count=0,
            discount_count=0,
            last_version_number=0,
            created_by=created_by,
        )
        self.session.add(quotation)
        await self._flush()

        for feature in features or []:
            await self._add_line_item(quotation, feature)

        await self._recompute(quotation)
        await self._flush()

        self.logger.log_operation_complete(
            "create_quotation",
            quotation_id=quotation.id,
            quotation_number=quotation.quotation_number,
            base_total=str(quotation.base_total),
        )
        return quotation

    async def get_quotation(self, quotation_id: str) -> Quotation:
        result = await self.session.execute(
            select(Quotation)
            .where(Quotation.id == quotation_id)
            .execution_options(populate_existing=True)
        )
        quotation = result.scalar_one_or_none()
        if not quotation:
            raise NotFoundError("Quotation", quotation_id)
        return quotation

    async def list_quotations(
        self,
        status: QuotationStatus | None = None,
        search: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Quotation], int]:
        """
        Search quotations.

        Args:
            status: Filter by status
            search: Text search in number, customer name/phone, vehicle number
            date_from: Earliest quotation date
            date_to: Latest quotation date
            limit: Maximum results
            offset: Pagination offset

        Returns:
            Tuple of (quotations, total count)
        """
        conditions = []

        if status:
            conditions.append(Quotation.status == status)

        if search:
            search_pattern = f"%{search}%"
            conditions.append(
                or_(
                    Quotation.quotation_number.ilike(search_pattern),
                    Quotation.customer_name.ilike(search_pattern),
                    Quotation.customer_phone.ilike(search_pattern),
                    Quotation.vehicle_number.ilike(search_pattern),
                )
            )

        if date_from:
            conditions.append(Quotation.quotation_date >= date_from)

        if date_to:
            conditions.append(Quotation.quotation_date <= date_to)

        count_query = select(func.count(Quotation.id)).where(*conditions)
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            select(Quotation)
            .where(*conditions)
            .order_by(Quotation.created_at.desc(), Quotation.quotation_number.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    async def get_line_items(self, quotation_id: str) -> list[QuotationLineItem]:
        await self.get_quotation(quotation_id)
        return await self.aggregator.line_items(quotation_id)

    # ------------------------------------------------------------------
    # Line items
    # ------------------------------------------------------------------

    async def add_feature(
        self,
        quotation_id: str,
        feature: FeatureInput,
        actor: str | None = None,
    ) -> QuotationLineItem:
        """Add a line item and recompute the base total."""
        quotation = await self._lock(quotation_id)
        ensure_open(quotation.status, QuotationAction.ADD_FEATURE)

        item = await self._add_line_item(quotation, feature)
        await self._recompute(quotation)
        await self._flush()

        self.logger.log_operation_complete(
            "add_feature",
            quotation_id=quotation.id,
            line_id=item.id,
            total_price=str(item.total_price),
            base_total=str(quotation.base_total),
            actor=actor,
        )
        return item

    async def update_feature(
        self,
        quotation_id: str,
        line_id: str,
        quantity: object | None = None,
        unit_price: object | None = None,
        actor: str | None = None,
    ) -> QuotationLineItem:
        """Edit quantity and/or unit price. An edited price becomes manual."""
        quotation = await self._lock(quotation_id)
        ensure_open(quotation.status, QuotationAction.UPDATE_FEATURE)
        item = await self._get_line_item(quotation.id, line_id)

        new_quantity = item.quantity if quantity is None else validate_quantity(quantity)
        new_price = item.unit_price if unit_price is None else PriceResolver.validate_unit_price(unit_price)
        total_price = line_total(new_quantity, new_price)

        item.quantity = new_quantity
        if unit_price is not None:
            item.unit_price = new_price
            item.price_source = PriceSource.MANUAL
        item.total_price = total_price

        await self._recompute(quotation)
        await self._flush()

        self.logger.log_operation_complete(
            "update_feature",
            quotation_id=quotation.id,
            line_id=line_id,
            base_total=str(quotation.base_total),
            actor=actor,
        )
        return item

    async def remove_feature(self, quotation_id: str, line_id: str, actor: str | None = None) -> Quotation:
        quotation = await self._lock(quotation_id)
        ensure_open(quotation.status, QuotationAction.REMOVE_FEATURE)
        item = await self._get_line_item(quotation.id, line_id)

        await self.session.delete(item)
        await self._recompute(quotation)
        await self._flush()

        self.logger.log_operation_complete(
            "remove_feature",
            quotation_id=quotation.id,
            line_id=line_id,
            base_total=str(quotation.base_total),
            actor=actor,
        )
        return quotation

    # ------------------------------------------------------------------
    # Discounts
    # ------------------------------------------------------------------

    async def add_discount(
        self,
        quotation_id: str,
        mode: DiscountMode | str,
        value: object,
        note: str | None = None,
        actor: str | None = None,
    ) -> DiscountEntry:
        quotation = await self._lock(quotation_id)
        ensure_open(quotation.status, QuotationAction.ADD_DISCOUNT)

        entry = await self.ledger.add_discount(quotation, mode, value, note=note, created_by=actor)
        await self._flush()
        return entry

    async def approve_discount(self, quotation_id: str, discount_id: str, actor: str | None = None) -> DiscountEntry:
        """Approve a pending discount and fold it into the discounted total."""
        quotation = await self._lock(quotation_id)
        ensure_open(quotation.status, QuotationAction.APPROVE_DISCOUNT)

        entry = await self.ledger.approve(quotation, discount_id, actor)
        await self._recompute(quotation)
        await self._flush()
        return entry

    async def reject_discount(self, quotation_id: str, discount_id: str, actor: str | None = None) -> DiscountEntry:
        quotation = await self._lock(quotation_id)
        ensure_open(quotation.status, QuotationAction.REJECT_DISCOUNT)

        entry = await self.ledger.reject(quotation, discount_id, actor)
        await self._flush()
        return entry

    async def discount_summary(self, quotation_id: str) -> tuple[list[DiscountEntry], DiscountBreakdown]:
        """All entries plus the fold of the approved ones over the stored base."""
        quotation = await self.get_quotation(quotation_id)
        entries = await self.ledger.list_entries(quotation.id)
        breakdown = await self.ledger.compute_discounted_total(quotation.id, quotation.base_total)
        return entries, breakdown

    # ------------------------------------------------------------------
    # Versions and printing
    # ------------------------------------------------------------------

    async def create_version(
        self,
        quotation_id: str,
        mode: DiscountMode | str = DiscountMode.AMOUNT,
        value: object = 0,
        note: str | None = None,
        actor: str | None = None,
    ) -> QuotationVersion:
        """Freeze the current totals plus one hypothetical adjustment."""
        quotation = await self._lock(quotation_id)
        ensure_open(quotation.status, QuotationAction.CREATE_VERSION)

        await self._recompute(quotation)
        line_items = await self.aggregator.line_items(quotation.id)
        version = await self.versions.create_version(
            quotation,
            line_items,
            quotation.discounted_total,
            mode,
            value,
            note=note,
            created_by=actor,
        )
        await self._flush()
        return version

    async def list_versions(self, quotation_id: str) -> list[QuotationVersion]:
        await self.get_quotation(quotation_id)
        return await self.versions.list_versions(quotation_id)

    async def get_version(self, quotation_id: str, version_id: str) -> QuotationVersion:
        await self.get_quotation(quotation_id)
        return await self.versions.get_version(quotation_id, version_id)

    async def print_document(self, quotation_id: str, version_id: str | None = None) -> str:
        """
        Render the printable quotation.

        With `version_id` the document comes from the frozen snapshot only;
        without it, from the live line items and totals.
        """
        if version_id:
            version = await self.get_version(quotation_id, version_id)
            return self.printer.render_version(version)

        quotation = await self.get_quotation(quotation_id)
        line_items = await self.aggregator.line_items(quotation.id)
        return self.printer.render_live(quotation, line_items)

    # ------------------------------------------------------------------
    # Status life cycle
    # ------------------------------------------------------------------

    async def submit_for_review(self, quotation_id: str, actor: str | None = None) -> Quotation:
        quotation = await self._lock(quotation_id)
        old_status = quotation.status
        quotation.status = next_status(quotation.status, QuotationAction.SUBMIT_FOR_REVIEW)
        quotation.submitted_by = actor
        quotation.submitted_at = datetime.utcnow()

        await self._recompute(quotation)
        await self._flush()
        self._audit_transition(quotation, old_status, actor)
        return quotation

    async def approve(
        self,
        quotation_id: str,
        final_total: object | None = None,
        actor: str | None = None,
    ) -> Quotation:
        """
        Approve a quotation under review.

        The final total defaults to the current discounted total. The
        discounted total at approval is kept separately so later drift stays
        visible.
        """
        quotation = await self._lock(quotation_id)
        old_status = quotation.status
        new_status = next_status(quotation.status, QuotationAction.APPROVE)

        await self._recompute(quotation)
        if final_total is None:
            approved_total = quotation.discounted_total
        else:
            approved_total = self._validate_final_total(final_total)

        quotation.status = new_status
        quotation.final_total = approved_total
        quotation.final_total_source = FinalTotalSource.APPROVAL
        quotation.approved_discounted_total = quotation.discounted_total
        quotation.approved_by = actor
        quotation.approved_at = datetime.utcnow()

        await self._flush()
        self._audit_transition(
            quotation,
            old_status,
            actor,
            final_total=str(approved_total),
            discounted_total=str(quotation.discounted_total),
        )
        return quotation

    async def reject(self, quotation_id: str, reason: str | None = None, actor: str | None = None) -> Quotation:
        quotation = await self._lock(quotation_id)
        old_status = quotation.status
        quotation.status = next_status(quotation.status, QuotationAction.REJECT)
        quotation.rejected_by = actor
        quotation.rejected_at = datetime.utcnow()
        quotation.rejection_reason = reason

        await self._flush()
        self._audit_transition(quotation, old_status, actor, reason=reason)
        return quotation

    async def manual_override(
        self,
        quotation_id: str,
        final_total: object,
        note: str | None = None,
        actor: str | None = None,
    ) -> OverrideRecord:
        quotation = await self._lock(quotation_id)
        ensure_open(quotation.status, QuotationAction.MANUAL_OVERRIDE)

        record = await self.overrides.override(quotation, final_total, note=note, actor=actor)
        await self._flush()
        return record

    async def list_overrides(self, quotation_id: str) -> list[OverrideRecord]:
        await self.get_quotation(quotation_id)
        return await self.overrides.history(quotation_id)

    async def convert(
        self,
        quotation_id: str,
        params: WorkOrderParams,
        gateway: WorkOrderGateway,
        actor: str | None = None,
    ) -> Quotation:
        """
        Convert an approved quotation into a work order.

        The status flip is flushed under the row-version check before the
        work order subsystem is called, so only one converter gets that far.
        The returned work order id lands in a unique column.
        """
        quotation = await self._lock(quotation_id)
        old_status = quotation.status
        quotation.status = next_status(quotation.status, QuotationAction.CONVERT)
        quotation.converted_by = actor
        quotation.converted_at = datetime.utcnow()
        await self._flush()

        self.logger.log_operation_start("convert", quotation_id=quotation.id)
        try:
            work_order_id = await gateway.create_work_order(quotation, params)
        except Exception as exc:
            self.logger.log_operation_failed("convert", exc, quotation_id=quotation.id)
            raise

        quotation.work_order_id = work_order_id
        await self._flush()

        self._audit_transition(quotation, old_status, actor, work_order_id=work_order_id)
        self.logger.log_operation_complete(
            "convert",
            quotation_id=quotation.id,
            work_order_id=work_order_id,
        )
        return quotation

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _lock(self, quotation_id: str) -> Quotation:
        """Load a quotation for update, refreshing any stale identity-map copy."""
        result = await self.session.execute(
            select(Quotation)
            .where(Quotation.id == quotation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        quotation = result.scalar_one_or_none()
        if not quotation:
            raise NotFoundError("Quotation", quotation_id)
        return quotation

    async def _get_line_item(self, quotation_id: str, line_id: str) -> QuotationLineItem:
        result = await self.session.execute(
            select(QuotationLineItem).where(
                QuotationLineItem.id == line_id,
                QuotationLineItem.quotation_id == quotation_id,
            )
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundError("LineItem", line_id, quotation_id=quotation_id)
        return item

    async def _add_line_item(self, quotation: Quotation, feature: FeatureInput) -> QuotationLineItem:
        quantity = validate_quantity(feature.quantity)

        if feature.is_custom:
            name = (feature.custom_name or "").strip()
            if not name:
                raise ValidationError(
                    "A feature needs a feature_type_id, a feature_category_id or a custom_name"
                )
            if feature.unit_price is None:
                raise ValidationError("Custom features need a unit_price", custom_name=name)
            unit_price = PriceResolver.validate_unit_price(feature.unit_price)
            source = PriceSource.MANUAL
            category_id = type_id = None
        else:
            resolved = await self.prices.resolve(
                quotation.vehicle_model_id,
                category_id=feature.feature_category_id,
                feature_type_id=feature.feature_type_id,
                manual_price=feature.unit_price,
            )
            unit_price = resolved.unit_price
            source = resolved.source
            category_id = resolved.feature_category_id
            type_id = resolved.feature_type_id
            name = (feature.custom_name or "").strip() or await self.prices.feature_name(category_id, type_id)

        quotation.line_count = (quotation.line_count or 0) + 1
        item = QuotationLineItem(
            id=new_id(),
            quotation_id=quotation.id,
            line_number=quotation.line_count,
            feature_type_id=type_id,
            feature_category_id=category_id,
            custom_name=feature.custom_name,
            name=name,
            quantity=quantity,
            unit_price=unit_price,
            total_price=line_total(quantity, unit_price),
            price_source=source,
        )
        self.session.add(item)
        return item

    async def _recompute(self, quotation: Quotation) -> DiscountBreakdown:
        """Refresh cached base and discounted totals from the ledgers."""
        await self._flush()
        base_total = await self.aggregator.recompute_base(quotation)
        breakdown = await self.ledger.compute_discounted_total(quotation.id, base_total)
        quotation.discounted_total = breakdown.discounted_total
        return breakdown

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except StaleDataError as exc:
            self.logger.log_operation_failed("flush", exc)
            raise ConcurrencyConflictError(
                "Quotation was modified by another request"
            ) from exc
        except IntegrityError as exc:
            self.logger.log_operation_failed("flush", exc)
            raise ConcurrencyConflictError(
                "Conflicting write on a unique quotation record",
                detail=str(exc.orig),
            ) from exc

    async def _generate_quotation_number(self) -> str:
        """Generate a unique quotation number."""
        # Format: <prefix>-YYYYMM-XXXX
        prefix = f"{settings.quotation.number_prefix}-{datetime.utcnow():%Y%m}-"

        result = await self.session.execute(
            select(Quotation.quotation_number)
            .where(Quotation.quotation_number.like(f"{prefix}%"))
            .order_by(Quotation.quotation_number.desc())
            .limit(1)
        )
        last_number = result.scalar_one_or_none()

        if last_number:
            seq = int(last_number.split("-")[-1])
            return f"{prefix}{seq + 1:04d}"

        return f"{prefix}0001"

    @staticmethod
    def _validate_final_total(value: object) -> Decimal:
        try:
            total = to_money(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Final total is not a number: {value!r}", final_total=value) from None
        if total < ZERO:
            raise ValidationError("Final total must not be negative", final_total=total)
        if not fits_column(total):
            raise ValidationError(f"Final total must not exceed {MAX_MONEY}", final_total=total)
        return total

    @staticmethod
    def _audit_transition(quotation: Quotation, old_status: QuotationStatus, actor: str | None, **values) -> None:
        audit_logger.log_action(
            action=quotation.status.value,
            actor_id=actor,
            resource_type="quotation",
            resource_id=quotation.id,
            quotation_id=quotation.id,
            old_values={"status": old_status.value},
            new_values={"status": quotation.status.value, **values},
        )
