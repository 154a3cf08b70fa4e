"""
Tests for the quotation service: line items, discounts, versions, the life
cycle, overrides and conversion.
"""

from datetime import date
from decimal import Decimal

import pytest

from quotation_engine.models.quotation import (
    DiscountStatus, FinalTotalSource, PriceSource, QuotationStatus
)
from quotation_engine.services.exceptions import (
    ConcurrencyConflictError, InvalidStateError, MissingPriceError, NotFoundError, ValidationError
)
from quotation_engine.services.integrations.work_order_client import WorkOrderParams
from quotation_engine.services.quotation import FeatureInput, ManualOverrideService, QuotationService

VEHICLE_MODEL = "TATA-LPT-1613"


async def approve_discounts(service, quotation, *discounts):
    for mode, value in discounts:
        entry = await service.add_discount(quotation.id, mode, value, actor="alice")
        await service.approve_discount(quotation.id, entry.id, actor="manager")


async def approved_quotation(service, make_quotation):
    quotation = await make_quotation()
    await service.submit_for_review(quotation.id, actor="alice")
    await service.approve(quotation.id, actor="manager")
    return quotation


class TestCreateQuotation:
    """Tests for quotation creation."""

    @pytest.mark.asyncio
    async def test_created_as_draft_with_base_total(self, service, catalog):
        """Features are priced once and summed into the base total."""
        quotation = await service.create_quotation(
            vehicle_model_id=VEHICLE_MODEL,
            customer_name="  Ravi Transport ",
            features=[
                FeatureInput(feature_type_id=catalog["aluminium"].id, quantity=2),
                FeatureInput(feature_type_id=catalog["wooden"].id),
                FeatureInput(custom_name="Tool box", unit_price="1250.75"),
            ],
            created_by="alice",
        )

        assert quotation.status is QuotationStatus.DRAFT
        assert quotation.customer_name == "Ravi Transport"
        assert quotation.base_total == Decimal("16250.75")
        assert quotation.discounted_total == Decimal("16250.75")
        assert quotation.final_total is None

        items = await service.get_line_items(quotation.id)
        assert [(i.line_number, i.name, i.price_source) for i in items] == [
            (1, "Aluminium chequered", PriceSource.FEATURE_TYPE),
            (2, "Wooden planks", PriceSource.CATEGORY),
            (3, "Tool box", PriceSource.MANUAL),
        ]
        assert items[0].total_price == Decimal("11000.00")

    @pytest.mark.asyncio
    async def test_sequential_quotation_numbers(self, service, make_quotation):
        first = await make_quotation()
        second = await make_quotation()

        prefix = f"QT-{date.today():%Y%m}-"
        assert first.quotation_number.startswith(prefix)
        assert int(second.quotation_number.split("-")[-1]) == int(first.quotation_number.split("-")[-1]) + 1

    @pytest.mark.asyncio
    async def test_missing_price_fails_creation(self, service, catalog):
        with pytest.raises(MissingPriceError):
            await service.create_quotation(
                vehicle_model_id="EICHER-PRO-2049",
                customer_name="Ravi Transport",
                features=[FeatureInput(feature_category_id=catalog["flooring"].id)],
            )

    @pytest.mark.asyncio
    async def test_list_filters(self, service, make_quotation):
        draft = await make_quotation("500")
        reviewed = await make_quotation("700")
        await service.submit_for_review(reviewed.id)

        in_review, total = await service.list_quotations(status=QuotationStatus.REVIEW)
        assert total == 1
        assert [q.id for q in in_review] == [reviewed.id]

        found, total = await service.list_quotations(search=draft.quotation_number)
        assert total == 1
        assert found[0].display_total == Decimal("500.00")

        _, total = await service.list_quotations(search="KA-01")
        assert total == 2

    @pytest.mark.asyncio
    async def test_unknown_quotation(self, service):
        with pytest.raises(NotFoundError):
            await service.get_quotation("00000000-0000-0000-0000-000000000000")


class TestLineItems:
    """Tests for line-item changes and base-total recompute."""

    @pytest.mark.asyncio
    async def test_add_update_remove(self, service, make_quotation):
        quotation = await make_quotation("10000")

        item = await service.add_feature(quotation.id, FeatureInput(custom_name="Ladder", unit_price="500"))
        assert quotation.base_total == Decimal("10500.00")

        await service.update_feature(quotation.id, item.id, quantity=3)
        assert quotation.base_total == Decimal("11500.00")

        await service.update_feature(quotation.id, item.id, unit_price="450")
        assert item.total_price == Decimal("1350.00")
        assert quotation.base_total == Decimal("11350.00")

        await service.remove_feature(quotation.id, item.id)
        assert quotation.base_total == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_recompute_reapplies_approved_discounts(self, service, make_quotation):
        quotation = await make_quotation("10000")
        await approve_discounts(service, quotation, ("percent", "10"))

        await service.add_feature(quotation.id, FeatureInput(custom_name="Ladder", unit_price="1000"))
        assert quotation.discounted_total == Decimal("9900.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -2, "1.5", 2**31])
    async def test_bad_quantity(self, service, make_quotation, quantity):
        quotation = await make_quotation()
        with pytest.raises(ValidationError):
            await service.add_feature(quotation.id, FeatureInput(custom_name="Ladder", quantity=quantity, unit_price="1"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("features", [
        [("1", "1e30")],
        [("10", "9999999999999.99")],
        [("1", "6000000000000"), ("1", "6000000000000")],
    ])
    async def test_totals_must_fit_money_columns(self, service, make_quotation, features):
        """Prices and totals past Numeric(15, 2) are validation errors, not database errors."""
        quotation = await make_quotation("1")
        with pytest.raises(ValidationError):
            for quantity, unit_price in features:
                await service.add_feature(
                    quotation.id,
                    FeatureInput(custom_name="Ladder", quantity=int(quantity), unit_price=unit_price),
                )

    @pytest.mark.asyncio
    async def test_custom_item_needs_price(self, service, make_quotation):
        quotation = await make_quotation()
        with pytest.raises(ValidationError):
            await service.add_feature(quotation.id, FeatureInput(custom_name="Ladder"))

    @pytest.mark.asyncio
    async def test_unknown_line_item(self, service, make_quotation):
        quotation = await make_quotation()
        with pytest.raises(NotFoundError):
            await service.remove_feature(quotation.id, "00000000-0000-0000-0000-000000000000")


class TestDiscounts:
    """Tests for discount approval through the service."""

    @pytest.mark.asyncio
    async def test_cascading_discounts(self, service, make_quotation):
        """1000 off then 10% leaves 8100; total discount 1900."""
        quotation = await make_quotation("10000")
        await approve_discounts(service, quotation, ("amount", "1000"))
        assert quotation.discounted_total == Decimal("9000.00")

        await approve_discounts(service, quotation, ("percent", "10"))
        assert quotation.discounted_total == Decimal("8100.00")
        assert quotation.total_discount == Decimal("1900.00")

    @pytest.mark.asyncio
    async def test_pending_discount_does_not_change_totals(self, service, make_quotation):
        quotation = await make_quotation("10000")
        await service.add_discount(quotation.id, "amount", "1000")

        entries, breakdown = await service.discount_summary(quotation.id)
        assert [e.status for e in entries] == [DiscountStatus.PENDING]
        assert breakdown.discounted_total == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_invalid_percent_rejected_at_creation(self, service, make_quotation):
        quotation = await make_quotation()
        with pytest.raises(ValidationError):
            await service.add_discount(quotation.id, "percent", "101")

    @pytest.mark.asyncio
    async def test_concurrent_approvals_exactly_one_wins(self, session, session_factory, make_quotation):
        """Two approvals of one pending discount: one succeeds, one is refused."""
        quotation = await make_quotation("10000")
        entry = await QuotationService(session).add_discount(quotation.id, "amount", "1000")
        await session.commit()

        async with session_factory() as session_a, session_factory() as session_b:
            service_a = QuotationService(session_a)
            service_b = QuotationService(session_b)

            # Both requests have read the quotation before either writes
            await service_a.get_quotation(quotation.id)
            await service_b.get_quotation(quotation.id)

            approved = await service_a.approve_discount(quotation.id, entry.id, actor="alice")
            await session_a.commit()

            with pytest.raises(InvalidStateError) as exc_info:
                await service_b.approve_discount(quotation.id, entry.id, actor="bob")
            await session_b.rollback()

        assert approved.status is DiscountStatus.APPROVED
        assert exc_info.value.context["discount_id"] == entry.id

        async with session_factory() as check:
            stored = await QuotationService(check).get_quotation(quotation.id)
            assert stored.discounted_total == Decimal("9000.00")
            entries, _ = await QuotationService(check).discount_summary(quotation.id)
            assert entries[0].approved_by == "alice"


class TestVersions:
    """Tests for version snapshots and printing."""

    @pytest.mark.asyncio
    async def test_numbers_start_at_one_without_gaps(self, service, make_quotation):
        quotation = await make_quotation()
        for _ in range(4):
            await service.create_version(quotation.id)

        versions = await service.list_versions(quotation.id)
        assert [v.version_number for v in versions] == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_version_applies_hypothetical_adjustment(self, service, make_quotation):
        """The version's adjustment is frozen without touching live totals."""
        quotation = await make_quotation("10000")
        await approve_discounts(service, quotation, ("amount", "1000"))

        version = await service.create_version(quotation.id, "percent", "10", note="festival offer")
        assert (version.base_total, version.discount_total, version.discounted_total) == (
            Decimal("10000.00"), Decimal("1900.00"), Decimal("8100.00"),
        )
        assert quotation.discounted_total == Decimal("9000.00")

    @pytest.mark.asyncio
    async def test_snapshot_survives_live_changes(self, service, session, session_factory, make_quotation):
        """A version keeps reporting its own totals after a feature is added."""
        quotation = await make_quotation("10000")
        await approve_discounts(service, quotation, ("amount", "1000"), ("percent", "10"))
        version = await service.create_version(quotation.id, note="first offer", actor="alice")
        await session.commit()
        first_print = await service.print_document(quotation.id, version_id=version.id)

        await service.add_feature(quotation.id, FeatureInput(custom_name="Ladder", unit_price="500"))
        await session.commit()
        assert quotation.base_total == Decimal("10500.00")

        async with session_factory() as other:
            reprint_service = QuotationService(other)
            stored = await reprint_service.get_version(quotation.id, version.id)
            assert (stored.base_total, stored.discount_total, stored.discounted_total) == (
                Decimal("10000.00"), Decimal("1900.00"), Decimal("8100.00"),
            )
            reprint = await reprint_service.print_document(quotation.id, version_id=version.id)

        assert reprint == first_print
        assert "8100.00" in reprint
        assert "10500.00" not in reprint
        assert "Ladder" not in reprint

        live = await service.print_document(quotation.id)
        assert "10500.00" in live
        assert "Ladder" in live

    @pytest.mark.asyncio
    async def test_print_escapes_customer_text(self, service):
        quotation = await service.create_quotation(
            vehicle_model_id=VEHICLE_MODEL,
            customer_name="<script>alert(1)</script>",
        )
        document = await service.print_document(quotation.id)
        assert "<script>" not in document
        assert "&lt;script&gt;" in document


class TestLifeCycle:
    """Tests for status transitions through the service."""

    @pytest.mark.asyncio
    async def test_review_and_approve(self, service, make_quotation):
        """draft -> review -> approved with an explicit final total."""
        quotation = await make_quotation("10000")
        await approve_discounts(service, quotation, ("amount", "1000"), ("percent", "10"))

        await service.submit_for_review(quotation.id, actor="alice")
        assert quotation.status is QuotationStatus.REVIEW

        await service.approve(quotation.id, final_total="8100", actor="manager")
        assert quotation.status is QuotationStatus.APPROVED
        assert quotation.final_total == Decimal("8100.00")
        assert quotation.final_total_source is FinalTotalSource.APPROVAL
        assert quotation.approved_by == "manager"

        with pytest.raises(InvalidStateError):
            await service.submit_for_review(quotation.id)

    @pytest.mark.asyncio
    async def test_approve_defaults_to_discounted_total(self, service, make_quotation):
        quotation = await make_quotation("10000")
        await approve_discounts(service, quotation, ("percent", "5"))
        await service.submit_for_review(quotation.id)

        await service.approve(quotation.id)
        assert quotation.final_total == Decimal("9500.00")
        assert quotation.approved_discounted_total == Decimal("9500.00")

    @pytest.mark.asyncio
    async def test_approve_from_draft_fails(self, service, make_quotation):
        quotation = await make_quotation()
        with pytest.raises(InvalidStateError) as exc_info:
            await service.approve(quotation.id)
        assert exc_info.value.context == {"current_status": "draft", "attempted_action": "approve"}

    @pytest.mark.asyncio
    async def test_rejected_quotation_is_frozen(self, service, make_quotation):
        quotation = await make_quotation()
        await service.submit_for_review(quotation.id)
        await service.reject(quotation.id, reason="Customer chose another builder", actor="manager")

        assert quotation.status is QuotationStatus.REJECTED
        assert quotation.rejection_reason == "Customer chose another builder"

        with pytest.raises(InvalidStateError):
            await service.add_feature(quotation.id, FeatureInput(custom_name="Ladder", unit_price="1"))
        with pytest.raises(InvalidStateError):
            await service.add_discount(quotation.id, "amount", "10")
        with pytest.raises(InvalidStateError):
            await service.create_version(quotation.id)
        with pytest.raises(InvalidStateError):
            await service.manual_override(quotation.id, "100")


class TestManualOverride:
    """Tests for the audited final-total override."""

    @pytest.mark.asyncio
    async def test_override_keeps_computed_totals(self, service, make_quotation):
        quotation = await make_quotation("10000")
        await approve_discounts(service, quotation, ("amount", "1000"))

        first = await service.manual_override(quotation.id, "8500", note="matched competitor", actor="owner")
        second = await service.manual_override(quotation.id, "8400", actor="owner")

        assert quotation.final_total == Decimal("8400.00")
        assert quotation.final_total_source is FinalTotalSource.OVERRIDE
        assert quotation.base_total == Decimal("10000.00")
        assert quotation.discounted_total == Decimal("9000.00")
        assert quotation.display_total == Decimal("8400.00")
        assert ManualOverrideService.divergence(quotation) == Decimal("-600.00")

        assert first.old_final_total is None
        assert second.old_final_total == Decimal("8500.00")
        history = await service.list_overrides(quotation.id)
        assert [r.new_final_total for r in history] == [Decimal("8500.00"), Decimal("8400.00")]

    @pytest.mark.asyncio
    async def test_override_after_approval(self, service, make_quotation):
        quotation = await approved_quotation(service, make_quotation)
        record = await service.manual_override(quotation.id, "9999")

        assert record.old_final_total == Decimal("10000.00")
        assert quotation.status is QuotationStatus.APPROVED

    @pytest.mark.asyncio
    async def test_negative_override_rejected(self, service, make_quotation):
        quotation = await make_quotation()
        with pytest.raises(ValidationError):
            await service.manual_override(quotation.id, "-1")

    @pytest.mark.asyncio
    async def test_oversized_override_rejected(self, service, make_quotation):
        quotation = await make_quotation()
        with pytest.raises(ValidationError):
            await service.manual_override(quotation.id, "10000000000000")
        assert quotation.final_total is None


class TestConvert:
    """Tests for work-order conversion."""

    @pytest.mark.asyncio
    async def test_convert_once(self, service, make_quotation, gateway):
        quotation = await approved_quotation(service, make_quotation)
        params = WorkOrderParams(appointment_date=date(2026, 11, 2), estimated_completion_days=12)

        await service.convert(quotation.id, params, gateway, actor="manager")
        assert quotation.status is QuotationStatus.CONVERTED
        assert quotation.work_order_id == "WO-0001"

        with pytest.raises(InvalidStateError):
            await service.convert(quotation.id, params, gateway)
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_convert_requires_approval(self, service, make_quotation, gateway):
        quotation = await make_quotation()
        with pytest.raises(InvalidStateError):
            await service.convert(quotation.id, WorkOrderParams(), gateway)
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_racing_converters(self, session, session_factory, make_quotation, gateway):
        """The second converter sees the committed conversion and is refused."""
        quotation = await approved_quotation(QuotationService(session), make_quotation)
        await session.commit()

        async with session_factory() as session_a, session_factory() as session_b:
            await QuotationService(session_a).convert(quotation.id, WorkOrderParams(), gateway)
            await session_a.commit()

            with pytest.raises(InvalidStateError):
                await QuotationService(session_b).convert(quotation.id, WorkOrderParams(), gateway)

        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_lost_update_is_a_conflict(self, session, session_factory, make_quotation, gateway):
        """A write based on a stale row version fails instead of overwriting."""
        quotation = await approved_quotation(QuotationService(session), make_quotation)
        await session.commit()

        async with session_factory() as session_b:
            stale = await QuotationService(session_b).get_quotation(quotation.id)

            async with session_factory() as session_a:
                await QuotationService(session_a).convert(quotation.id, WorkOrderParams(), gateway)
                await session_a.commit()

            stale.final_total = Decimal("1.00")
            with pytest.raises(ConcurrencyConflictError):
                await QuotationService(session_b)._flush()
