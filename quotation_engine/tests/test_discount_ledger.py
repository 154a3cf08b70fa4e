"""
Tests for the discount ledger.
"""

import random
from dataclasses import dataclass
from decimal import Decimal

import pytest

from quotation_engine.models.quotation import DiscountMode, DiscountStatus
from quotation_engine.services.exceptions import InvalidStateError, NotFoundError, ValidationError
from quotation_engine.services.quotation.discount_ledger import (
    DiscountLedger, apply_adjustment, fold_discounts, validate_discount
)


@dataclass
class Entry:
    mode: DiscountMode
    value: Decimal


def amount(value: str) -> Entry:
    return Entry(DiscountMode.AMOUNT, Decimal(value))


def percent(value: str) -> Entry:
    return Entry(DiscountMode.PERCENT, Decimal(value))


class TestFoldDiscounts:
    """Tests for the pure discount fold."""

    def test_amount_then_percent_cascades(self):
        """1000 off then 10% of the remaining 9000."""
        breakdown = fold_discounts(Decimal("10000"), [amount("1000"), percent("10")])

        assert breakdown.discounted_total == Decimal("8100.00")
        assert breakdown.total_discount == Decimal("1900.00")
        assert [step.after for step in breakdown.steps] == [Decimal("9000.00"), Decimal("8100.00")]

    def test_percent_acts_on_running_total(self):
        """Two 10% discounts compound rather than adding to 20%."""
        breakdown = fold_discounts(Decimal("10000"), [percent("10"), percent("10")])
        assert breakdown.discounted_total == Decimal("8100.00")

    def test_order_matters(self):
        """Entries are applied in the given order."""
        first = fold_discounts(Decimal("10000"), [amount("1000"), percent("10")])
        second = fold_discounts(Decimal("10000"), [percent("10"), amount("1000")])

        assert first.discounted_total == Decimal("8100.00")
        assert second.discounted_total == Decimal("8000.00")

    def test_clamped_at_zero(self):
        """An amount larger than the running total stops at zero."""
        breakdown = fold_discounts(Decimal("500"), [amount("800"), percent("50")])

        assert breakdown.discounted_total == Decimal("0.00")
        assert breakdown.steps[0].reduction == Decimal("500.00")
        assert breakdown.total_discount == Decimal("500.00")

    def test_no_entries(self):
        """Without approved entries the discounted total equals the base."""
        breakdown = fold_discounts(Decimal("1234.5"), [])
        assert breakdown.discounted_total == Decimal("1234.50")
        assert breakdown.total_discount == Decimal("0.00")

    def test_hundred_percent(self):
        assert fold_discounts(Decimal("999.99"), [percent("100")]).discounted_total == Decimal("0.00")

    def test_percent_rounds_to_cents(self):
        """33.33% of 100.01 is 33.333333; the running total keeps cents."""
        breakdown = fold_discounts(Decimal("100.01"), [percent("33.33")])
        assert breakdown.discounted_total == Decimal("66.68")

    def test_never_negative_for_random_sequences(self):
        """Any approved sequence leaves a non-negative total."""
        rng = random.Random(1613)
        for _ in range(200):
            entries = [
                amount(str(rng.randint(0, 5000))) if rng.random() < 0.5
                else percent(str(rng.randint(0, 100)))
                for _ in range(rng.randint(0, 6))
            ]
            base = Decimal(rng.randint(0, 20000))
            assert fold_discounts(base, entries).discounted_total >= 0

    def test_replay_stable(self):
        """Folding the same list twice yields the same result."""
        entries = [amount("250.50"), percent("12.5"), amount("99.99"), percent("7")]
        assert fold_discounts(Decimal("18750"), entries) == fold_discounts(Decimal("18750"), entries)


class TestValidateDiscount:
    """Tests for discount value validation."""

    @pytest.mark.parametrize("mode,value", [
        ("amount", "0"),
        ("amount", "1500.25"),
        ("percent", "0"),
        ("percent", "100"),
        ("percent", "12.5"),
    ])
    def test_accepts_valid_values(self, mode, value):
        parsed_mode, parsed_value = validate_discount(mode, value)
        assert parsed_mode is DiscountMode(mode)
        assert parsed_value == Decimal(value)

    @pytest.mark.parametrize("mode,value", [
        ("amount", "-1"),
        ("percent", "-0.01"),
        ("percent", "100.01"),
        ("percent", "150"),
        ("amount", "10000000000000"),
        ("amount", "abc"),
        ("fixed", "10"),
    ])
    def test_rejects_invalid_values(self, mode, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_discount(mode, value)
        assert exc_info.value.kind == "validation_error"

    def test_apply_adjustment_amount(self):
        assert apply_adjustment(Decimal("8100.00"), DiscountMode.AMOUNT, Decimal("100")) == Decimal("8000.00")


class TestDiscountLedgerPersistence:
    """Tests for ledger entries stored against a quotation."""

    @pytest.mark.asyncio
    async def test_entries_created_pending_in_sequence(self, session, make_quotation):
        """New entries are pending and numbered in creation order."""
        quotation = await make_quotation()
        ledger = DiscountLedger(session)

        first = await ledger.add_discount(quotation, "amount", "1000", note="loyalty", created_by="alice")
        second = await ledger.add_discount(quotation, "percent", "10", created_by="alice")
        await session.flush()

        assert first.status is DiscountStatus.PENDING
        assert (first.sequence, second.sequence) == (1, 2)
        assert [e.id for e in await ledger.list_entries(quotation.id)] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_only_approved_entries_count(self, session, make_quotation):
        """Pending and rejected entries stay out of the fold."""
        quotation = await make_quotation()
        ledger = DiscountLedger(session)

        kept = await ledger.add_discount(quotation, "amount", "1000")
        dropped = await ledger.add_discount(quotation, "percent", "50")
        await ledger.add_discount(quotation, "amount", "300")
        await session.flush()

        await ledger.approve(quotation, kept.id, "manager")
        await ledger.reject(quotation, dropped.id, "manager")

        breakdown = await ledger.compute_discounted_total(quotation.id, quotation.base_total)
        assert breakdown.discounted_total == Decimal("9000.00")

    @pytest.mark.asyncio
    async def test_resolution_is_final(self, session, make_quotation):
        """A resolved entry can be neither re-approved nor rejected."""
        quotation = await make_quotation()
        ledger = DiscountLedger(session)
        entry = await ledger.add_discount(quotation, "amount", "1000")
        await session.flush()

        await ledger.reject(quotation, entry.id, "manager")

        with pytest.raises(InvalidStateError) as exc_info:
            await ledger.approve(quotation, entry.id, "manager")
        assert exc_info.value.context["discount_id"] == entry.id
        assert exc_info.value.current_status == "rejected"

    @pytest.mark.asyncio
    async def test_stale_pending_read_loses_the_race(self, session_factory, make_quotation, session, monkeypatch):
        """
        A resolver holding a stale pending copy is refused by the
        conditional update once another session has resolved the entry.
        """
        quotation = await make_quotation()
        entry = await DiscountLedger(session).add_discount(quotation, "amount", "1000")
        await session.commit()

        async with session_factory() as session_b:
            ledger_b = DiscountLedger(session_b)
            stale = await ledger_b.get_entry(quotation.id, entry.id)
            assert stale.status is DiscountStatus.PENDING

            async with session_factory() as session_a:
                ledger_a = DiscountLedger(session_a)
                await ledger_a.approve(quotation, entry.id, "alice")
                await session_a.commit()

            async def stale_get_entry(quotation_id, entry_id):
                return stale

            monkeypatch.setattr(ledger_b, "get_entry", stale_get_entry)

            with pytest.raises(InvalidStateError):
                await ledger_b.approve(quotation, entry.id, "bob")
            assert stale.status is DiscountStatus.APPROVED
            assert stale.approved_by == "alice"

    @pytest.mark.asyncio
    async def test_unknown_entry(self, session, make_quotation):
        quotation = await make_quotation()
        with pytest.raises(NotFoundError):
            await DiscountLedger(session).approve(quotation, "00000000-0000-0000-0000-000000000000", "x")
