"""
Discount ledger.

Discount entries are append-only. Each is created pending and resolved
exactly once. The discounted total is a pure fold over the approved entries
in creation order:

- an `amount` entry subtracts its value from the running total
- a `percent` entry subtracts that percentage of the running total, so
  percentages compound on prior approved discounts

The running total is clamped at zero after every step.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quotation_engine.database.base import new_id
from quotation_engine.models.quotation import (
    DiscountEntry, DiscountMode, DiscountStatus, Quotation
)
from quotation_engine.services.exceptions import (
    InvalidStateError, NotFoundError, ValidationError
)
from quotation_engine.utils.logging import ServiceLogger, audit_logger
from quotation_engine.utils.money import (
    HUNDRED, MAX_MONEY, ZERO, clamp_non_negative, fits_column, percent_of, to_decimal, to_money
)


class DiscountLike(Protocol):
    mode: DiscountMode
    value: Decimal


@dataclass(frozen=True)
class DiscountStep:
    """One approved entry applied to the running total."""
    mode: DiscountMode
    value: Decimal
    before: Decimal
    reduction: Decimal
    after: Decimal
    entry_id: str | None = None


@dataclass(frozen=True)
class DiscountBreakdown:
    """Result of folding approved discounts over a base total."""
    base_total: Decimal
    discounted_total: Decimal
    steps: list[DiscountStep] = field(default_factory=list)

    @property
    def total_discount(self) -> Decimal:
        return self.base_total - self.discounted_total


def validate_discount(mode: DiscountMode | str, value: object) -> tuple[DiscountMode, Decimal]:
    """
    Normalize and validate a discount-like adjustment.

    Raises:
        ValidationError: Unknown mode, negative amount, or percent outside [0, 100]
    """
    try:
        mode = DiscountMode(mode)
    except ValueError:
        raise ValidationError(f"Unknown discount mode: {mode}", mode=mode) from None

    try:
        amount = to_money(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Discount value is not a number: {value!r}", value=value) from None

    if amount < ZERO:
        raise ValidationError(
            "Discount value must not be negative",
            mode=mode,
            value=amount,
        )
    if mode is DiscountMode.PERCENT and amount > HUNDRED:
        raise ValidationError(
            "Percent discount must be between 0 and 100",
            mode=mode,
            value=amount,
        )
    if not fits_column(amount):
        raise ValidationError(f"Discount value must not exceed {MAX_MONEY}", mode=mode, value=amount)
    return mode, amount


def apply_adjustment(running: Decimal, mode: DiscountMode, value: Decimal) -> Decimal:
    """Apply one adjustment to a running total, never going below zero."""
    if mode is DiscountMode.PERCENT:
        reduction = percent_of(running, value)
    else:
        reduction = to_money(value)
    return clamp_non_negative(to_money(running - reduction))


def fold_discounts(
    base_total: Decimal,
    approved: Iterable[DiscountLike],
) -> DiscountBreakdown:
    """
    Fold approved discounts, in the given order, over a base total.

    Deterministic: the same base and the same ordered entries always give the
    same result.
    """
    base_total = to_money(base_total)
    running = clamp_non_negative(base_total)
    steps: list[DiscountStep] = []

    for entry in approved:
        value = to_decimal(entry.value)
        after = apply_adjustment(running, entry.mode, value)
        steps.append(DiscountStep(
            mode=entry.mode,
            value=value,
            before=running,
            reduction=running - after,
            after=after,
            entry_id=getattr(entry, "id", None),
        ))
        running = after

    return DiscountBreakdown(
        base_total=base_total,
        discounted_total=running,
        steps=steps,
    )


class DiscountLedger:
    """
    Service for a quotation's discount entries.

    Provides:
    - Pending discount creation with value validation
    - One-way approve/reject resolution (check-and-set on `pending`)
    - The discounted-total fold over approved entries
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = ServiceLogger("discount_ledger")

    async def list_entries(self, quotation_id: str) -> list[DiscountEntry]:
        """All entries for a quotation in creation order."""
        result = await self.session.execute(
            select(DiscountEntry)
            .where(DiscountEntry.quotation_id == quotation_id)
            .order_by(DiscountEntry.sequence)
        )
        return list(result.scalars().all())

    async def approved_entries(self, quotation_id: str) -> list[DiscountEntry]:
        result = await self.session.execute(
            select(DiscountEntry)
            .where(
                DiscountEntry.quotation_id == quotation_id,
                DiscountEntry.status == DiscountStatus.APPROVED,
            )
            .order_by(DiscountEntry.sequence)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def compute_discounted_total(
        self,
        quotation_id: str,
        base_total: Decimal,
    ) -> DiscountBreakdown:
        """Fold the currently approved entries over `base_total`."""
        return fold_discounts(base_total, await self.approved_entries(quotation_id))

    async def add_discount(
        self,
        quotation: Quotation,
        mode: DiscountMode | str,
        value: object,
        note: str | None = None,
        created_by: str | None = None,
    ) -> DiscountEntry:
        """
        Append a pending discount entry.

        Args:
            quotation: Locked quotation the entry belongs to
            mode: amount or percent
            value: Amount >= 0, or percent in [0, 100]
            note: Free-text justification
            created_by: Proposing user

        Returns:
            The new pending DiscountEntry
        """
        mode, amount = validate_discount(mode, value)

        quotation.discount_count = (quotation.discount_count or 0) + 1
        entry = DiscountEntry(
            id=new_id(),
            quotation_id=quotation.id,
            sequence=quotation.discount_count,
            mode=mode,
            value=amount,
            status=DiscountStatus.PENDING,
            note=note,
            created_by=created_by,
        )
        self.session.add(entry)

        self.logger.log_operation_complete(
            "add_discount",
            quotation_id=quotation.id,
            mode=mode.value,
            value=str(amount),
        )
        return entry

    async def approve(self, quotation: Quotation, entry_id: str, actor: str | None) -> DiscountEntry:
        """Approve a pending entry. Resolution is final."""
        return await self._resolve(quotation, entry_id, actor, DiscountStatus.APPROVED)

    async def reject(self, quotation: Quotation, entry_id: str, actor: str | None) -> DiscountEntry:
        """Reject a pending entry. Resolution is final."""
        return await self._resolve(quotation, entry_id, actor, DiscountStatus.REJECTED)

    async def get_entry(self, quotation_id: str, entry_id: str) -> DiscountEntry:
        result = await self.session.execute(
            select(DiscountEntry)
            .where(
                DiscountEntry.id == entry_id,
                DiscountEntry.quotation_id == quotation_id,
            )
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one_or_none()
        if not entry:
            raise NotFoundError("Discount", entry_id, quotation_id=quotation_id)
        return entry

    async def _resolve(
        self,
        quotation: Quotation,
        entry_id: str,
        actor: str | None,
        target: DiscountStatus,
    ) -> DiscountEntry:
        action = "approve_discount" if target is DiscountStatus.APPROVED else "reject_discount"
        entry = await self.get_entry(quotation.id, entry_id)

        if entry.status is not DiscountStatus.PENDING:
            raise InvalidStateError(
                entry.status,
                action,
                message=f"Discount {entry_id} already {entry.status.value}",
                discount_id=entry_id,
            )

        now = datetime.utcnow()
        values: dict = {"status": target, "updated_at": now}
        if target is DiscountStatus.APPROVED:
            values.update(approved_by=actor, approved_at=now)
        else:
            values.update(rejected_by=actor, rejected_at=now)

        # Check-and-set: only one resolver can move the entry off pending
        result = await self.session.execute(
            update(DiscountEntry)
            .where(
                DiscountEntry.id == entry_id,
                DiscountEntry.status == DiscountStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(entry)

        if result.rowcount == 0:
            raise InvalidStateError(
                entry.status,
                action,
                message=f"Discount {entry_id} already {entry.status.value}",
                discount_id=entry_id,
            )

        audit_logger.log_action(
            action=action,
            actor_id=actor,
            resource_type="discount",
            resource_id=entry_id,
            quotation_id=quotation.id,
            old_values={"status": DiscountStatus.PENDING.value},
            new_values={
                "status": target.value,
                "mode": entry.mode.value,
                "value": str(entry.value),
            },
        )
        return entry
