"""
Base-total aggregation over a quotation's line items.

`base_total = sum(quantity * unit_price)` in fixed-point arithmetic.
Recomputing the base never creates a version snapshot; snapshots are an
explicit action so drift between snapshots stays visible.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quotation_engine.models.quotation import Quotation, QuotationLineItem
from quotation_engine.services.exceptions import ValidationError
from quotation_engine.utils.logging import ServiceLogger
from quotation_engine.utils.money import MAX_MONEY, ZERO, fits_column, to_money

# Integer column limit
MAX_QUANTITY = 2_147_483_647


def validate_quantity(quantity: object) -> int:
    """Quantities are whole units, at least one."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        try:
            as_decimal = Decimal(str(quantity))
        except InvalidOperation:
            raise ValidationError(f"Quantity is not a number: {quantity!r}", quantity=quantity) from None
        if not as_decimal.is_finite() or as_decimal != as_decimal.to_integral_value():
            raise ValidationError("Quantity must be a whole number", quantity=str(quantity))
        quantity = int(as_decimal)
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", quantity=quantity)
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity must not exceed {MAX_QUANTITY}", quantity=quantity)
    return quantity


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    total = to_money(Decimal(quantity) * unit_price)
    if not fits_column(total):
        raise ValidationError(
            f"Line total must not exceed {MAX_MONEY}",
            quantity=quantity,
            unit_price=unit_price,
        )
    return total


def sum_line_items(items: Iterable[QuotationLineItem]) -> Decimal:
    """Pure fold over line items."""
    total = ZERO
    for item in items:
        total += line_total(item.quantity, item.unit_price)
    total = to_money(total)
    if not fits_column(total):
        raise ValidationError(f"Base total must not exceed {MAX_MONEY}", base_total=total)
    return total


class QuotationAggregator:
    """Keeps a quotation's cached base total in step with its line items."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = ServiceLogger("aggregator")

    async def line_items(self, quotation_id: str) -> list[QuotationLineItem]:
        result = await self.session.execute(
            select(QuotationLineItem)
            .where(QuotationLineItem.quotation_id == quotation_id)
            .order_by(QuotationLineItem.line_number)
        )
        return list(result.scalars().all())

    async def recompute_base(self, quotation: Quotation) -> Decimal:
        """
        Recompute and store `quotation.base_total` from current line items.

        Pending line-item changes are flushed first so the fold sees them.
        """
        await self.session.flush()
        items = await self.line_items(quotation.id)
        base_total = sum_line_items(items)

        if quotation.base_total != base_total:
            self.logger.log_operation_complete(
                "recompute_base",
                quotation_id=quotation.id,
                old_base_total=str(quotation.base_total),
                new_base_total=str(base_total),
                line_count=len(items),
            )
        quotation.base_total = base_total
        return base_total
