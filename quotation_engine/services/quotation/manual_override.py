"""
Manual final-total override.

Writes a human-decided final total directly onto the quotation and appends
an OverrideRecord holding the previous value. Computed totals are left
alone, so the gap between computed and actual price stays inspectable.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quotation_engine.database.base import new_id
from quotation_engine.models.quotation import (
    FinalTotalSource, OverrideRecord, Quotation
)
from quotation_engine.services.exceptions import ValidationError
from quotation_engine.utils.logging import ServiceLogger, audit_logger
from quotation_engine.utils.money import MAX_MONEY, ZERO, fits_column, to_money


class ManualOverrideService:
    """Service for the audited final-total escape hatch."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = ServiceLogger("manual_override")

    async def override(
        self,
        quotation: Quotation,
        new_final_total: object,
        note: str | None = None,
        actor: str | None = None,
    ) -> OverrideRecord:
        """
        Set the quotation's final total.

        Args:
            quotation: Locked, open quotation
            new_final_total: Replacement final total (>= 0)
            note: Reason for diverging from the computed price
            actor: Overriding user

        Returns:
            The appended OverrideRecord
        """
        try:
            new_total = to_money(new_final_total)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Final total is not a number: {new_final_total!r}",
                final_total=new_final_total,
            ) from None
        if new_total < ZERO:
            raise ValidationError("Final total must not be negative", final_total=new_total)
        if not fits_column(new_total):
            raise ValidationError(f"Final total must not exceed {MAX_MONEY}", final_total=new_total)

        old_total = quotation.final_total
        record = OverrideRecord(
            id=new_id(),
            quotation_id=quotation.id,
            old_final_total=old_total,
            new_final_total=new_total,
            note=note,
            actor=actor,
        )
        self.session.add(record)

        quotation.final_total = new_total
        quotation.final_total_source = FinalTotalSource.OVERRIDE

        audit_logger.log_action(
            action="manual_override",
            actor_id=actor,
            resource_type="quotation",
            resource_id=quotation.id,
            quotation_id=quotation.id,
            old_values={"final_total": str(old_total) if old_total is not None else None},
            new_values={
                "final_total": str(new_total),
                "computed_total": str(quotation.discounted_total),
            },
            metadata={"note": note},
        )
        return record

    async def history(self, quotation_id: str) -> list[OverrideRecord]:
        """Override records, oldest first."""
        result = await self.session.execute(
            select(OverrideRecord)
            .where(OverrideRecord.quotation_id == quotation_id)
            .order_by(OverrideRecord.created_at, OverrideRecord.id)
        )
        return list(result.scalars().all())

    @staticmethod
    def divergence(quotation: Quotation) -> Decimal | None:
        """Actual minus computed total, when a final total is set."""
        if quotation.final_total is None:
            return None
        return quotation.final_total - quotation.discounted_total
