"""
Immutable quotation version snapshots.

A version applies one more discount-like adjustment, hypothetically, on top
of the live discounted total and freezes the resulting
(base, discount, discounted) triple together with the header and line items
as they stand. Versions are numbered 1, 2, 3, ... per quotation with no gaps
and are never modified afterwards.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quotation_engine.database.base import new_id
from quotation_engine.models.quotation import (
    DiscountMode, Quotation, QuotationLineItem, QuotationVersion
)
from quotation_engine.services.exceptions import NotFoundError
from quotation_engine.services.quotation.discount_ledger import (
    apply_adjustment, validate_discount
)
from quotation_engine.utils.logging import ServiceLogger, audit_logger
from quotation_engine.utils.money import to_money


def build_snapshot(
    quotation: Quotation,
    line_items: list[QuotationLineItem],
) -> dict[str, Any]:
    """Header and line items in a JSON-safe, order-stable form."""
    return {
        "quotation_number": quotation.quotation_number,
        "quotation_date": quotation.quotation_date.isoformat() if quotation.quotation_date else None,
        "vehicle_maker_id": quotation.vehicle_maker_id,
        "vehicle_model_id": quotation.vehicle_model_id,
        "vehicle_number": quotation.vehicle_number,
        "customer": {
            "id": quotation.customer_id,
            "name": quotation.customer_name,
            "phone": quotation.customer_phone,
            "email": quotation.customer_email,
            "address": quotation.customer_address,
        },
        "line_items": [
            {
                "line_number": item.line_number,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": str(to_money(item.unit_price)),
                "total_price": str(to_money(item.total_price)),
                "price_source": item.price_source.value,
            }
            for item in sorted(line_items, key=lambda li: li.line_number)
        ],
    }


class VersionStore:
    """
    Service for quotation version snapshots.

    Provides:
    - Snapshot creation with the next sequential version number
    - Ordered version listing
    - Single version lookup for reprinting
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = ServiceLogger("version_store")

    async def create_version(
        self,
        quotation: Quotation,
        line_items: list[QuotationLineItem],
        discounted_total: Decimal,
        mode: DiscountMode | str,
        value: object,
        note: str | None = None,
        created_by: str | None = None,
    ) -> QuotationVersion:
        """
        Freeze a new version.

        Args:
            quotation: Locked quotation; its base total must be current
            line_items: Current line items
            discounted_total: Current discounted total (approved discounts)
            mode: Adjustment mode for this version
            value: Adjustment value (0 for a plain snapshot)
            note: Free-text note printed with the version
            created_by: Creating user

        Returns:
            The new QuotationVersion
        """
        mode, amount = validate_discount(mode, value)

        base_total = to_money(quotation.base_total)
        versioned_total = apply_adjustment(to_money(discounted_total), mode, amount)
        discount_total = base_total - versioned_total

        quotation.last_version_number = (quotation.last_version_number or 0) + 1
        created_at = datetime.utcnow().replace(microsecond=0)

        version = QuotationVersion(
            id=new_id(),
            quotation_id=quotation.id,
            version_number=quotation.last_version_number,
            base_total=base_total,
            discount_total=discount_total,
            discounted_total=versioned_total,
            adjustment_mode=mode,
            adjustment_value=amount,
            note=note,
            created_by=created_by,
            created_at=created_at,
            updated_at=created_at,
            snapshot=build_snapshot(quotation, line_items),
        )
        self.session.add(version)

        audit_logger.log_action(
            action="create_version",
            actor_id=created_by,
            resource_type="quotation_version",
            resource_id=version.id,
            quotation_id=quotation.id,
            new_values={
                "version_number": version.version_number,
                "base_total": str(base_total),
                "discount_total": str(discount_total),
                "discounted_total": str(versioned_total),
            },
        )
        return version

    async def list_versions(self, quotation_id: str) -> list[QuotationVersion]:
        """Versions in version-number order."""
        result = await self.session.execute(
            select(QuotationVersion)
            .where(QuotationVersion.quotation_id == quotation_id)
            .order_by(QuotationVersion.version_number)
        )
        return list(result.scalars().all())

    async def get_version(self, quotation_id: str, version_id: str) -> QuotationVersion:
        result = await self.session.execute(
            select(QuotationVersion).where(
                QuotationVersion.id == version_id,
                QuotationVersion.quotation_id == quotation_id,
            )
        )
        version = result.scalar_one_or_none()
        if not version:
            raise NotFoundError("Version", version_id, quotation_id=quotation_id)
        return version
