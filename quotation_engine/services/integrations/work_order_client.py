"""
Work order subsystem client.

`convert` hands an approved quotation to the work order subsystem and gets
back a work order id. The quotation id is sent as the idempotency key, so a
retried request can never create a second work order.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

import httpx
from tenacity import (
    retry, retry_if_exception_type, stop_after_attempt, wait_exponential
)

from quotation_engine.config.settings import settings
from quotation_engine.models.quotation import Quotation
from quotation_engine.services.exceptions import QuotationEngineError
from quotation_engine.utils.logging import ServiceLogger


@dataclass(frozen=True)
class WorkOrderParams:
    """Scheduling details for the work order."""
    appointment_date: date | None = None
    estimated_completion_days: int | None = None
    booking_amount: Decimal | None = None
    notes: str | None = None


class WorkOrderError(QuotationEngineError):
    """The work order subsystem refused or failed the hand-off."""

    kind = "work_order_error"
    status_code = 502


class WorkOrderGateway(Protocol):
    async def create_work_order(self, quotation: Quotation, params: WorkOrderParams) -> str:
        ...


def work_order_payload(quotation: Quotation, params: WorkOrderParams) -> dict:
    """Request body for the work order subsystem."""
    return {
        "quotation_id": quotation.id,
        "quotation_number": quotation.quotation_number,
        "customer_id": quotation.customer_id,
        "customer_name": quotation.customer_name,
        "vehicle_model_id": quotation.vehicle_model_id,
        "vehicle_number": quotation.vehicle_number,
        "final_total": str(quotation.display_total),
        "appointment_date": params.appointment_date.isoformat() if params.appointment_date else None,
        "estimated_completion_days": params.estimated_completion_days,
        "booking_amount": str(params.booking_amount) if params.booking_amount is not None else None,
        "notes": params.notes,
    }


class HttpWorkOrderGateway:
    """
    httpx client for the work order subsystem.

    Only connection failures are retried: the request never reached the
    server. Anything after that surfaces to the caller.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.work_orders.base_url).rstrip("/")
        self.timeout = timeout or settings.work_orders.timeout_seconds
        self.transport = transport
        self.logger = ServiceLogger("work_order_client")

    async def create_work_order(self, quotation: Quotation, params: WorkOrderParams) -> str:
        """
        Create the work order for an approved quotation.

        Returns:
            Work order id assigned by the subsystem

        Raises:
            WorkOrderError: Rejected request or malformed response
        """
        self.logger.log_operation_start("create_work_order", quotation_id=quotation.id)
        try:
            response = await self._post(
                "/work-orders",
                json=work_order_payload(quotation, params),
                headers={"Idempotency-Key": quotation.id},
            )
        except httpx.HTTPError as exc:
            self.logger.log_operation_failed("create_work_order", exc, quotation_id=quotation.id)
            raise WorkOrderError(
                f"Work order subsystem unreachable: {exc}",
                quotation_id=quotation.id,
            ) from exc

        if response.status_code >= 400:
            error = WorkOrderError(
                f"Work order request failed: {response.status_code}",
                quotation_id=quotation.id,
                upstream_status=response.status_code,
            )
            self.logger.log_operation_failed(
                "create_work_order",
                error,
                quotation_id=quotation.id,
                response_body=response.text[:500],
            )
            raise error

        work_order_id = response.json().get("id")
        if not work_order_id:
            raise WorkOrderError("Work order response carried no id", quotation_id=quotation.id)

        self.logger.log_operation_complete(
            "create_work_order",
            quotation_id=quotation.id,
            work_order_id=work_order_id,
        )
        return str(work_order_id)

    @retry(
        retry=retry_if_exception_type(httpx.ConnectError),
        stop=stop_after_attempt(settings.work_orders.max_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def _post(self, path: str, json: dict, headers: dict) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            return await client.post(path, json=json, headers=headers)
