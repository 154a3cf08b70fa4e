"""
Tests for the work order subsystem client.
"""

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from quotation_engine.models.quotation import Quotation
from quotation_engine.services.integrations.work_order_client import (
    HttpWorkOrderGateway, WorkOrderError, WorkOrderParams
)


@pytest.fixture
def quotation():
    return Quotation(
        id="6f1c2b1e-8a57-4d36-9c1f-0d2f7c1b9e55",
        quotation_number="QT-202610-0007",
        vehicle_model_id="TATA-LPT-1613",
        customer_name="Ravi Transport",
        base_total=Decimal("10000.00"),
        discounted_total=Decimal("8100.00"),
        final_total=Decimal("8000.00"),
    )


class TestHttpWorkOrderGateway:
    """Tests for HttpWorkOrderGateway."""

    @pytest.mark.asyncio
    async def test_sends_idempotency_key(self, quotation):
        """The quotation id is the idempotency key; the id comes back."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "WO-42"})

        gateway = HttpWorkOrderGateway(
            base_url="http://work-orders.test/api/v1",
            transport=httpx.MockTransport(handler),
        )
        work_order_id = await gateway.create_work_order(
            quotation,
            WorkOrderParams(appointment_date=date(2026, 11, 2), booking_amount=Decimal("5000")),
        )

        assert work_order_id == "WO-42"
        request = seen[0]
        assert request.url.path == "/api/v1/work-orders"
        assert request.headers["Idempotency-Key"] == quotation.id
        body = json.loads(request.content)
        assert body["final_total"] == "8000.00"
        assert body["appointment_date"] == "2026-11-02"
        assert body["booking_amount"] == "5000"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, quotation):
        gateway = HttpWorkOrderGateway(
            base_url="http://work-orders.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(503, text="down")),
        )
        with pytest.raises(WorkOrderError) as exc_info:
            await gateway.create_work_order(quotation, WorkOrderParams())

        assert exc_info.value.kind == "work_order_error"
        assert exc_info.value.context["upstream_status"] == 503

    @pytest.mark.asyncio
    async def test_connect_errors_are_retried(self, quotation):
        """A refused connection is retried; the second attempt succeeds."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(201, json={"id": "WO-43"})

        gateway = HttpWorkOrderGateway(
            base_url="http://work-orders.test",
            transport=httpx.MockTransport(handler),
        )
        assert await gateway.create_work_order(quotation, WorkOrderParams()) == "WO-43"
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_missing_id_raises(self, quotation):
        gateway = HttpWorkOrderGateway(
            base_url="http://work-orders.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(201, json={})),
        )
        with pytest.raises(WorkOrderError):
            await gateway.create_work_order(quotation, WorkOrderParams())
