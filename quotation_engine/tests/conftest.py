"""
Shared fixtures for the quotation engine tests.
"""

import os

# Keep the module-level engine off the production database
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "console")

from dataclasses import dataclass, field
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from quotation_engine.database.base import build_engine, build_session_factory, init_db
from quotation_engine.models.quotation import Quotation
from quotation_engine.services.integrations.work_order_client import WorkOrderParams
from quotation_engine.services.quotation import (
    CatalogService, FeatureInput, QuotationService, price_cache
)
from quotation_engine.utils.security import create_access_token

VEHICLE_MODEL = "TATA-LPT-1613"


@dataclass
class FakeWorkOrderGateway:
    """Records hand-offs instead of calling the work order subsystem."""
    calls: list[tuple[str, WorkOrderParams]] = field(default_factory=list)

    async def create_work_order(self, quotation: Quotation, params: WorkOrderParams) -> str:
        self.calls.append((quotation.id, params))
        return f"WO-{len(self.calls):04d}"


@pytest.fixture(autouse=True)
def clear_price_cache():
    """Each test starts with an empty process-wide price cache."""
    price_cache.invalidate()
    yield
    price_cache.invalidate()


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed sqlite database so separate sessions share state."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'quotations.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(session):
    return QuotationService(session)


@pytest.fixture
def gateway():
    return FakeWorkOrderGateway()


@pytest_asyncio.fixture
async def catalog(session):
    """
    Flooring category with two feature types. VEHICLE_MODEL has a
    category-level price (4000) and an aluminium-specific price (5500).
    """
    catalog_service = CatalogService(session)
    flooring = await catalog_service.create_category("Flooring")
    aluminium = await catalog_service.create_feature_type("Aluminium chequered", flooring.id)
    wooden = await catalog_service.create_feature_type("Wooden planks", flooring.id)
    await catalog_service.upsert_price(VEHICLE_MODEL, "4000", feature_category_id=flooring.id)
    await catalog_service.upsert_price(VEHICLE_MODEL, "5500", feature_type_id=aluminium.id)
    await session.commit()
    return {"flooring": flooring, "aluminium": aluminium, "wooden": wooden}


async def create_priced_quotation(service: QuotationService, base_total: str = "10000") -> Quotation:
    """Draft quotation with a single custom line item worth `base_total`."""
    return await service.create_quotation(
        vehicle_model_id=VEHICLE_MODEL,
        customer_name="Ravi Transport",
        customer_phone="9800000001",
        vehicle_number="KA-01-AB-1234",
        features=[FeatureInput(custom_name="Body shell", quantity=1, unit_price=Decimal(base_total))],
        created_by="alice",
    )


@pytest.fixture
def make_quotation(service):
    """Factory for draft quotations priced by one custom line item."""
    async def make(base_total: str = "10000") -> Quotation:
        return await create_priced_quotation(service, base_total)
    return make


@pytest.fixture
def auth_headers():
    token = create_access_token({"sub": "user-1", "username": "alice"})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory, gateway):
    """API client over ASGI with the test database and fake gateway."""
    from quotation_engine.api.dependencies import get_db, get_work_order_gateway
    from quotation_engine.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_work_order_gateway] = lambda: gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
