from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from storefront.database import create_engine, create_session_factory, create_tables, get_session_factory
from storefront.domain.models import Product
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.main import create_app


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront-test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory)


@pytest.fixture
def seed(uow):
    """Register catalog products directly through the ledger."""

    async def _seed(*products: Product):
        async with uow() as u:
            for product in products:
                await u.inventory.add(product)
            await u.commit()

    return _seed


@pytest.fixture
def stock_of(uow):
    async def _stock_of(product_id: str) -> int:
        async with uow() as u:
            product = await u.inventory.get(product_id)
        return product.stock

    return _stock_of


@pytest.fixture
def lamp():
    return Product(id="prod-lamp", name="Desk Lamp", price=Decimal("19.99"), stock=10)


@pytest.fixture
def mug():
    return Product(id="prod-mug", name="Coffee Mug", price=Decimal("0.10"), stock=10)


@pytest_asyncio.fixture
async def client(session_factory):
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
