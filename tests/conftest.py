import os
import tempfile
from decimal import Decimal

# Must be set before models.py is imported
_db_dir = tempfile.mkdtemp(prefix="pos-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
# Empty values keep python-dotenv from filling these from a local .env
for _name in ("ADMIN_BOT_TOKEN", "ADMIN_CHAT_ID", "EMAIL_USER", "EMAIL_PASSWORD"):
    os.environ[_name] = ""
os.environ["POS_TAX_RATE"] = "0"
os.environ["EXPIRY_CHECK_INTERVAL"] = "0"

import pytest
from httpx import ASGITransport, AsyncClient

import inventory_models  # noqa: F401
import deal_models  # noqa: F401
from models import Base, engine, async_session_maker, create_db_tables
from deal_models import Deal, DealProduct, DealProductFlavor, FlavorIngredient
from inventory_service import create_inventory_item
from main import app


@pytest.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await create_db_tables()
    yield
    await engine.dispose()


@pytest.fixture
async def session(db):
    async with async_session_maker() as s:
        yield s


@pytest.fixture
async def client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def make_item(session):
    async def _make(name="Beef", current_stock=10, minimum_stock=0, cost_per_unit=100):
        return await create_inventory_item(session, {
            "name": name,
            "current_stock": current_stock,
            "minimum_stock": minimum_stock,
            "cost_per_unit": cost_per_unit,
        })
    return _make


@pytest.fixture
def make_deal(session):
    """
    One deal with one product and one flavor.
    ingredients is a list of (inventory_item_id, quantity_per_item).
    """
    async def _make(ingredients, name="Family Deal", price="1500", product_quantity=2, flavor_name="Zinger"):
        deal = Deal(
            name=name,
            price=Decimal(price),
            products=[
                DealProduct(
                    name="Burger",
                    quantity=product_quantity,
                    flavors=[
                        DealProductFlavor(
                            flavor_name=flavor_name,
                            ingredients=[
                                FlavorIngredient(inventory_item_id=item_id, quantity_per_item=Decimal(str(qty)))
                                for item_id, qty in ingredients
                            ],
                        )
                    ],
                )
            ],
        )
        session.add(deal)
        await session.commit()
        return await session.get(Deal, deal.id, populate_existing=True)
    return _make
