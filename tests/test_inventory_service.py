import re
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from inventory_models import InventoryItem, StockHistory
from inventory_service import add_stock, adjust_stock, deduct_stock, generate_sku


def test_sku_format():
    assert re.fullmatch(r"CHI-ME-\d{4}", generate_sku("Chicken", "Meat"))
    assert re.fullmatch(r"BUN-XX-\d{4}", generate_sku("Buns"))


async def test_new_item_records_opening_stock(session, make_item):
    item = await make_item("Flour", current_stock=25, cost_per_unit=80)

    assert re.fullmatch(r"FLO-XX-\d{4}", item.sku)
    history = (await session.execute(select(StockHistory))).scalars().all()
    assert len(history) == 1
    assert history[0].transaction_type == "purchase"
    assert history[0].notes == "Initial stock"
    assert history[0].after_stock == Decimal("25")


async def test_item_without_stock_has_no_history(session, make_item):
    await make_item("Salt", current_stock=0)
    assert (await session.execute(select(StockHistory))).scalars().all() == []


async def test_add_stock_uses_weighted_average(session, make_item):
    item = await make_item("Beef", current_stock=10, cost_per_unit=100)

    item = await add_stock(session, item.id, 10, 200, batch_number="B-7",
                           expiry_date=date.today() + timedelta(days=30))

    assert item.current_stock == Decimal("20")
    assert item.average_cost == Decimal("150.00")
    assert item.cost_per_unit == Decimal("200")
    assert item.total_value == Decimal("3000.00")

    purchase = (await session.execute(
        select(StockHistory).where(StockHistory.batch_number == "B-7")
    )).scalars().one()
    assert purchase.before_stock == Decimal("10")
    assert purchase.after_stock == Decimal("20")
    assert purchase.total_cost == Decimal("2000")


async def test_add_stock_rejects_bad_input(session, make_item):
    item = await make_item()
    with pytest.raises(ValueError):
        await add_stock(session, item.id, 0, 10)
    with pytest.raises(ValueError):
        await add_stock(session, item.id, 5, -1)
    with pytest.raises(LookupError):
        await add_stock(session, 999, 5, 10)


async def test_negative_stock_does_not_dilute_average(session, make_item):
    item = await make_item("Oil", current_stock=2, cost_per_unit=100)
    await deduct_stock(session, item.id, 5)

    item = await add_stock(session, item.id, 10, 300)

    assert item.current_stock == Decimal("7")
    assert item.average_cost == Decimal("300.00")


async def test_adjust_logs_difference(session, make_item):
    item = await make_item("Rice", current_stock=10)

    item = await adjust_stock(session, item.id, 7, notes="Counted")

    assert item.current_stock == Decimal("7")
    row = (await session.execute(
        select(StockHistory).where(StockHistory.transaction_type == "adjustment")
    )).scalars().one()
    assert row.quantity == Decimal("-3")
    assert row.notes == "Counted"


async def test_deduct_writes_even_when_short(session, make_item):
    item = await make_item("Bread", current_stock=1)

    deduction = await deduct_stock(session, item.id, Decimal("2.5"))

    assert deduction.insufficient
    assert deduction.after_stock == Decimal("-1.5")
    fresh = await session.get(InventoryItem, item.id, populate_existing=True)
    assert fresh.current_stock == Decimal("-1.5")


async def test_deduct_unknown_item(session, db):
    with pytest.raises(LookupError):
        await deduct_stock(session, 424242, 1)
