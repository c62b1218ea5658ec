# inventory_service.py

import logging
import random
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from inventory_models import InventoryItem, InventoryCategory, StockHistory

logger = logging.getLogger(__name__)


def to_decimal(value) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def generate_sku(name: str, category_name: str | None = None) -> str:
    """
    NAME-CA-1234: first three letters of the name, first two of the category
    ("XX" without one) and a random four digit suffix.
    """
    if not name:
        return ""
    name_prefix = re.sub(r"[^A-Z]", "", name[:3].upper())
    cat_prefix = re.sub(r"[^A-Z]", "", category_name[:2].upper()) if category_name else "XX"
    return f"{name_prefix or 'ITM'}-{cat_prefix}-{random.randint(1000, 9999)}"


@dataclass
class StockDeduction:
    inventory_item_id: int
    name: str
    before_stock: Decimal
    quantity: Decimal
    after_stock: Decimal

    @property
    def insufficient(self) -> bool:
        return self.before_stock < self.quantity

    def to_dict(self) -> dict:
        return {
            "inventory_item_id": self.inventory_item_id,
            "name": self.name,
            "before_stock": str(self.before_stock),
            "quantity": str(self.quantity),
            "after_stock": str(self.after_stock),
            "insufficient": self.insufficient,
        }


async def create_inventory_item(session: AsyncSession, data: dict) -> InventoryItem:
    """
    Creates an item. Opening stock is recorded as a 'purchase' so that the
    movement log adds up to the current stock.
    """
    current_stock = to_decimal(data.get('current_stock'))
    cost_per_unit = to_decimal(data.get('cost_per_unit'))

    sku = data.get('sku')
    if not sku:
        category_name = None
        if data.get('category_id'):
            category = await session.get(InventoryCategory, data['category_id'])
            category_name = category.name if category else None
        sku = generate_sku(data['name'], category_name)

    item = InventoryItem(
        name=data['name'],
        sku=sku,
        category_id=data.get('category_id'),
        unit_id=data.get('unit_id'),
        supplier_id=data.get('supplier_id'),
        current_stock=current_stock,
        minimum_stock=to_decimal(data.get('minimum_stock')),
        cost_per_unit=cost_per_unit,
        average_cost=cost_per_unit,
        total_value=current_stock * cost_per_unit,
        last_purchase_date=date.today(),
    )
    session.add(item)
    await session.flush()

    if current_stock > 0:
        session.add(StockHistory(
            inventory_item_id=item.id,
            transaction_type='purchase',
            quantity=current_stock,
            cost_per_unit=cost_per_unit,
            total_cost=current_stock * cost_per_unit,
            supplier_id=data.get('supplier_id'),
            before_stock=Decimal(0),
            after_stock=current_stock,
            notes='Initial stock',
        ))

    await session.commit()
    return item


async def add_stock(
    session: AsyncSession, item_id: int, quantity, cost_per_unit,
    supplier_id: int = None, batch_number: str = None, expiry_date: date = None, notes: str = None
) -> InventoryItem:
    """Receives a purchase and recalculates the weighted average cost."""
    qty = to_decimal(quantity)
    price = to_decimal(cost_per_unit)
    if qty <= 0:
        raise ValueError("Quantity must be greater than 0")
    if price < 0:
        raise ValueError("Price cannot be negative")

    item = await session.get(InventoryItem, item_id, populate_existing=True)
    if not item:
        raise LookupError("Inventory item not found")

    before = to_decimal(item.current_stock)
    new_stock = before + qty

    # Negative stock has no value, so it does not dilute the average
    valued_qty = before if before > 0 else Decimal(0)
    total_old_value = valued_qty * to_decimal(item.average_cost)
    total_new_value = qty * price
    if valued_qty + qty > 0:
        new_average = (total_old_value + total_new_value) / (valued_qty + qty)
    else:
        new_average = price
    new_average = new_average.quantize(Decimal("0.01"))

    item.current_stock = new_stock
    item.average_cost = new_average
    item.cost_per_unit = price
    item.total_value = (new_stock * new_average).quantize(Decimal("0.01"))
    item.last_purchase_date = date.today()
    if supplier_id:
        item.supplier_id = supplier_id

    session.add(StockHistory(
        inventory_item_id=item.id,
        transaction_type='purchase',
        quantity=qty,
        cost_per_unit=price,
        total_cost=qty * price,
        supplier_id=supplier_id or item.supplier_id,
        batch_number=batch_number or None,
        expiry_date=expiry_date,
        notes=notes or None,
        before_stock=before,
        after_stock=new_stock,
    ))
    await session.commit()
    logger.info(f"Stock added for '{item.name}': {before} -> {new_stock}")
    return item


async def adjust_stock(session: AsyncSession, item_id: int, new_quantity, notes: str = None) -> InventoryItem:
    """Sets the stock to a counted value and logs the difference."""
    target = to_decimal(new_quantity)
    item = await session.get(InventoryItem, item_id, populate_existing=True)
    if not item:
        raise LookupError("Inventory item not found")

    before = to_decimal(item.current_stock)
    item.current_stock = target
    item.total_value = (target * to_decimal(item.average_cost)).quantize(Decimal("0.01"))

    session.add(StockHistory(
        inventory_item_id=item.id,
        transaction_type='adjustment',
        quantity=target - before,
        cost_per_unit=to_decimal(item.average_cost),
        total_cost=((target - before) * to_decimal(item.average_cost)).quantize(Decimal("0.01")),
        before_stock=before,
        after_stock=target,
        notes=notes or 'Manual adjustment',
    ))
    await session.commit()
    return item


async def deduct_stock(
    session: AsyncSession, item_id: int, quantity, order_id: int = None, notes: str = None
) -> StockDeduction:
    """
    Reads the current stock and writes back current - quantity.
    The write happens even if the result is negative; callers decide whether
    to warn. Each call is its own commit, there is no locking.
    """
    qty = to_decimal(quantity)
    try:
        item = await session.get(InventoryItem, item_id, populate_existing=True)
        if not item:
            raise LookupError(f"Inventory item {item_id} not found")

        before = to_decimal(item.current_stock)
        new_stock = before - qty

        item.current_stock = new_stock
        item.total_value = (new_stock * to_decimal(item.average_cost)).quantize(Decimal("0.01"))

        session.add(StockHistory(
            inventory_item_id=item.id,
            transaction_type='deduction',
            quantity=qty,
            cost_per_unit=to_decimal(item.average_cost),
            total_cost=(qty * to_decimal(item.average_cost)).quantize(Decimal("0.01")),
            before_stock=before,
            after_stock=new_stock,
            order_id=order_id,
            notes=notes,
        ))
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise

    if new_stock < 0:
        logger.warning(f"Stock for '{item.name}' went negative: {new_stock}")
    return StockDeduction(
        inventory_item_id=item.id,
        name=item.name,
        before_stock=before,
        quantity=qty,
        after_stock=new_stock,
    )
