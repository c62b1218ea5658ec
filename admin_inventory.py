# admin_inventory.py

import logging
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError

from inventory_models import InventoryItem, InventoryCategory, Unit, StockHistory
from inventory_service import create_inventory_item, add_stock, adjust_stock
from notification_manager import check_low_stock_and_notify
from csv_export import csv_response
from dependencies import get_db_session
from schemas import InventoryItemIn, InventoryItemUpdate, AddStockIn, AdjustStockIn, NameIn, UnitIn

router = APIRouter(prefix="/admin/inventory", tags=["inventory"])
logger = logging.getLogger(__name__)


def item_to_dict(item: InventoryItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "sku": item.sku,
        "category_id": item.category_id,
        "category": item.category.name if item.category else None,
        "unit_id": item.unit_id,
        "unit": item.unit.abbreviation if item.unit else None,
        "supplier_id": item.supplier_id,
        "supplier": item.supplier.name if item.supplier else None,
        "current_stock": str(item.current_stock),
        "minimum_stock": str(item.minimum_stock),
        "cost_per_unit": str(item.cost_per_unit),
        "average_cost": str(item.average_cost),
        "total_value": str(item.total_value),
        "last_purchase_date": item.last_purchase_date.isoformat() if item.last_purchase_date else None,
        "is_low_stock": item.current_stock <= item.minimum_stock,
    }


def history_to_dict(h: StockHistory) -> dict:
    return {
        "id": h.id,
        "inventory_item_id": h.inventory_item_id,
        "item_name": h.inventory_item.name if h.inventory_item else None,
        "transaction_type": h.transaction_type,
        "quantity": str(h.quantity),
        "cost_per_unit": str(h.cost_per_unit),
        "total_cost": str(h.total_cost),
        "before_stock": str(h.before_stock),
        "after_stock": str(h.after_stock),
        "supplier": h.supplier.name if h.supplier else None,
        "batch_number": h.batch_number,
        "expiry_date": h.expiry_date.isoformat() if h.expiry_date else None,
        "notes": h.notes,
        "order_id": h.order_id,
        "created_at": h.created_at.isoformat() if h.created_at else None,
    }


async def load_item(session: AsyncSession, item_id: int) -> InventoryItem:
    item = await session.get(InventoryItem, item_id, populate_existing=True)
    if not item:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item


async def filtered_items(session: AsyncSession, search: str | None, category_id: int | None, low_stock: bool):
    query = select(InventoryItem).order_by(InventoryItem.name)
    if search:
        query = query.where(or_(InventoryItem.name.ilike(f"%{search}%"), InventoryItem.sku.ilike(f"%{search}%")))
    if category_id:
        query = query.where(InventoryItem.category_id == category_id)
    if low_stock:
        query = query.where(InventoryItem.current_stock <= InventoryItem.minimum_stock)
    return (await session.execute(query)).scalars().all()


# --- ITEMS ---
@router.get("/items")
async def list_items(
    search: str = Query(None),
    category_id: int = Query(None),
    low_stock: bool = Query(False),
    session: AsyncSession = Depends(get_db_session)
):
    items = await filtered_items(session, search, category_id, low_stock)
    return {
        "items": [item_to_dict(i) for i in items],
        "stats": {
            "total_items": len(items),
            "total_value": str(sum((Decimal(str(i.total_value or 0)) for i in items), Decimal(0))),
            "low_stock": sum(1 for i in items if 0 < i.current_stock <= i.minimum_stock),
            "out_of_stock": sum(1 for i in items if i.current_stock <= 0),
        },
    }


@router.get("/items/export/csv")
async def export_items_csv(
    search: str = Query(None),
    category_id: int = Query(None),
    low_stock: bool = Query(False),
    session: AsyncSession = Depends(get_db_session)
):
    items = await filtered_items(session, search, category_id, low_stock)
    headers = ["Name", "SKU", "Category", "Unit", "Current Stock", "Minimum Stock",
               "Average Cost", "Total Value", "Supplier"]
    rows = [
        [i.name, i.sku, i.category.name if i.category else "", i.unit.abbreviation if i.unit else "",
         i.current_stock, i.minimum_stock, i.average_cost, i.total_value, i.supplier.name if i.supplier else ""]
        for i in items
    ]
    return csv_response("inventory", headers, rows)


@router.post("/items", status_code=201)
async def create_item(data: InventoryItemIn, session: AsyncSession = Depends(get_db_session)):
    item = await create_inventory_item(session, data.model_dump())
    logger.info(f"Inventory item '{item.name}' ({item.sku}) created")
    item = await load_item(session, item.id)
    await check_low_stock_and_notify(session, item)
    return item_to_dict(item)


@router.get("/items/{item_id}")
async def get_item(item_id: int, session: AsyncSession = Depends(get_db_session)):
    return item_to_dict(await load_item(session, item_id))


@router.put("/items/{item_id}")
async def update_item(item_id: int, data: InventoryItemUpdate, session: AsyncSession = Depends(get_db_session)):
    """Stock levels change only through add-stock and adjust."""
    item = await load_item(session, item_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(item, field, value)
    await session.commit()
    item = await load_item(session, item_id)
    await check_low_stock_and_notify(session, item)
    return item_to_dict(item)


@router.delete("/items/{item_id}")
async def delete_item(item_id: int, session: AsyncSession = Depends(get_db_session)):
    item = await load_item(session, item_id)
    await session.delete(item)
    await session.commit()
    logger.info(f"Inventory item #{item_id} deleted")
    return {"status": "ok"}


@router.post("/items/{item_id}/add-stock")
async def add_item_stock(item_id: int, data: AddStockIn, session: AsyncSession = Depends(get_db_session)):
    try:
        await add_stock(
            session, item_id, data.quantity, data.cost_per_unit,
            supplier_id=data.supplier_id, batch_number=data.batch_number,
            expiry_date=data.expiry_date, notes=data.notes,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    item = await load_item(session, item_id)
    await check_low_stock_and_notify(session, item)
    return item_to_dict(item)


@router.post("/items/{item_id}/adjust")
async def adjust_item_stock(item_id: int, data: AdjustStockIn, session: AsyncSession = Depends(get_db_session)):
    try:
        await adjust_stock(session, item_id, data.new_quantity, data.notes)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    item = await load_item(session, item_id)
    await check_low_stock_and_notify(session, item)
    return item_to_dict(item)


@router.get("/transactions")
async def list_transactions(
    item_id: int = Query(None),
    transaction_type: str = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    session: AsyncSession = Depends(get_db_session)
):
    query = select(StockHistory).order_by(StockHistory.created_at.desc(), StockHistory.id.desc()).limit(limit)
    if item_id:
        query = query.where(StockHistory.inventory_item_id == item_id)
    if transaction_type and transaction_type != "all":
        query = query.where(StockHistory.transaction_type == transaction_type)
    rows = (await session.execute(query)).scalars().all()
    return [history_to_dict(h) for h in rows]


# --- REFERENCE DATA ---
@router.get("/categories")
async def list_categories(session: AsyncSession = Depends(get_db_session)):
    categories = (await session.execute(select(InventoryCategory).order_by(InventoryCategory.name))).scalars().all()
    return [{"id": c.id, "name": c.name} for c in categories]


@router.post("/categories", status_code=201)
async def create_category(data: NameIn, session: AsyncSession = Depends(get_db_session)):
    category = InventoryCategory(name=data.name.strip())
    session.add(category)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=400, detail="Category already exists")
    return {"id": category.id, "name": category.name}


@router.delete("/categories/{category_id}")
async def delete_category(category_id: int, session: AsyncSession = Depends(get_db_session)):
    category = await session.get(InventoryCategory, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    await session.delete(category)
    await session.commit()
    return {"status": "ok"}


@router.get("/units")
async def list_units(session: AsyncSession = Depends(get_db_session)):
    units = (await session.execute(select(Unit).order_by(Unit.id))).scalars().all()
    return [{"id": u.id, "name": u.name, "abbreviation": u.abbreviation} for u in units]


@router.post("/units", status_code=201)
async def create_unit(data: UnitIn, session: AsyncSession = Depends(get_db_session)):
    unit = Unit(name=data.name.strip(), abbreviation=data.abbreviation.strip())
    session.add(unit)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=400, detail="Unit already exists")
    return {"id": unit.id, "name": unit.name, "abbreviation": unit.abbreviation}
