# pos_orders.py

import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from admin_deals import deal_to_dict
from cart import Cart
from deal_models import Deal
from inventory_models import InventoryItem
from dependencies import get_db_session
from models import Order
from order_service import (
    calculate_ingredient_requirements, load_flavor_ingredients, place_deal_order,
    build_order_instructions, change_order_status, order_to_dict
)
from schemas import CartIn, PlaceOrderIn, StatusChangeIn

router = APIRouter(prefix="/pos", tags=["pos"])
logger = logging.getLogger(__name__)


async def build_cart(session: AsyncSession, data: CartIn) -> Cart:
    cart = Cart()
    for line in data.items:
        deal = await session.get(Deal, line.deal_id)
        if not deal:
            raise HTTPException(status_code=404, detail=f"Deal #{line.deal_id} not found")
        if not deal.is_active:
            raise HTTPException(status_code=400, detail=f"Deal '{deal.name}' is not available")
        try:
            cart.add_deal(deal, line.selected_flavors, line.quantity)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    return cart


@router.get("/menu")
async def get_menu(session: AsyncSession = Depends(get_db_session)):
    deals = (await session.execute(
        select(Deal).where(Deal.is_active == True).order_by(Deal.sort_order, Deal.name)
    )).scalars().all()
    return [deal_to_dict(d) for d in deals]


@router.post("/cart/preview")
async def preview_cart(data: CartIn, session: AsyncSession = Depends(get_db_session)):
    """Cart total and the stock the order would consume, without touching stock."""
    cart = await build_cart(session, data)
    try:
        flavor_ingredients = await load_flavor_ingredients(session, cart)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    requirements = calculate_ingredient_requirements(cart, flavor_ingredients)

    items = {}
    if requirements:
        rows = (await session.execute(
            select(InventoryItem).where(InventoryItem.id.in_(list(requirements.keys())))
        )).scalars().all()
        items = {i.id: i for i in rows}

    ingredients = []
    for item_id, required in requirements.items():
        item = items.get(item_id)
        ingredients.append({
            "inventory_item_id": item_id,
            "name": item.name if item else None,
            "unit": item.unit.abbreviation if item and item.unit else None,
            "required": str(required),
            "current_stock": str(item.current_stock) if item else None,
            "sufficient": bool(item) and item.current_stock >= required,
        })

    return {
        "cart": cart.to_dict(),
        "order_instructions": build_order_instructions(cart),
        "ingredients": ingredients,
    }


@router.post("/orders", status_code=201)
async def place_order(data: PlaceOrderIn, session: AsyncSession = Depends(get_db_session)):
    cart = await build_cart(session, data)
    try:
        order, result = await place_deal_order(
            session, cart,
            order_type=data.order_type,
            payment_method=data.payment_method,
            payment_status=data.payment_status,
            customer_name=data.customer_name,
            phone_number=data.phone_number,
            address=data.address,
            discount_amount=data.discount_amount,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"order": order_to_dict(order), **result.to_dict()}


@router.get("/orders")
async def recent_orders(limit: int = Query(20, ge=1, le=200), session: AsyncSession = Depends(get_db_session)):
    orders = (await session.execute(
        select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)
    )).scalars().all()
    return [order_to_dict(o) for o in orders]


@router.post("/orders/{order_id}/status")
async def quick_status(order_id: int, data: StatusChangeIn, session: AsyncSession = Depends(get_db_session)):
    try:
        order = await change_order_status(session, order_id, data.status, data.reason, actor_info="POS")
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return order_to_dict(order)
