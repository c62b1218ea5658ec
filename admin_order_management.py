# admin_order_management.py

import logging
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from models import Order, ORDER_STATUSES, STATUS_COMPLETED
from admin_reports import get_date_range, apply_date_filter
from csv_export import csv_response
from dependencies import get_db_session
from order_service import change_order_status, complete_all_open_orders, assign_delivery_boy, get_order, order_to_dict
from schemas import StatusChangeIn, AssignDeliveryIn

router = APIRouter(prefix="/admin/orders", tags=["orders"])
logger = logging.getLogger(__name__)

ORDER_CSV_HEADERS = [
    "Order Number", "Date", "Type", "Customer", "Phone", "Items",
    "Subtotal", "Tax", "Discount", "Total", "Payment Method", "Payment Status", "Status"
]


async def filtered_orders(
    session: AsyncSession, order_type: str | None, status: str | None, payment_method: str | None,
    preset: str | None, date_from: str | None, date_to: str | None, search: str | None
) -> list[Order]:
    query = select(Order)
    if order_type and order_type != "all":
        query = query.where(Order.order_type == order_type)
    if status and status != "all":
        query = query.where(Order.order_status == status)
    if payment_method and payment_method != "all":
        query = query.where(Order.payment_method == payment_method)
    if search:
        query = query.where(or_(
            Order.order_number.ilike(f"%{search}%"),
            Order.customer_name.ilike(f"%{search}%"),
        ))
    d_from, d_to = await get_date_range(preset, date_from, date_to)
    query = apply_date_filter(query, Order.order_date, d_from, d_to)
    return (await session.execute(query.order_by(Order.created_at.desc(), Order.id.desc()))).scalars().all()


@router.get("")
async def list_orders(
    order_type: str = Query(None),
    status: str = Query(None),
    payment_method: str = Query(None),
    preset: str = Query(None),
    date_from: str = Query(None),
    date_to: str = Query(None),
    search: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    orders = await filtered_orders(session, order_type, status, payment_method, preset, date_from, date_to, search)
    completed = [o for o in orders if o.order_status == STATUS_COMPLETED]
    revenue = sum((Decimal(str(o.total_amount)) for o in completed), Decimal(0))

    return {
        "orders": [order_to_dict(o) for o in orders],
        "analytics": {
            "total_orders": len(orders),
            "total_revenue": str(revenue),
            "average_order_value": str((revenue / len(completed)).quantize(Decimal("0.01")) if completed else Decimal("0.00")),
            "by_status": {s: sum(1 for o in orders if o.order_status == s) for s in ORDER_STATUSES},
        },
    }


@router.get("/export/csv")
async def export_orders_csv(
    order_type: str = Query(None),
    status: str = Query(None),
    payment_method: str = Query(None),
    preset: str = Query(None),
    date_from: str = Query(None),
    date_to: str = Query(None),
    search: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    orders = await filtered_orders(session, order_type, status, payment_method, preset, date_from, date_to, search)
    rows = [
        [
            o.order_number,
            o.created_at.strftime('%Y-%m-%d %H:%M') if o.created_at else "",
            o.order_type,
            o.customer_name,
            o.phone_number,
            o.order_instructions,
            o.subtotal, o.tax_amount, o.discount_amount, o.total_amount,
            o.payment_method, o.payment_status, o.order_status,
        ]
        for o in orders
    ]
    return csv_response("orders", ORDER_CSV_HEADERS, rows)


@router.post("/complete-all")
async def complete_all(session: AsyncSession = Depends(get_db_session)):
    count = await complete_all_open_orders(session, actor_info="Admin")
    return {"status": "ok", "updated": count}


@router.get("/{order_id}")
async def order_detail(order_id: int, session: AsyncSession = Depends(get_db_session)):
    try:
        order = await get_order(session, order_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return order_to_dict(order, with_history=True)


@router.post("/{order_id}/status")
async def set_order_status(order_id: int, data: StatusChangeIn, session: AsyncSession = Depends(get_db_session)):
    try:
        order = await change_order_status(session, order_id, data.status, data.reason, actor_info="Admin")
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return order_to_dict(order, with_history=True)


@router.post("/{order_id}/assign-delivery")
async def assign_delivery(order_id: int, data: AssignDeliveryIn, session: AsyncSession = Depends(get_db_session)):
    try:
        order = await assign_delivery_boy(session, order_id, data.delivery_boy_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return order_to_dict(order)
