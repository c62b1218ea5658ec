# admin_reports.py

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from models import Order, Expense, STATUS_COMPLETED
from csv_export import csv_response
from dependencies import get_db_session
from schemas import ExpenseIn

router = APIRouter(prefix="/admin/reports", tags=["reports"])
logger = logging.getLogger(__name__)

DATE_PRESETS = ["today", "yesterday", "this_week", "this_month", "last_month", "custom", "all"]
MAX_CUSTOM_RANGE_DAYS = 366


# --- Date helper ---
async def get_date_range(preset: str | None, date_from_str: str | None = None, date_to_str: str | None = None,
                         today: date | None = None):
    """
    Returns (d_from, d_to); None on either side means unbounded.
    'custom' reads YYYY-MM-DD strings, defaulting to today, and spans at most a year.
    """
    today = today or date.today()
    if not preset or preset == "all":
        return None, None
    if preset not in DATE_PRESETS:
        raise HTTPException(status_code=400, detail=f"Unknown date preset: {preset}")
    if preset == "today":
        return today, today
    if preset == "yesterday":
        yesterday = today - timedelta(days=1)
        return yesterday, yesterday
    if preset == "this_week":
        return today - timedelta(days=today.weekday()), today
    if preset == "this_month":
        return today.replace(day=1), today
    if preset == "last_month":
        last_day = today.replace(day=1) - timedelta(days=1)
        return last_day.replace(day=1), last_day

    try:
        d_to = datetime.strptime(date_to_str, "%Y-%m-%d").date() if date_to_str else today
        d_from = datetime.strptime(date_from_str, "%Y-%m-%d").date() if date_from_str else d_to
    except ValueError:
        raise HTTPException(status_code=400, detail="Dates must be YYYY-MM-DD")
    if d_from > d_to:
        raise HTTPException(status_code=400, detail="date_from is after date_to")
    if (d_to - d_from).days > MAX_CUSTOM_RANGE_DAYS:
        raise HTTPException(status_code=400, detail=f"Custom range is limited to {MAX_CUSTOM_RANGE_DAYS} days")
    return d_from, d_to


def apply_date_filter(query, column, d_from: date | None, d_to: date | None):
    if d_from:
        query = query.where(column >= d_from)
    if d_to:
        query = query.where(column <= d_to)
    return query


def _days(d_from: date, d_to: date) -> list[date]:
    return [d_from + timedelta(days=i) for i in range((d_to - d_from).days + 1)]


def _money(value: Decimal) -> str:
    return str(Decimal(value).quantize(Decimal("0.01")))


async def collect_sales(session: AsyncSession, d_from, d_to) -> dict:
    orders = (await session.execute(
        apply_date_filter(select(Order), Order.order_date, d_from, d_to).order_by(Order.order_date)
    )).scalars().all()
    completed = [o for o in orders if o.order_status == STATUS_COMPLETED]

    revenue = sum((Decimal(str(o.total_amount)) for o in completed), Decimal(0))
    orders_by_type = {}
    for o in orders:
        orders_by_type[o.order_type] = orders_by_type.get(o.order_type, 0) + 1

    payment_methods = {}
    for o in completed:
        entry = payment_methods.setdefault(o.payment_method, {"count": 0, "amount": Decimal(0)})
        entry["count"] += 1
        entry["amount"] += Decimal(str(o.total_amount))

    daily = OrderedDict()
    for o in completed:
        entry = daily.setdefault(o.order_date, {"orders": 0, "revenue": Decimal(0)})
        entry["orders"] += 1
        entry["revenue"] += Decimal(str(o.total_amount))

    return {
        "total_orders": len(orders),
        "completed_orders": len(completed),
        "total_revenue": revenue,
        "average_order_value": (revenue / len(completed)) if completed else Decimal(0),
        "orders_by_type": orders_by_type,
        "payment_methods": payment_methods,
        "daily": daily,
    }


async def collect_expenses(session: AsyncSession, d_from, d_to) -> dict:
    expenses = (await session.execute(
        apply_date_filter(select(Expense), Expense.expense_date, d_from, d_to).order_by(Expense.expense_date)
    )).scalars().all()

    by_category = {}
    daily = OrderedDict()
    total = Decimal(0)
    for e in expenses:
        amount = Decimal(str(e.amount))
        total += amount
        by_category[e.category] = by_category.get(e.category, Decimal(0)) + amount
        daily[e.expense_date] = daily.get(e.expense_date, Decimal(0)) + amount
    return {"expenses": expenses, "total": total, "by_category": by_category, "daily": daily}


def build_profit_rows(sales: dict, expenses: dict, d_from, d_to) -> list[dict]:
    known_days = set(sales["daily"].keys()) | set(expenses["daily"].keys())
    if d_from and d_to:
        days = _days(d_from, d_to)
    else:
        days = sorted(known_days)

    rows = []
    for day in days:
        revenue = sales["daily"].get(day, {}).get("revenue", Decimal(0))
        spent = expenses["daily"].get(day, Decimal(0))
        rows.append({"date": day, "revenue": revenue, "expenses": spent, "profit": revenue - spent})
    return rows


# --- 1. Sales ---
@router.get("/sales")
async def sales_report(
    preset: str = Query("this_month"),
    date_from: str = Query(None),
    date_to: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    d_from, d_to = await get_date_range(preset, date_from, date_to)
    sales = await collect_sales(session, d_from, d_to)
    return {
        "date_from": d_from.isoformat() if d_from else None,
        "date_to": d_to.isoformat() if d_to else None,
        "total_orders": sales["total_orders"],
        "completed_orders": sales["completed_orders"],
        "total_revenue": _money(sales["total_revenue"]),
        "average_order_value": _money(sales["average_order_value"]),
        "orders_by_type": sales["orders_by_type"],
        "payment_methods": {
            method: {"count": v["count"], "amount": _money(v["amount"])}
            for method, v in sales["payment_methods"].items()
        },
        "daily_trends": [
            {"date": day.isoformat(), "orders": v["orders"], "revenue": _money(v["revenue"])}
            for day, v in sales["daily"].items()
        ],
    }


# --- 2. Expenses ---
@router.get("/expenses")
async def expenses_report(
    preset: str = Query("this_month"),
    date_from: str = Query(None),
    date_to: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    d_from, d_to = await get_date_range(preset, date_from, date_to)
    data = await collect_expenses(session, d_from, d_to)
    return {
        "total_expenses": _money(data["total"]),
        "by_category": {k: _money(v) for k, v in sorted(data["by_category"].items(), key=lambda kv: -kv[1])},
        "daily": [{"date": day.isoformat(), "amount": _money(v)} for day, v in data["daily"].items()],
    }


# --- 3. Profit & loss ---
@router.get("/profit")
async def profit_report(
    preset: str = Query("this_month"),
    date_from: str = Query(None),
    date_to: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    d_from, d_to = await get_date_range(preset, date_from, date_to)
    sales = await collect_sales(session, d_from, d_to)
    expenses = await collect_expenses(session, d_from, d_to)

    revenue = sales["total_revenue"]
    net_profit = revenue - expenses["total"]
    margin = (net_profit / revenue * 100) if revenue else Decimal(0)

    return {
        "total_revenue": _money(revenue),
        "total_expenses": _money(expenses["total"]),
        "net_profit": _money(net_profit),
        "profit_margin": _money(margin),
        "daily": [
            {k: (v.isoformat() if k == "date" else _money(v)) for k, v in row.items()}
            for row in build_profit_rows(sales, expenses, d_from, d_to)
        ],
    }


@router.get("/profit/csv")
async def export_profit_csv(
    preset: str = Query("this_month"),
    date_from: str = Query(None),
    date_to: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    d_from, d_to = await get_date_range(preset, date_from, date_to)
    sales = await collect_sales(session, d_from, d_to)
    expenses = await collect_expenses(session, d_from, d_to)
    rows = [
        [row["date"].isoformat(), _money(row["revenue"]), _money(row["expenses"]), _money(row["profit"])]
        for row in build_profit_rows(sales, expenses, d_from, d_to)
    ]
    return csv_response("profit_loss", ["Date", "Revenue", "Expenses", "Profit"], rows)


# --- Expense records ---
def expense_to_dict(e: Expense) -> dict:
    return {
        "id": e.id,
        "category": e.category,
        "description": e.description,
        "amount": str(e.amount),
        "expense_date": e.expense_date.isoformat(),
    }


@router.get("/expense-items")
async def list_expenses(
    preset: str = Query("this_month"),
    date_from: str = Query(None),
    date_to: str = Query(None),
    category: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    d_from, d_to = await get_date_range(preset, date_from, date_to)
    query = apply_date_filter(select(Expense), Expense.expense_date, d_from, d_to)
    if category:
        query = query.where(Expense.category == category)
    expenses = (await session.execute(query.order_by(Expense.expense_date.desc(), Expense.id.desc()))).scalars().all()
    return [expense_to_dict(e) for e in expenses]


@router.post("/expense-items", status_code=201)
async def create_expense(data: ExpenseIn, session: AsyncSession = Depends(get_db_session)):
    expense = Expense(
        category=data.category.strip(),
        description=data.description or None,
        amount=data.amount,
        expense_date=data.expense_date or date.today(),
    )
    session.add(expense)
    await session.commit()
    logger.info(f"Expense {expense.amount} ({expense.category}) recorded")
    return expense_to_dict(expense)


@router.put("/expense-items/{expense_id}")
async def update_expense(expense_id: int, data: ExpenseIn, session: AsyncSession = Depends(get_db_session)):
    expense = await session.get(Expense, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    expense.category = data.category.strip()
    expense.description = data.description or None
    expense.amount = data.amount
    if data.expense_date:
        expense.expense_date = data.expense_date
    await session.commit()
    return expense_to_dict(expense)


@router.delete("/expense-items/{expense_id}")
async def delete_expense(expense_id: int, session: AsyncSession = Depends(get_db_session)):
    expense = await session.get(Expense, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    await session.delete(expense)
    await session.commit()
    return {"status": "ok"}
