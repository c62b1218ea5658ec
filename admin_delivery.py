# admin_delivery.py

import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from models import DeliveryBoy
from csv_export import csv_response
from dependencies import get_db_session
from schemas import DeliveryBoyIn, DeliveryStatusIn

router = APIRouter(prefix="/admin/delivery-boys", tags=["delivery"])
logger = logging.getLogger(__name__)

DELIVERY_CSV_HEADERS = ["Name", "Phone", "Email", "Address", "Vehicle Type", "License Number", "Status"]


def delivery_boy_to_dict(d: DeliveryBoy) -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "phone": d.phone,
        "email": d.email,
        "address": d.address,
        "vehicle_type": d.vehicle_type,
        "license_number": d.license_number,
        "status": d.status,
        "created_at": d.created_at.isoformat() if d.created_at else None,
    }


async def search_delivery_boys(session: AsyncSession, search: str | None, status: str | None) -> list[DeliveryBoy]:
    query = select(DeliveryBoy).order_by(DeliveryBoy.created_at.desc(), DeliveryBoy.id.desc())
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            DeliveryBoy.name.ilike(pattern),
            DeliveryBoy.phone.ilike(pattern),
            DeliveryBoy.email.ilike(pattern),
            DeliveryBoy.vehicle_type.ilike(pattern),
        ))
    if status and status != "all":
        query = query.where(DeliveryBoy.status == status)
    return (await session.execute(query)).scalars().all()


def _clean(data: dict) -> dict:
    return {k: (v.strip() if isinstance(v, str) else v) or None for k, v in data.items()}


@router.get("")
async def list_delivery_boys(
    search: str = Query(None),
    status: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    boys = await search_delivery_boys(session, search, status)
    everyone = boys if not (search or status) else await search_delivery_boys(session, None, None)
    return {
        "delivery_boys": [delivery_boy_to_dict(d) for d in boys],
        "stats": {
            "total": len(everyone),
            "active": sum(1 for d in everyone if d.status == 'active'),
            "inactive": sum(1 for d in everyone if d.status != 'active'),
        },
    }


@router.get("/export/csv")
async def export_delivery_boys_csv(
    search: str = Query(None),
    status: str = Query(None),
    session: AsyncSession = Depends(get_db_session)
):
    boys = await search_delivery_boys(session, search, status)
    rows = [[d.name, d.phone, d.email, d.address, d.vehicle_type, d.license_number, d.status] for d in boys]
    return csv_response("delivery_boys", DELIVERY_CSV_HEADERS, rows)


@router.post("", status_code=201)
async def create_delivery_boy(data: DeliveryBoyIn, session: AsyncSession = Depends(get_db_session)):
    delivery_boy = DeliveryBoy(**_clean(data.model_dump()), status='active')
    session.add(delivery_boy)
    await session.commit()
    logger.info(f"Delivery boy '{delivery_boy.name}' added")
    return delivery_boy_to_dict(delivery_boy)


@router.put("/{delivery_boy_id}")
async def update_delivery_boy(delivery_boy_id: int, data: DeliveryBoyIn, session: AsyncSession = Depends(get_db_session)):
    delivery_boy = await session.get(DeliveryBoy, delivery_boy_id)
    if not delivery_boy:
        raise HTTPException(status_code=404, detail="Delivery boy not found")
    for field, value in _clean(data.model_dump()).items():
        setattr(delivery_boy, field, value)
    await session.commit()
    return delivery_boy_to_dict(delivery_boy)


@router.post("/{delivery_boy_id}/status")
async def set_delivery_boy_status(delivery_boy_id: int, data: DeliveryStatusIn, session: AsyncSession = Depends(get_db_session)):
    delivery_boy = await session.get(DeliveryBoy, delivery_boy_id)
    if not delivery_boy:
        raise HTTPException(status_code=404, detail="Delivery boy not found")
    delivery_boy.status = data.status
    await session.commit()
    return delivery_boy_to_dict(delivery_boy)


@router.delete("/{delivery_boy_id}")
async def delete_delivery_boy(delivery_boy_id: int, session: AsyncSession = Depends(get_db_session)):
    delivery_boy = await session.get(DeliveryBoy, delivery_boy_id)
    if not delivery_boy:
        raise HTTPException(status_code=404, detail="Delivery boy not found")
    await session.delete(delivery_boy)
    await session.commit()
    return {"status": "ok"}
