# admin_suppliers.py

import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from inventory_models import Supplier
from csv_export import csv_response
from dependencies import get_db_session
from schemas import SupplierIn

router = APIRouter(prefix="/admin/suppliers", tags=["suppliers"])
logger = logging.getLogger(__name__)

SUPPLIER_CSV_HEADERS = ["Name", "Contact Person", "Phone", "Email", "Address"]


def supplier_to_dict(s: Supplier) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "contact_person": s.contact_person,
        "phone": s.phone,
        "email": s.email,
        "address": s.address,
        "created_at": s.created_at.isoformat() if s.created_at else None,
    }


async def search_suppliers(session: AsyncSession, search: str | None) -> list[Supplier]:
    query = select(Supplier).order_by(Supplier.name)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            Supplier.name.ilike(pattern),
            Supplier.contact_person.ilike(pattern),
            Supplier.phone.ilike(pattern),
            Supplier.email.ilike(pattern),
        ))
    return (await session.execute(query)).scalars().all()


@router.get("")
async def list_suppliers(search: str = Query(None), session: AsyncSession = Depends(get_db_session)):
    return [supplier_to_dict(s) for s in await search_suppliers(session, search)]


@router.get("/export/csv")
async def export_suppliers_csv(search: str = Query(None), session: AsyncSession = Depends(get_db_session)):
    suppliers = await search_suppliers(session, search)
    rows = [[s.name, s.contact_person, s.phone, s.email, s.address] for s in suppliers]
    return csv_response("suppliers", SUPPLIER_CSV_HEADERS, rows)


@router.post("", status_code=201)
async def create_supplier(data: SupplierIn, session: AsyncSession = Depends(get_db_session)):
    supplier = Supplier(**{k: (v.strip() if isinstance(v, str) else v) or None for k, v in data.model_dump().items()})
    session.add(supplier)
    await session.commit()
    logger.info(f"Supplier '{supplier.name}' added")
    return supplier_to_dict(supplier)


@router.put("/{supplier_id}")
async def update_supplier(supplier_id: int, data: SupplierIn, session: AsyncSession = Depends(get_db_session)):
    supplier = await session.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    for field, value in data.model_dump().items():
        setattr(supplier, field, (value.strip() if isinstance(value, str) else value) or None)
    await session.commit()
    return supplier_to_dict(supplier)


@router.delete("/{supplier_id}")
async def delete_supplier(supplier_id: int, session: AsyncSession = Depends(get_db_session)):
    supplier = await session.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    await session.delete(supplier)
    await session.commit()
    return {"status": "ok"}
