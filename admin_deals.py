# admin_deals.py

import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from deal_models import Deal, DealProduct, DealProductFlavor, FlavorIngredient
from inventory_models import InventoryItem
from dependencies import get_db_session
from schemas import DealIn, DealUpdate, DealProductIn, BulkProductsIn

router = APIRouter(prefix="/admin/deals", tags=["deals"])
logger = logging.getLogger(__name__)


def ingredient_to_dict(link: FlavorIngredient) -> dict:
    item = link.inventory_item
    return {
        "id": link.id,
        "inventory_item_id": link.inventory_item_id,
        "quantity_per_item": str(link.quantity_per_item),
        "inventory_item": {
            "id": item.id,
            "name": item.name,
            "unit": item.unit.abbreviation if item.unit else None,
            "current_stock": str(item.current_stock),
        } if item else None,
    }


def product_to_dict(product: DealProduct) -> dict:
    return {
        "id": product.id,
        "deal_id": product.deal_id,
        "name": product.name,
        "description": product.description,
        "quantity": product.quantity,
        "flavors": [
            {
                "id": f.id,
                "flavor_name": f.flavor_name,
                "ingredients": [ingredient_to_dict(i) for i in f.ingredients],
            }
            for f in product.flavors
        ],
    }


def deal_to_dict(deal: Deal) -> dict:
    return {
        "id": deal.id,
        "name": deal.name,
        "description": deal.description,
        "price": str(deal.price),
        "image_url": deal.image_url,
        "is_active": deal.is_active,
        "sort_order": deal.sort_order,
        "created_at": deal.created_at.isoformat() if deal.created_at else None,
        "products": [product_to_dict(p) for p in deal.products],
    }


async def load_deal(session: AsyncSession, deal_id: int) -> Deal:
    deal = await session.get(Deal, deal_id, populate_existing=True)
    if not deal:
        raise HTTPException(status_code=404, detail="Deal not found")
    return deal


async def check_inventory_items(session: AsyncSession, products: List[DealProductIn]):
    wanted = {link.inventory_item_id for p in products for f in p.flavors for link in f.ingredients}
    if not wanted:
        return
    found = set((await session.execute(select(InventoryItem.id).where(InventoryItem.id.in_(wanted)))).scalars().all())
    missing = wanted - found
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown inventory items: {sorted(missing)}")


def build_flavors(flavors_in) -> List[DealProductFlavor]:
    return [
        DealProductFlavor(
            flavor_name=f.flavor_name.strip(),
            ingredients=[
                FlavorIngredient(inventory_item_id=link.inventory_item_id, quantity_per_item=link.quantity_per_item)
                for link in f.ingredients
            ],
        )
        for f in flavors_in
    ]


def build_product(product_in: DealProductIn) -> DealProduct:
    return DealProduct(
        name=product_in.name.strip(),
        description=product_in.description or None,
        quantity=product_in.quantity,
        flavors=build_flavors(product_in.flavors),
    )


@router.get("")
async def list_deals(
    search: str = Query(None),
    active_only: bool = Query(False),
    session: AsyncSession = Depends(get_db_session)
):
    query = select(Deal).order_by(Deal.sort_order, Deal.id)
    if search:
        query = query.where(or_(Deal.name.ilike(f"%{search}%"), Deal.description.ilike(f"%{search}%")))
    if active_only:
        query = query.where(Deal.is_active == True)
    deals = (await session.execute(query)).scalars().all()
    return [deal_to_dict(d) for d in deals]


@router.get("/{deal_id}")
async def get_deal(deal_id: int, session: AsyncSession = Depends(get_db_session)):
    return deal_to_dict(await load_deal(session, deal_id))


@router.post("", status_code=201)
async def create_deal(data: DealIn, session: AsyncSession = Depends(get_db_session)):
    await check_inventory_items(session, data.products)
    deal = Deal(
        name=data.name.strip(),
        description=data.description or None,
        price=data.price,
        image_url=data.image_url or None,
        is_active=data.is_active,
        sort_order=data.sort_order,
        products=[build_product(p) for p in data.products],
    )
    session.add(deal)
    await session.commit()
    logger.info(f"Deal '{deal.name}' created with {len(data.products)} product(s)")
    return deal_to_dict(await load_deal(session, deal.id))


@router.put("/{deal_id}")
async def update_deal(deal_id: int, data: DealUpdate, session: AsyncSession = Depends(get_db_session)):
    deal = await load_deal(session, deal_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(deal, field, value)
    await session.commit()
    return deal_to_dict(await load_deal(session, deal_id))


@router.delete("/{deal_id}")
async def delete_deal(deal_id: int, session: AsyncSession = Depends(get_db_session)):
    """Products, flavors and ingredient links go with the deal."""
    deal = await load_deal(session, deal_id)
    await session.delete(deal)
    await session.commit()
    logger.info(f"Deal #{deal_id} deleted")
    return {"status": "ok"}


@router.post("/{deal_id}/products", status_code=201)
async def add_product(deal_id: int, data: DealProductIn, session: AsyncSession = Depends(get_db_session)):
    deal = await load_deal(session, deal_id)
    await check_inventory_items(session, [data])
    product = build_product(data)
    deal.products.append(product)
    await session.commit()
    return deal_to_dict(await load_deal(session, deal_id))


@router.post("/{deal_id}/products/bulk", status_code=201)
async def add_products_bulk(deal_id: int, data: BulkProductsIn, session: AsyncSession = Depends(get_db_session)):
    deal = await load_deal(session, deal_id)
    await check_inventory_items(session, data.products)
    for product_in in data.products:
        deal.products.append(build_product(product_in))
    await session.commit()
    logger.info(f"{len(data.products)} product(s) added to deal #{deal_id}")
    return deal_to_dict(await load_deal(session, deal_id))


@router.put("/products/{product_id}")
async def update_product(product_id: int, data: DealProductIn, session: AsyncSession = Depends(get_db_session)):
    """Overwrites the product; its flavors and ingredient links are replaced."""
    product = await session.get(DealProduct, product_id, populate_existing=True)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    await check_inventory_items(session, [data])

    deal_id = product.deal_id
    product.name = data.name.strip()
    product.description = data.description or None
    product.quantity = data.quantity
    product.flavors = build_flavors(data.flavors)
    await session.commit()
    return deal_to_dict(await load_deal(session, deal_id))


@router.delete("/products/{product_id}")
async def delete_product(product_id: int, session: AsyncSession = Depends(get_db_session)):
    product = await session.get(DealProduct, product_id, populate_existing=True)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    await session.delete(product)
    await session.commit()
    return {"status": "ok"}
