# order_service.py
"""
Deal orders: turning a cart into an order row and pulling the ingredients
of every selected flavor out of stock.

Deduction is sequential and non-transactional. Each ingredient
is its own read/modify/write, so a failure halfway through leaves the
earlier deductions in place; the failure is reported, not rolled back.
"""
import logging
import os
import random
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cart import Cart
from deal_models import DealProductFlavor, FlavorIngredient
from inventory_models import InventoryItem
from inventory_service import StockDeduction, deduct_stock, to_decimal
from models import (
    Order, OrderStatusHistory, DeliveryBoy, ORDER_STATUSES, ORDER_TYPES, PAYMENT_METHODS,
    STATUS_PENDING, STATUS_PREPARING, STATUS_READY, STATUS_COMPLETED, STATUS_CANCELLED, TERMINAL_STATUSES
)
from notification_manager import check_low_stock_and_notify, notify_new_order_to_staff, notify_order_status_change

logger = logging.getLogger(__name__)

# (inventory_item_id, quantity_per_item)
IngredientLink = Tuple[int, Decimal]

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_PREPARING, STATUS_CANCELLED},
    STATUS_PREPARING: {STATUS_READY, STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_READY: {STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
}


def generate_order_number() -> str:
    """ORD- + last 6 digits of the epoch in ms + 3 random digits"""
    millis = str(int(time.time() * 1000))
    return f"ORD-{millis[-6:]}{random.randint(0, 999):03d}"


def get_tax_rate() -> Decimal:
    return Decimal(os.environ.get('POS_TAX_RATE', '0'))


def format_amount(value) -> str:
    amount = to_decimal(value).quantize(Decimal("0.01"))
    if amount == amount.to_integral_value():
        return str(int(amount))
    return str(amount)


def build_order_instructions(cart: Cart) -> str:
    """
    One summary per line, e.g.
    "2x Family Deal (Rs 1500 each) - Includes: 2x Burger [Zinger], 1x Fries"
    """
    parts = []
    for line in cart.lines:
        products = []
        for product in line.products:
            text = f"{product.quantity}x {product.name}"
            if product.flavor_name:
                text += f" [{product.flavor_name}]"
            products.append(text)
        summary = f"{line.quantity}x {line.name} (Rs {format_amount(line.price)} each)"
        if products:
            summary += " - Includes: " + ", ".join(products)
        parts.append(summary)
    return " | ".join(parts)


def calculate_ingredient_requirements(
    cart: Cart, flavor_ingredients: Dict[int, List[IngredientLink]]
) -> Dict[int, Decimal]:
    """
    Total quantity needed per inventory item for the whole cart:
    quantity_per_item x product quantity x line quantity, summed.
    Products without a selected flavor need nothing.
    """
    requirements: Dict[int, Decimal] = OrderedDict()
    for line in cart.lines:
        for product in line.products:
            if product.flavor_id is None:
                continue
            for item_id, per_item in flavor_ingredients.get(product.flavor_id, []):
                required = to_decimal(per_item) * product.quantity * line.quantity
                requirements[item_id] = requirements.get(item_id, Decimal(0)) + required
    return requirements


async def resolve_flavor_ingredients(session: AsyncSession, flavor_id: int) -> List[IngredientLink]:
    """Ingredient links of one flavor. Unknown flavor -> LookupError."""
    flavor_exists = await session.scalar(select(DealProductFlavor.id).where(DealProductFlavor.id == flavor_id))
    if not flavor_exists:
        raise LookupError(f"Flavor {flavor_id} not found")
    rows = await session.execute(
        select(FlavorIngredient.inventory_item_id, FlavorIngredient.quantity_per_item)
        .where(FlavorIngredient.flavor_id == flavor_id)
        .order_by(FlavorIngredient.id)
    )
    return [(item_id, to_decimal(qty)) for item_id, qty in rows.all()]


async def load_flavor_ingredients(session: AsyncSession, cart: Cart) -> Dict[int, List[IngredientLink]]:
    result = {}
    for line in cart.lines:
        for product in line.products:
            if product.flavor_id is not None and product.flavor_id not in result:
                result[product.flavor_id] = await resolve_flavor_ingredients(session, product.flavor_id)
    return result


@dataclass
class DeductionResult:
    deductions: List[StockDeduction] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def touched_item_ids(self) -> List[int]:
        return list(OrderedDict.fromkeys(d.inventory_item_id for d in self.deductions))

    def to_dict(self) -> dict:
        return {
            "deductions": [d.to_dict() for d in self.deductions],
            "warnings": self.warnings,
            "errors": self.errors,
        }


async def apply_cart_deduction(
    session: AsyncSession, cart: Cart, order_id: int = None, order_number: str = None
) -> DeductionResult:
    """
    Walks line -> product -> ingredient and deducts each one on its own.
    Problems are collected and the walk goes on with the next ingredient.
    """
    result = DeductionResult()
    notes = f"Order {order_number}" if order_number else None

    for line in cart.lines:
        for product in line.products:
            if product.flavor_id is None:
                continue

            try:
                links = await resolve_flavor_ingredients(session, product.flavor_id)
            except (LookupError, SQLAlchemyError) as e:
                logger.error(f"Could not load ingredients for flavor {product.flavor_id}: {e}")
                result.errors.append(f"Error fetching ingredients for {product.flavor_name}")
                continue

            if not links:
                logger.warning(f"No ingredients configured for flavor '{product.flavor_name}'")
                result.warnings.append(f"No ingredients configured for {product.flavor_name}")
                continue

            for item_id, per_item in links:
                required = per_item * product.quantity * line.quantity
                try:
                    deduction = await deduct_stock(session, item_id, required, order_id=order_id, notes=notes)
                except LookupError as e:
                    logger.error(str(e))
                    result.errors.append(f"Inventory item {item_id} not found")
                    continue
                except SQLAlchemyError as e:
                    logger.error(f"Stock update failed for item {item_id}: {e}")
                    result.errors.append(f"Failed to update stock for item {item_id}")
                    continue

                result.deductions.append(deduction)
                if deduction.insufficient:
                    result.warnings.append(f"Low stock for {deduction.name}")

    return result


async def get_order(session: AsyncSession, order_id: int) -> Order:
    order = await session.get(Order, order_id, populate_existing=True)
    if not order:
        raise LookupError("Order not found")
    return order


async def place_deal_order(
    session: AsyncSession,
    cart: Cart,
    order_type: str = 'walkin',
    payment_method: str = 'Cash',
    payment_status: str = None,
    customer_name: str = None,
    phone_number: str = None,
    address: str = None,
    discount_amount=0,
    actor_info: str = "POS",
) -> Tuple[Order, DeductionResult]:
    """
    Saves the order first (status Pending), then deducts stock.
    A failed deduction never undoes the order.
    """
    if cart.is_empty:
        raise ValueError("Cart is empty")
    if order_type not in ORDER_TYPES:
        raise ValueError(f"Unknown order type: {order_type}")
    if payment_method not in PAYMENT_METHODS:
        raise ValueError(f"Unknown payment method: {payment_method}")

    discount = to_decimal(discount_amount)
    if discount < 0:
        raise ValueError("Discount cannot be negative")

    subtotal = cart.total()
    tax_amount = (subtotal * get_tax_rate()).quantize(Decimal("0.01"))
    total_amount = max(subtotal + tax_amount - discount, Decimal(0))
    if payment_status is None:
        payment_status = 'Unpaid' if payment_method == 'Unpaid' else 'Paid'

    order = Order(
        order_number=generate_order_number(),
        order_type=order_type,
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount,
        total_amount=total_amount,
        payment_method=payment_method,
        payment_status=payment_status,
        order_status=STATUS_PENDING,
        order_instructions=build_order_instructions(cart),
        customer_name=customer_name or None,
        phone_number=phone_number or None,
        address=address or None,
        history=[OrderStatusHistory(status=STATUS_PENDING, actor_info=actor_info)],
    )
    session.add(order)
    await session.commit()
    order_id, order_number = order.id, order.order_number
    logger.info(f"Order {order_number} created, total {total_amount}")

    result = await apply_cart_deduction(session, cart, order_id=order_id, order_number=order_number)
    if result.errors:
        logger.error(f"Order {order_number}: {len(result.errors)} ingredient(s) were not deducted")

    for item_id in result.touched_item_ids:
        try:
            item = await session.get(InventoryItem, item_id, populate_existing=True)
            if item:
                await check_low_stock_and_notify(session, item)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Low stock check failed for item {item_id}: {e}")

    order = await get_order(session, order_id)
    await notify_new_order_to_staff(order)
    return order, result


async def change_order_status(
    session: AsyncSession, order_id: int, new_status: str, reason: str = None, actor_info: str = "Admin"
) -> Order:
    if new_status not in ORDER_STATUSES:
        raise ValueError(f"Unknown status: {new_status}")

    order = await get_order(session, order_id)
    old_status = order.order_status
    if new_status == old_status:
        raise ValueError(f"Order is already {old_status}")
    if new_status not in ALLOWED_TRANSITIONS.get(old_status, set()):
        raise ValueError(f"Cannot change status from {old_status} to {new_status}")

    if new_status == STATUS_CANCELLED:
        if not reason or not reason.strip():
            raise ValueError("Please provide a cancellation reason")
        order.cancellation_reason = reason.strip()

    order.order_status = new_status
    order.history.append(OrderStatusHistory(status=new_status, actor_info=actor_info))
    await session.commit()
    logger.info(f"Order {order.order_number}: {old_status} -> {new_status} by {actor_info}")

    order = await get_order(session, order_id)
    await notify_order_status_change(order, old_status, actor_info)
    return order


async def complete_all_open_orders(session: AsyncSession, actor_info: str = "Admin") -> int:
    """Marks every order that is not Completed/Cancelled as Completed."""
    orders = (await session.execute(
        select(Order).where(Order.order_status.not_in(TERMINAL_STATUSES))
    )).scalars().all()

    for order in orders:
        order.order_status = STATUS_COMPLETED
        order.history.append(OrderStatusHistory(status=STATUS_COMPLETED, actor_info=actor_info))
    await session.commit()

    if orders:
        logger.info(f"{len(orders)} open order(s) marked as Completed by {actor_info}")
    return len(orders)


async def assign_delivery_boy(session: AsyncSession, order_id: int, delivery_boy_id: int | None) -> Order:
    order = await get_order(session, order_id)
    if order.order_status in TERMINAL_STATUSES:
        raise ValueError("Cannot assign delivery for a closed order")

    if delivery_boy_id:
        delivery_boy = await session.get(DeliveryBoy, delivery_boy_id)
        if not delivery_boy:
            raise LookupError("Delivery boy not found")
        if delivery_boy.status != 'active':
            raise ValueError(f"{delivery_boy.name} is not active")
        order.delivery_boy_id = delivery_boy.id
    else:
        order.delivery_boy_id = None

    await session.commit()
    return await get_order(session, order_id)


def order_to_dict(order: Order, with_history: bool = False) -> dict:
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "order_type": order.order_type,
        "subtotal": str(order.subtotal),
        "tax_amount": str(order.tax_amount),
        "discount_amount": str(order.discount_amount),
        "total_amount": str(order.total_amount),
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "order_status": order.order_status,
        "order_instructions": order.order_instructions,
        "cancellation_reason": order.cancellation_reason,
        "customer_name": order.customer_name,
        "phone_number": order.phone_number,
        "address": order.address,
        "delivery_boy_id": order.delivery_boy_id,
        "delivery_boy": order.delivery_boy.name if order.delivery_boy else None,
        "order_date": order.order_date.isoformat() if order.order_date else None,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }
    if with_history:
        data["history"] = [
            {"status": h.status, "actor_info": h.actor_info, "timestamp": h.timestamp.isoformat()}
            for h in sorted(order.history, key=lambda h: h.id)
        ]
    return data
