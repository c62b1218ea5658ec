# cart.py
"""
In-memory cart of deals for the POS screen.

A line is one deal with one flavor chosen per sub-product. Adding the same
deal with the same flavor selection again bumps the quantity of the existing
line instead of creating a new one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional


@dataclass
class CartProduct:
    deal_product_id: int
    name: str
    quantity: int
    flavor_id: Optional[int] = None
    flavor_name: Optional[str] = None


@dataclass
class CartLine:
    deal_id: int
    name: str
    price: Decimal
    quantity: int
    products: List[CartProduct] = field(default_factory=list)

    def selection_key(self) -> tuple:
        return tuple(p.flavor_id for p in self.products)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class Cart:
    def __init__(self):
        self.lines: List[CartLine] = []

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def add_deal(self, deal, selected_flavors: Dict[int, int] | None = None, quantity: int = 1) -> CartLine:
        """
        Adds a deal (anything with id/name/price/products) to the cart.
        selected_flavors maps deal_product_id -> flavor id. A product with
        flavors and no selection gets its first flavor.
        """
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")
        selected_flavors = selected_flavors or {}

        products = []
        for product in deal.products:
            flavor_id = selected_flavors.get(product.id)
            flavor = None
            if flavor_id is not None:
                flavor = next((f for f in product.flavors if f.id == flavor_id), None)
                if flavor is None:
                    raise ValueError(f"Flavor {flavor_id} does not belong to {product.name}")
            elif product.flavors:
                flavor = product.flavors[0]
            products.append(CartProduct(
                deal_product_id=product.id,
                name=product.name,
                quantity=product.quantity,
                flavor_id=flavor.id if flavor else None,
                flavor_name=flavor.flavor_name if flavor else None,
            ))

        candidate = CartLine(
            deal_id=deal.id,
            name=deal.name,
            price=Decimal(str(deal.price)),
            quantity=quantity,
            products=products,
        )

        for line in self.lines:
            if line.deal_id == candidate.deal_id and line.selection_key() == candidate.selection_key():
                line.quantity += quantity
                return line

        self.lines.append(candidate)
        return candidate

    def remove(self, index: int) -> CartLine:
        return self.lines.pop(index)

    def update_quantity(self, index: int, quantity: int):
        if quantity < 1:
            self.remove(index)
            return
        self.lines[index].quantity = quantity

    def total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal(0))

    def clear(self):
        self.lines = []

    def to_dict(self) -> dict:
        return {
            "lines": [
                {
                    "deal_id": line.deal_id,
                    "name": line.name,
                    "price": str(line.price),
                    "quantity": line.quantity,
                    "products": [
                        {
                            "deal_product_id": p.deal_product_id,
                            "name": p.name,
                            "quantity": p.quantity,
                            "flavor_id": p.flavor_id,
                            "flavor_name": p.flavor_name,
                        }
                        for p in line.products
                    ],
                }
                for line in self.lines
            ],
            "total": str(self.total()),
        }
