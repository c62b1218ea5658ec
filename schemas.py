# schemas.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


# --- DEALS ---

class IngredientLinkIn(BaseModel):
    inventory_item_id: int
    quantity_per_item: Decimal = Field(gt=0)


class FlavorIn(BaseModel):
    flavor_name: str = Field(min_length=1, max_length=100)
    ingredients: List[IngredientLinkIn] = Field(default_factory=list)


class DealProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    flavors: List[FlavorIn] = Field(default_factory=list)


class DealIn(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    image_url: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0
    products: List[DealProductIn] = Field(default_factory=list)


class DealUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator("name", "price", "is_active", "sort_order", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class BulkProductsIn(BaseModel):
    products: List[DealProductIn] = Field(min_length=1)


# --- POS ---

class CartLineIn(BaseModel):
    deal_id: int
    quantity: int = Field(default=1, ge=1)
    # deal_product_id -> flavor id
    selected_flavors: Dict[int, int] = Field(default_factory=dict)


class CartIn(BaseModel):
    items: List[CartLineIn] = Field(default_factory=list)


class PlaceOrderIn(CartIn):
    order_type: str = "walkin"
    payment_method: str = "Cash"
    payment_status: Optional[str] = None
    customer_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    discount_amount: Decimal = Field(default=Decimal(0), ge=0)


class StatusChangeIn(BaseModel):
    status: str
    reason: Optional[str] = None


class AssignDeliveryIn(BaseModel):
    delivery_boy_id: Optional[int] = None


# --- INVENTORY ---

class InventoryItemIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    sku: Optional[str] = None
    category_id: Optional[int] = None
    unit_id: Optional[int] = None
    supplier_id: Optional[int] = None
    current_stock: Decimal = Decimal(0)
    minimum_stock: Decimal = Field(default=Decimal(0), ge=0)
    cost_per_unit: Decimal = Field(default=Decimal(0), ge=0)


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    sku: Optional[str] = None
    category_id: Optional[int] = None
    unit_id: Optional[int] = None
    supplier_id: Optional[int] = None
    minimum_stock: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("name", "minimum_stock", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class AddStockIn(BaseModel):
    quantity: Decimal
    cost_per_unit: Decimal
    supplier_id: Optional[int] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None


class AdjustStockIn(BaseModel):
    new_quantity: Decimal
    notes: Optional[str] = None


class NameIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class UnitIn(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    abbreviation: str = Field(min_length=1, max_length=10)


# --- SUPPLIERS / DELIVERY ---

class SupplierIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class DeliveryBoyIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    vehicle_type: Optional[str] = None
    license_number: Optional[str] = None


class DeliveryStatusIn(BaseModel):
    status: str = Field(pattern="^(active|inactive)$")


# --- NOTIFICATIONS ---

class NotificationSettingsIn(BaseModel):
    email_enabled: Optional[bool] = None
    email_addresses: Optional[List[str]] = None
    low_stock_alerts: Optional[bool] = None
    expiry_alerts: Optional[bool] = None
    expiry_days_before: Optional[int] = Field(default=None, ge=1, le=365)

    @field_validator("email_enabled", "low_stock_alerts", "expiry_alerts", "expiry_days_before", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class EmailNotificationIn(BaseModel):
    emails: List[str] = Field(min_length=1)
    title: str
    message: str
    type: str = "low_stock"
    severity: str = "warning"
    inventory_item_id: Optional[int] = None


# --- REPORTS ---

class ExpenseIn(BaseModel):
    category: str = Field(default="Uncategorized", min_length=1, max_length=100)
    description: Optional[str] = None
    amount: Decimal = Field(gt=0)
    expense_date: Optional[date] = None
