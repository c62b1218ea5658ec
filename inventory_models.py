# inventory_models.py
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import func
from datetime import datetime, date
from decimal import Decimal
from models import Base

# --- REFERENCE TABLES ---

class Unit(Base):
    """Units of measure (kg, l, pcs)"""
    __tablename__ = 'units'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(50), unique=True)
    abbreviation: Mapped[str] = mapped_column(sa.String(10))

class InventoryCategory(Base):
    __tablename__ = 'inventory_categories'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(100), unique=True)

class Supplier(Base):
    """Counterparties we buy stock from"""
    __tablename__ = 'suppliers'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(100))
    contact_person: Mapped[str | None] = mapped_column(sa.String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(sa.String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(sa.String(150), nullable=True)
    address: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now())

# --- STOCK ---

class InventoryItem(Base):
    """A stocked ingredient or supply. current_stock is allowed to go negative."""
    __tablename__ = 'inventory_items'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(100))
    sku: Mapped[str | None] = mapped_column(sa.String(50), nullable=True, index=True)

    category_id: Mapped[int | None] = mapped_column(sa.ForeignKey('inventory_categories.id', ondelete="SET NULL"), nullable=True)
    unit_id: Mapped[int | None] = mapped_column(sa.ForeignKey('units.id'), nullable=True)
    supplier_id: Mapped[int | None] = mapped_column(sa.ForeignKey('suppliers.id', ondelete="SET NULL"), nullable=True)

    current_stock: Mapped[Decimal] = mapped_column(sa.Numeric(12, 3), default=0)
    minimum_stock: Mapped[Decimal] = mapped_column(sa.Numeric(12, 3), default=0)

    # Last purchase price and the weighted average over all purchases
    cost_per_unit: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), default=0)
    average_cost: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), default=0)
    total_value: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), default=0)

    last_purchase_date: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True, onupdate=datetime.now)

    category: Mapped["InventoryCategory"] = relationship("InventoryCategory", lazy='selectin')
    unit: Mapped["Unit"] = relationship("Unit", lazy='selectin')
    supplier: Mapped["Supplier"] = relationship("Supplier", lazy='selectin')
    history: Mapped[list["StockHistory"]] = relationship(
        "StockHistory", back_populates="inventory_item", cascade="all, delete-orphan", passive_deletes=True
    )

class StockHistory(Base):
    """Movement log: purchase, deduction (order placement) or adjustment"""
    __tablename__ = 'stock_history'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    inventory_item_id: Mapped[int] = mapped_column(sa.ForeignKey('inventory_items.id', ondelete="CASCADE"), index=True)
    transaction_type: Mapped[str] = mapped_column(sa.String(20))

    quantity: Mapped[Decimal] = mapped_column(sa.Numeric(12, 3))
    cost_per_unit: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), default=0)
    total_cost: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), default=0)
    before_stock: Mapped[Decimal] = mapped_column(sa.Numeric(12, 3))
    after_stock: Mapped[Decimal] = mapped_column(sa.Numeric(12, 3))

    supplier_id: Mapped[int | None] = mapped_column(sa.ForeignKey('suppliers.id', ondelete="SET NULL"), nullable=True)
    batch_number: Mapped[str | None] = mapped_column(sa.String(50), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    # Set when the movement comes from order placement
    order_id: Mapped[int | None] = mapped_column(sa.ForeignKey('orders.id', ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now(), index=True)

    inventory_item: Mapped["InventoryItem"] = relationship("InventoryItem", back_populates="history", lazy='selectin')
    supplier: Mapped["Supplier"] = relationship("Supplier", lazy='selectin')
