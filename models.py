# models.py

import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy import event, text, func, ForeignKey
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
import os

DATABASE_URL = os.environ.get('DATABASE_URL')
if not DATABASE_URL:
    # Stops startup before any route can touch the database
    raise ValueError("DATABASE_URL environment variable is not set.")

engine = create_async_engine(DATABASE_URL)

# SQLite only: PostgreSQL enforces foreign keys on its own and rejects PRAGMA.
if DATABASE_URL.startswith("sqlite"):
    def enable_foreign_keys_sync(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    event.listens_for(engine.sync_engine, "connect")(enable_foreign_keys_sync)

async_session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


# --- ORDER STATUSES ---
STATUS_PENDING = "Pending"
STATUS_PREPARING = "Preparing"
STATUS_READY = "Ready"
STATUS_COMPLETED = "Completed"
STATUS_CANCELLED = "Cancelled"

ORDER_STATUSES = [STATUS_PENDING, STATUS_PREPARING, STATUS_READY, STATUS_COMPLETED, STATUS_CANCELLED]
TERMINAL_STATUSES = {STATUS_COMPLETED, STATUS_CANCELLED}

ORDER_TYPES = ["walkin", "takeaway", "delivery"]
PAYMENT_METHODS = ["Cash", "EasyPaisa", "JazzCash", "Bank", "Unpaid"]


class DeliveryBoy(Base):
    __tablename__ = 'delivery_boys'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(sa.String(30), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(sa.String(150), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    vehicle_type: Mapped[Optional[str]] = mapped_column(sa.String(50), nullable=True)
    license_number: Mapped[Optional[str]] = mapped_column(sa.String(50), nullable=True)
    status: Mapped[str] = mapped_column(sa.String(20), default='active', server_default=text("'active'"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now())

    orders: Mapped[List["Order"]] = relationship("Order", back_populates="delivery_boy", passive_deletes=True)


class Order(Base):
    __tablename__ = 'orders'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(sa.String(30), nullable=False, unique=True, index=True)
    order_type: Mapped[str] = mapped_column(sa.String(20), default='walkin', server_default=text("'walkin'"), nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), default=0)
    tax_amount: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), default=0)
    discount_amount: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), default=0)

    payment_method: Mapped[str] = mapped_column(sa.String(20), default='Cash')
    payment_status: Mapped[str] = mapped_column(sa.String(20), default='Paid')
    order_status: Mapped[str] = mapped_column(sa.String(20), default=STATUS_PENDING, nullable=False, index=True)

    # Human readable summary of the deals and flavors in the order
    order_instructions: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    customer_name: Mapped[Optional[str]] = mapped_column(sa.String(100), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(sa.String(30), nullable=True, index=True)
    address: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    delivery_boy_id: Mapped[Optional[int]] = mapped_column(sa.ForeignKey('delivery_boys.id', ondelete="SET NULL"), nullable=True)
    delivery_boy: Mapped[Optional["DeliveryBoy"]] = relationship("DeliveryBoy", back_populates="orders", lazy='selectin')

    order_date: Mapped[date] = mapped_column(sa.Date, default=date.today)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime, nullable=True, onupdate=datetime.now)

    history: Mapped[List["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory", back_populates="order", cascade="all, delete-orphan", lazy='selectin'
    )


class OrderStatusHistory(Base):
    __tablename__ = 'order_status_history'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey('orders.id', ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    actor_info: Mapped[str] = mapped_column(sa.String(255), nullable=False, comment="Who changed the status")
    timestamp: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now(), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="history")


class Expense(Base):
    __tablename__ = 'expenses'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(sa.String(100), default="Uncategorized", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(sa.Date, default=date.today, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now())


class Notification(Base):
    __tablename__ = 'notifications'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # low_stock, critical_stock, expiry_alert
    type: Mapped[str] = mapped_column(sa.String(30), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(sa.String(20), default='warning', nullable=False)
    title: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    inventory_item_id: Mapped[Optional[int]] = mapped_column(
        sa.ForeignKey('inventory_items.id', ondelete="CASCADE"), nullable=True, index=True
    )
    is_read: Mapped[bool] = mapped_column(sa.Boolean, default=False, server_default=text("false"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now())

    inventory_item: Mapped[Optional["InventoryItem"]] = relationship("InventoryItem", lazy='selectin')


class NotificationSettings(Base):
    __tablename__ = 'notification_settings'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email_enabled: Mapped[bool] = mapped_column(sa.Boolean, default=False, server_default=text("false"))
    email_addresses: Mapped[list] = mapped_column(sa.JSON, default=list)
    low_stock_alerts: Mapped[bool] = mapped_column(sa.Boolean, default=True, server_default=text("true"))
    expiry_alerts: Mapped[bool] = mapped_column(sa.Boolean, default=True, server_default=text("true"))
    expiry_days_before: Mapped[int] = mapped_column(sa.Integer, default=7, server_default=text("7"))


async def create_db_tables():
    # Registers the inventory and deal tables on Base.metadata
    import inventory_models
    import deal_models

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_maker() as session:
        result_units = await session.execute(sa.select(inventory_models.Unit).limit(1))
        if not result_units.scalars().first():
            default_units = {
                "Kilogram": "kg",
                "Gram": "g",
                "Litre": "l",
                "Millilitre": "ml",
                "Piece": "pcs",
            }
            for name, abbreviation in default_units.items():
                session.add(inventory_models.Unit(name=name, abbreviation=abbreviation))

        result_settings = await session.execute(sa.select(NotificationSettings).limit(1))
        if not result_settings.scalars().first():
            session.add(NotificationSettings(email_addresses=[]))

        await session.commit()
