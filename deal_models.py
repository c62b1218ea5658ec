# deal_models.py
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import text, func
from datetime import datetime
from decimal import Decimal
from models import Base
from inventory_models import InventoryItem

# --- DEALS (bundles) ---

class Deal(Base):
    """A bundle sold at one price: Deal -> Products -> Flavors -> Ingredient links"""
    __tablename__ = 'deals'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(150))
    description: Mapped[str | None] = mapped_column(sa.String(500), nullable=True)
    price: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2))
    image_url: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, server_default=text("true"))
    sort_order: Mapped[int] = mapped_column(sa.Integer, default=0, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, default=datetime.now, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True, onupdate=datetime.now)

    products: Mapped[list["DealProduct"]] = relationship(
        "DealProduct", back_populates="deal", cascade="all, delete-orphan",
        order_by="DealProduct.id", lazy='selectin'
    )

class DealProduct(Base):
    """A sub-product of a deal, e.g. "2x Zinger Burger" """
    __tablename__ = 'deal_products'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    deal_id: Mapped[int] = mapped_column(sa.ForeignKey('deals.id', ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(sa.String(150))
    description: Mapped[str | None] = mapped_column(sa.String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(sa.Integer, default=1)
    updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True, onupdate=datetime.now)

    deal: Mapped["Deal"] = relationship("Deal", back_populates="products")
    flavors: Mapped[list["DealProductFlavor"]] = relationship(
        "DealProductFlavor", back_populates="deal_product", cascade="all, delete-orphan",
        order_by="DealProductFlavor.id", lazy='selectin'
    )

class DealProductFlavor(Base):
    """A named variant of a deal product with its own ingredient consumption"""
    __tablename__ = 'deal_product_flavors'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    deal_product_id: Mapped[int] = mapped_column(sa.ForeignKey('deal_products.id', ondelete="CASCADE"), index=True)
    flavor_name: Mapped[str] = mapped_column(sa.String(100))

    deal_product: Mapped["DealProduct"] = relationship("DealProduct", back_populates="flavors")
    ingredients: Mapped[list["FlavorIngredient"]] = relationship(
        "FlavorIngredient", back_populates="flavor", cascade="all, delete-orphan",
        order_by="FlavorIngredient.id", lazy='selectin'
    )

class FlavorIngredient(Base):
    """How much of an inventory item one unit of the flavor consumes"""
    __tablename__ = 'deal_product_flavor_ingredients'
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    flavor_id: Mapped[int] = mapped_column(sa.ForeignKey('deal_product_flavors.id', ondelete="CASCADE"), index=True)
    inventory_item_id: Mapped[int] = mapped_column(sa.ForeignKey('inventory_items.id', ondelete="CASCADE"))
    quantity_per_item: Mapped[Decimal] = mapped_column(sa.Numeric(12, 3))

    flavor: Mapped["DealProductFlavor"] = relationship("DealProductFlavor", back_populates="ingredients")
    inventory_item: Mapped["InventoryItem"] = relationship("InventoryItem", lazy='selectin')
