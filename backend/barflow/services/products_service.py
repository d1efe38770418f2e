# Overview: Catalog reads and the running stock projection consumed by the shift engine.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Product, InventoryStock
from ..validation import NotFoundError, ValidationError, require_amount, require_text
from barflow.time_utils import utcnow


def create_product(
    name: str,
    cost_price_cents: int,
    sale_price_cents: int,
    category: str | None = None,
    is_active: bool = True,
) -> Product:
    """
    Minimal catalog write used by the CLI and tests.

    Full product management lives outside this service.
    """
    product = Product(
        name=require_text("name", name, max_length=128),
        category=category,
        cost_price_cents=require_amount("cost_price_cents", cost_price_cents, allow_zero=True),
        sale_price_cents=require_amount("sale_price_cents", sale_price_cents, allow_zero=True),
        is_active=is_active,
    )
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, **fields) -> Product:
    product = get_product(product_id)

    if "name" in fields:
        product.name = require_text("name", fields["name"], max_length=128)
    if "category" in fields:
        product.category = fields["category"]
    if "cost_price_cents" in fields:
        product.cost_price_cents = require_amount("cost_price_cents", fields["cost_price_cents"], allow_zero=True)
    if "sale_price_cents" in fields:
        product.sale_price_cents = require_amount("sale_price_cents", fields["sale_price_cents"], allow_zero=True)
    if "is_active" in fields:
        if not isinstance(fields["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        product.is_active = fields["is_active"]

    db.session.commit()
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def list_products(include_inactive: bool = True) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Product.name).all()


def get_active_products() -> list[Product]:
    """Snapshot of the active catalog, ordered by id for stable reports."""
    return db.session.query(Product).filter_by(is_active=True).order_by(Product.id).all()


def get_all_products() -> list[Product]:
    return db.session.query(Product).order_by(Product.id).all()


# =============================================================================
# STOCK PROJECTION
# =============================================================================

def write_stock(product_id: int, quantity: int, *, at: datetime | None = None) -> InventoryStock:
    """
    Upsert the projected quantity for a product.

    Does not commit: callers write stock inside their own transaction.
    """
    row = db.session.get(InventoryStock, product_id)
    if row is None:
        row = InventoryStock(product_id=product_id)
        db.session.add(row)
    row.quantity = quantity
    row.updated_at = at or utcnow()
    return row


def remove_stock(product_id: int) -> None:
    row = db.session.get(InventoryStock, product_id)
    if row is not None:
        db.session.delete(row)


def get_stock_levels() -> dict[int, int]:
    return {row.product_id: row.quantity for row in db.session.query(InventoryStock).all()}


def get_stock_view(low_stock_threshold: int) -> list[dict]:
    """Active products with their projected quantity (admin view)."""
    rows = (
        db.session.query(Product, InventoryStock)
        .outerjoin(InventoryStock, InventoryStock.product_id == Product.id)
        .filter(Product.is_active.is_(True))
        .order_by(Product.name)
        .all()
    )
    result = []
    for product, stock in rows:
        quantity = stock.quantity if stock else 0
        result.append({
            "product_id": product.id,
            "product_name": product.name,
            "category": product.category,
            "quantity": quantity,
            "sale_price_cents": product.sale_price_cents,
            "cost_price_cents": product.cost_price_cents,
            "low_stock": quantity <= low_stock_threshold,
        })
    return result
