from __future__ import annotations

from ..extensions import db
from barflow.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product (read-only to the shift engine).

    Prices are read at report-compute time and copied into the shift's
    itemized breakdown, so later price edits never alter a closed report.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "cost_price_cents": self.cost_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryStock(db.Model):
    """
    Running stock projection, one row per product.

    Written only by shift open/close/reopen so that catalog and admin
    stock views see the latest physical count.
    """
    __tablename__ = "inventory_stock"

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    product = db.relationship("Product", backref=db.backref("stock", uselist=False, lazy=True))
