# Overview: Optional itemized sale records; reporting reads them, shift reconciliation never does.

from __future__ import annotations

from ..extensions import db
from ..models import Sale, SaleItem, ShiftSession, User
from ..validation import NotFoundError, ValidationError, coerce_int, require_amount, require_text
from barflow.time_utils import utcnow
from . import products_service


def record_sale(user: User, payment_method: str, items: list, shift_id: int | None = None) -> Sale:
    """
    Store an itemized sale.

    Items: [{"product_id", "quantity", "unit_price_cents", "cost_price_cents"?}]
    """
    method = require_text("payment_method", payment_method, max_length=16)
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    if shift_id is not None and not db.session.get(ShiftSession, shift_id):
        raise NotFoundError("Shift not found")

    sale = Sale(shift_id=shift_id, user_id=user.id, payment_method=method, created_at=utcnow())
    total = 0
    for entry in items:
        if not isinstance(entry, dict):
            raise ValidationError("items entries must be objects")
        product = products_service.get_product(coerce_int("product_id", entry.get("product_id")))
        quantity = coerce_int("quantity", entry.get("quantity"))
        if quantity <= 0:
            raise ValidationError("quantity must be greater than zero")
        unit_price = require_amount("unit_price_cents", entry.get("unit_price_cents"), allow_zero=True)
        cost_price = require_amount("cost_price_cents", entry.get("cost_price_cents", 0), allow_zero=True)

        sale.lines.append(SaleItem(
            product_id=product.id,
            quantity=quantity,
            unit_price_cents=unit_price,
            cost_price_cents=cost_price,
        ))
        total += quantity * unit_price

    sale.total_cents = total
    db.session.add(sale)
    db.session.commit()
    return sale


def list_sales(shift_id: int | None = None) -> list[Sale]:
    query = db.session.query(Sale)
    if shift_id is not None:
        query = query.filter_by(shift_id=shift_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()
