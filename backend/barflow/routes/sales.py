# Overview: Flask API routes for optional itemized sale records.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services import sales_service
from ..validation import BarflowError, coerce_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def record_sale_route():
    """
    Record an itemized sale. Not used by shift reconciliation.

    Request body:
    {
        "shift_id": 3,  (optional)
        "payment_method": "CASH",
        "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 2500, "cost_price_cents": 1000}]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        shift_id = data.get("shift_id")
        sale = sales_service.record_sale(
            g.current_user,
            data.get("payment_method"),
            data.get("items"),
            shift_id=coerce_int("shift_id", shift_id) if shift_id is not None else None,
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    try:
        shift_id = request.args.get("shift_id")
        sales = sales_service.list_sales(coerce_int("shift_id", shift_id) if shift_id else None)
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
