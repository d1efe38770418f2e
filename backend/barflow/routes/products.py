# Overview: Flask API routes for catalog reads and the stock projection.

from flask import Blueprint, jsonify, current_app, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import products_service, settings_service


products_bp = Blueprint("products", __name__, url_prefix="/api")


@products_bp.get("/products")
@require_auth
def list_products_route():
    """
    List catalog products.

    Query params:
        active_only: "true" to hide inactive products
    """
    active_only = request.args.get("active_only", "").lower() == "true"
    products = products_service.list_products(include_inactive=not active_only)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/inventory/stock")
@require_auth
@require_role(ROLE_ADMIN)
def stock_view_route():
    """Active products with projected quantity and low_stock flag."""
    try:
        threshold = settings_service.get_config().low_stock_threshold
        return jsonify({
            "low_stock_threshold": threshold,
            "stock": products_service.get_stock_view(threshold),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to load stock view")
        return jsonify({"error": "Internal server error"}), 500
