# Overview: Flask API routes for credit customers and the credit ledger.

# backend/barflow/routes/credit.py
"""
Credit ("fiao") API Routes

SECURITY:
- Customer create/update are admin-only
- Debts, payments and ledger reads are open to any authenticated user
- current_used_cents is never accepted from a request body
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import credit_service
from ..validation import BarflowError, parse_datetime_arg


credit_bp = Blueprint("credit", __name__, url_prefix="/api/credit")


# =============================================================================
# CUSTOMERS
# =============================================================================

@credit_bp.get("/customers")
@require_auth
def list_customers_route():
    customers = credit_service.list_customers()
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@credit_bp.post("/customers")
@require_auth
@require_role(ROLE_ADMIN)
def create_customer_route():
    """
    Create a credit customer.

    Request body:
    {
        "name": "Juan Perez",
        "max_limit_cents": 50000,
        "document_id": "optional",
        "phone": "optional",
        "observations": "optional",
        "is_active": true
    }
    """
    try:
        customer = credit_service.create_customer(request.get_json(silent=True) or {})
        return jsonify({"customer": customer.to_dict()}), 201
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create credit customer")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/customers/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return jsonify({"customer": credit_service.get_customer(customer_id).to_dict()}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code


@credit_bp.put("/customers/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_customer_route(customer_id: int):
    try:
        customer = credit_service.update_customer(customer_id, request.get_json(silent=True) or {})
        return jsonify({"customer": customer.to_dict()}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update credit customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LEDGER
# =============================================================================

@credit_bp.post("/customers/<int:customer_id>/debt")
@require_auth
def authorize_debt_route(customer_id: int):
    """
    Give goods on credit.

    Request body: {"amount_cents": 15000, "observation": "2 beers"}

    Returns 400 with available_cents when the amount exceeds the
    customer's available credit.
    """
    try:
        data = request.get_json(silent=True) or {}
        tx = credit_service.authorize_debt(
            customer_id, data.get("amount_cents"), data.get("observation"), g.current_user
        )
        customer = credit_service.get_customer(customer_id)
        return jsonify({"transaction": tx.to_dict(), "customer": customer.to_dict()}), 201
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to authorize debt")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.post("/customers/<int:customer_id>/payment")
@require_auth
def record_payment_route(customer_id: int):
    """Request body: {"amount_cents": 5000, "payment_method": "CASH", "observation": "optional"}"""
    try:
        data = request.get_json(silent=True) or {}
        tx = credit_service.record_payment(
            customer_id,
            data.get("amount_cents"),
            data.get("payment_method"),
            g.current_user,
            observation=data.get("observation"),
        )
        customer = credit_service.get_customer(customer_id)
        return jsonify({"transaction": tx.to_dict(), "customer": customer.to_dict()}), 201
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/customers/<int:customer_id>/history")
@require_auth
def customer_history_route(customer_id: int):
    try:
        txns = credit_service.customer_history(customer_id)
        return jsonify({"transactions": [t.to_dict() for t in txns]}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code


@credit_bp.get("/transactions")
@require_auth
def transactions_in_range_route():
    """
    Ledger entries in an inclusive window.

    Query params:
        start, end: ISO-8601 datetimes (required)
    """
    try:
        start = parse_datetime_arg("start", request.args.get("start"))
        end = parse_datetime_arg("end", request.args.get("end"))
        txns = credit_service.transactions_in_range(start, end)
        return jsonify({"transactions": [t.to_dict() for t in txns]}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
