# Overview: Flask API routes for the shift lifecycle; parses input and returns JSON responses.

# backend/barflow/routes/shifts.py
"""
Shift API Routes

DESIGN:
- One open shift at a time, opened by an admin with counted stock
- Any authenticated user may close it with final counts and counted cash
- Reopen and delete are admin-only corrections

ERRORS: domain errors map to their status (400/403/404/409); anything
else is logged and answered with 500.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import shift_service
from ..validation import BarflowError, parse_counts


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("/open")
@require_auth
@require_role(ROLE_ADMIN)
def open_shift_route():
    """
    Open a shift.

    Request body:
    {
        "initial_inventory": [{"product_id": 1, "count": 24}, ...]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        counts = parse_counts(data.get("initial_inventory"), field="initial_inventory")
        shift = shift_service.open_shift(g.current_user, counts)
        return jsonify({"shift": shift.to_dict()}), 201
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/active")
@require_auth
def active_shift_route():
    shift = shift_service.get_active_shift()
    return jsonify({"shift": shift.to_dict() if shift else None}), 200


@shifts_bp.get("")
@require_auth
def list_shifts_route():
    shifts = shift_service.list_shifts()
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@shifts_bp.get("/<int:session_id>")
@require_auth
def get_shift_route(session_id: int):
    try:
        return jsonify({"shift": shift_service.get_shift(session_id).to_dict()}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code


@shifts_bp.post("/<int:session_id>/close")
@require_auth
def close_shift_route(session_id: int):
    """
    Close the shift and compute its sales report.

    Request body:
    {
        "final_inventory": [{"product_id": 1, "count": 20}, ...],
        "real_cash_cents": 65000,
        "closing_observation": "optional"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        counts = parse_counts(data.get("final_inventory"), field="final_inventory")
        shift = shift_service.close_shift(
            session_id,
            counts,
            data.get("real_cash_cents"),
            g.current_user,
            closing_observation=data.get("closing_observation"),
        )
        return jsonify({"shift": shift.to_dict()}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:session_id>/reopen")
@require_auth
@require_role(ROLE_ADMIN)
def reopen_shift_route(session_id: int):
    """Request body: {"reason": "Miscounted BeerA"}"""
    try:
        data = request.get_json(silent=True) or {}
        shift = shift_service.reopen_shift(session_id, data.get("reason"), g.current_user)
        return jsonify({"shift": shift.to_dict()}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reopen shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.delete("/<int:session_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_shift_route(session_id: int):
    try:
        return jsonify(shift_service.delete_shift(session_id, g.current_user)), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete shift")
        return jsonify({"error": "Internal server error"}), 500
