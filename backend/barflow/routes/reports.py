# Overview: Flask API routes for shift history, export and purge.

# backend/barflow/routes/reports.py
"""
Reporting API Routes

Shift history is scoped by the caller: employees see only the shifts
they closed; admins see all and may filter by closer. Export and purge
are admin-only.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import reporting_service
from ..services.reporting_service import ViewerContext
from ..validation import BarflowError, coerce_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/shifts")
@require_auth
def shift_history_route():
    """
    Query params:
        closed_by: user id (admins only; ignored for employees)
    """
    try:
        viewer = ViewerContext.from_user(g.current_user)
        closed_by = request.args.get("closed_by")
        closed_by_id = coerce_int("closed_by", closed_by) if closed_by else None
        shifts = reporting_service.shift_history(viewer, closed_by_user_id=closed_by_id)
        return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/shifts/<int:session_id>")
@require_auth
def shift_detail_route(session_id: int):
    try:
        viewer = ViewerContext.from_user(g.current_user)
        return jsonify({"shift": reporting_service.shift_detail(viewer, session_id)}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/export")
@require_auth
@require_role(ROLE_ADMIN)
def export_route():
    try:
        return jsonify(reporting_service.export_history()), 200
    except Exception:
        current_app.logger.exception("Failed to export history")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.post("/purge")
@require_auth
@require_role(ROLE_ADMIN)
def purge_route():
    """Delete history after export. Refused with 409 while a shift is open."""
    try:
        return jsonify({"deleted": reporting_service.purge_history(g.current_user)}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to purge history")
        return jsonify({"error": "Internal server error"}), 500
