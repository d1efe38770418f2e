# Overview: Flask API routes for runtime configuration.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import settings_service
from ..validation import BarflowError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/config")


@settings_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def get_config_route():
    return jsonify(settings_service.get_config().to_dict()), 200


@settings_bp.put("")
@require_auth
@require_role(ROLE_ADMIN)
def update_config_route():
    """Request body: {"bar_name", "last_export_date", "low_stock_threshold"} (all optional)"""
    try:
        data = request.get_json(silent=True) or {}
        cfg = settings_service.update_config(
            bar_name=data.get("bar_name"),
            last_export_date=data.get("last_export_date"),
            low_stock_threshold=data.get("low_stock_threshold"),
        )
        return jsonify(cfg.to_dict()), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update config")
        return jsonify({"error": "Internal server error"}), 500
