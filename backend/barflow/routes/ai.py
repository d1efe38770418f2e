# Overview: Flask API routes for the advisory layer (AI config, insights, chat).

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import advisory_service, settings_service
from ..validation import BarflowError


ai_bp = Blueprint("ai", __name__, url_prefix="/api/ai")


@ai_bp.get("/config")
@require_auth
@require_role(ROLE_ADMIN)
def get_ai_config_route():
    return jsonify(settings_service.get_config().ai_dict()), 200


@ai_bp.post("/config")
@require_auth
@require_role(ROLE_ADMIN)
def update_ai_config_route():
    """
    Request body:
    {
        "provider": "OPENAI" | "GEMINI" | null,
        "prompt": "optional",
        "api_key": "optional"
    }

    Sending provider: null clears it. A new key or provider resets validation.
    """
    try:
        data = request.get_json(silent=True) or {}
        cfg = settings_service.update_ai_config(
            provider=data.get("provider"),
            prompt=data.get("prompt"),
            api_key=data.get("api_key"),
            clear_provider="provider" in data and data["provider"] is None,
        )
        return jsonify(cfg.ai_dict()), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update AI config")
        return jsonify({"error": "Internal server error"}), 500


@ai_bp.post("/test")
@require_auth
@require_role(ROLE_ADMIN)
def ai_connection_check_route():
    try:
        data = request.get_json(silent=True) or {}
        cfg = advisory_service.validate_connection(data.get("provider"), data.get("api_key"))
        return jsonify({**cfg.ai_dict(), "message": "Connection validated"}), 200
    except BarflowError as e:
        return jsonify(e.to_dict()), e.status_code


@ai_bp.get("/insights")
@require_auth
@require_role(ROLE_ADMIN)
def insights_route():
    try:
        return jsonify(advisory_service.get_insights().to_dict()), 200
    except Exception:
        current_app.logger.exception("Failed to build insights")
        return jsonify({"error": "Internal server error"}), 500


@ai_bp.post("/chat")
@require_auth
@require_role(ROLE_ADMIN)
def chat_route():
    """Request body: {"message": "How did last week go?"}"""
    try:
        data = request.get_json(silent=True) or {}
        return jsonify(advisory_service.chat(data.get("message"))), 200
    except Exception:
        current_app.logger.exception("Failed to answer chat message")
        return jsonify({"error": "Internal server error"}), 500
