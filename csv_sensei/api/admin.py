import json
from functools import wraps
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from pydantic import ValidationError
from ..extensions import db
from ..models.models import FEATURE_NAMES, FeatureToggle, UsageTracking
from .payloads import ToggleBatchUpdate, ToggleUpdate


admin_bp = Blueprint("admin", __name__)


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if "admin" not in (get_jwt().get("roles") or []):
            return jsonify({"success": False, "message": "admin access required"}), 403
        return fn(*args, **kwargs)

    return wrapper


@admin_bp.errorhandler(ValidationError)
def _invalid_body(exc: ValidationError):
    return jsonify({"success": False, "message": "Validation failed", "errors": json.loads(exc.json(include_url=False))}), 400


@admin_bp.get("/feature-toggles")
@admin_required
def admin_list_toggles():
    toggles = FeatureToggle.ensure_defaults(get_jwt_identity())
    return jsonify({"success": True, "data": {"toggles": [t.to_dict() for t in toggles]}}), 200


@admin_bp.patch("/feature-toggles/<feature_name>")
@admin_required
def update_toggle(feature_name: str):
    if feature_name not in FEATURE_NAMES:
        return jsonify({"success": False, "message": "Invalid feature name"}), 400
    body = ToggleUpdate.model_validate(request.get_json(silent=True) or {})
    toggle = FeatureToggle.update_toggle(feature_name, body.is_enabled, get_jwt_identity())
    db.session.commit()
    state = "enabled" if body.is_enabled else "disabled"
    current_app.logger.info("feature %s %s by %s", feature_name, state, get_jwt_identity())
    return jsonify({
        "success": True,
        "message": f"Feature {feature_name} {state} successfully",
        "data": {"toggle": toggle.to_dict()},
    }), 200


@admin_bp.patch("/feature-toggles")
@admin_required
def update_toggles():
    body = ToggleBatchUpdate.model_validate(request.get_json(silent=True) or {})
    updated = [
        FeatureToggle.update_toggle(item.feature_name, item.is_enabled, get_jwt_identity())
        for item in body.toggles
    ]
    db.session.commit()
    current_app.logger.info("%d feature toggles updated by %s", len(updated), get_jwt_identity())
    return jsonify({
        "success": True,
        "message": "Feature toggles updated successfully",
        "data": {"toggles": [t.to_dict() for t in updated]},
    }), 200


@admin_bp.get("/usage-stats")
@admin_required
def usage_stats():
    limit = request.args.get("limit", default=10, type=int)
    return jsonify({
        "success": True,
        "data": {
            "schemaStats": UsageTracking.schema_stats(),
            "userStats": UsageTracking.user_stats(),
            "recentActivity": UsageTracking.recent_activity(max(1, min(limit, 100))),
        },
    }), 200
