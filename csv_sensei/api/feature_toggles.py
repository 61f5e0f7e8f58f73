from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError
from ..extensions import db
from ..models.models import FEATURE_NAMES, FeatureToggle
from ..utils.error_handler import FeatureDisabledError


feature_toggles_bp = Blueprint("feature_toggles", __name__)


def require_feature(feature_name: str) -> None:
    """Raise FeatureDisabledError when an admin switched the feature off."""
    try:
        enabled = FeatureToggle.is_feature_enabled(feature_name)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("feature toggle lookup failed, treating %s as enabled", feature_name)
        return
    if not enabled:
        raise FeatureDisabledError(feature_name)


@feature_toggles_bp.get("")
def list_toggles():
    try:
        toggles = [t.to_dict() for t in FeatureToggle.query.order_by(FeatureToggle.feature_name).all()]
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("database unavailable, returning default toggles")
        toggles = []
    if not toggles:
        toggles = FeatureToggle.default_dicts()
    return jsonify({"success": True, "data": {"toggles": toggles}}), 200


@feature_toggles_bp.get("/<feature_name>")
def get_toggle(feature_name: str):
    if feature_name not in FEATURE_NAMES:
        return jsonify({"success": False, "message": "Feature toggle not found"}), 404
    try:
        toggle = FeatureToggle.query.filter_by(feature_name=feature_name).first()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("database unavailable, returning default toggle")
        toggle = None
    data = toggle.to_dict() if toggle else next(
        d for d in FeatureToggle.default_dicts() if d["featureName"] == feature_name
    )
    return jsonify({"success": True, "data": {"toggle": data}}), 200
