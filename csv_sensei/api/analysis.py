import json
import time
from contextlib import contextmanager
from flask import Blueprint, Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from ..extensions import db
from ..models.models import UsageTracking
from ..pipeline.analytics import build_monthly_series, detect_anomalies, moving_average_forecast, top_n_by_sum
from ..pipeline.engine import ValidationEngine
from ..pipeline.insights import generate_insights
from ..pipeline.profile import profile_dataset, query_dataset
from ..rules.engine import ComplianceEngine
from ..utils.error_handler import ErrorHandler, FeatureDisabledError, RowLimitExceeded, UploadError
from ..utils.loader import load_rows, validate_row_limit, violations_to_csv
from .feature_toggles import require_feature
from .payloads import ComplianceRequest, ForecastRequest, InsightsRequest, ProfileRequest, ValidateRequest


analysis_bp = Blueprint("analysis", __name__)

# industry selector -> feature toggle guarding it; "others" is never gated
INDUSTRY_FEATURES = {
    "opbilling": "op_billing",
    "doctor_roster": "doctor_roster",
}


@analysis_bp.errorhandler(UploadError)
def _upload_error(exc: UploadError):
    context = {"limit": exc.limit_result} if isinstance(exc, RowLimitExceeded) else None
    body, status = ErrorHandler.create_error_response(exc, exc.status_code, context)
    return jsonify(body), status


@analysis_bp.errorhandler(FeatureDisabledError)
def _feature_disabled(exc: FeatureDisabledError):
    body, status = ErrorHandler.create_error_response(exc, exc.status_code, {"feature": exc.feature_name})
    return jsonify(body), status


@analysis_bp.errorhandler(ValidationError)
def _invalid_body(exc: ValidationError):
    return jsonify({"message": "invalid request body", "errors": json.loads(exc.json(include_url=False))}), 400


def _check_row_limit(*datasets) -> None:
    max_rows = current_app.config["MAX_UPLOAD_ROWS"]
    for rows in datasets:
        result = validate_row_limit(rows, max_rows)
        if not result["isValid"]:
            raise RowLimitExceeded(result)


def _uploaded_rows(field: str):
    """Rows, file name and byte size of a multipart upload field, or None when absent."""
    upload = request.files.get(field)
    if upload is None:
        return None
    content = upload.read()
    return load_rows(upload.filename, content), upload.filename or field, len(content)


@contextmanager
def _tracked(schema_type: str, file_name: str, file_size: int):
    """Record one UsageTracking row for the wrapped analysis, successful or not."""
    started = time.perf_counter()
    usage = {"row_count": 0}
    error = None
    try:
        yield usage
    except Exception as exc:
        error = str(exc)
        raise
    finally:
        try:
            db.session.add(UsageTracking(
                user_id=str(get_jwt_identity()),
                schema_type=schema_type,
                file_name=file_name,
                file_size=file_size,
                row_count=usage["row_count"],
                processing_time=(time.perf_counter() - started) * 1000,
                success=error is None,
                error_message=error,
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            ))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("failed to record usage for %s", schema_type)


@analysis_bp.post("/validate")
@jwt_required()
def validate_upload():
    uploaded = _uploaded_rows("file")
    if uploaded is not None:
        rows, file_name, file_size = uploaded
        industry = (request.form.get("industry") or "others").strip().lower()
    else:
        body = ValidateRequest.model_validate(request.get_json(silent=True) or {})
        rows, file_name, file_size = body.rows, body.file_name, request.content_length or 0
        industry = body.industry.strip().lower()

    feature = INDUSTRY_FEATURES.get(industry)
    if feature:
        require_feature(feature)

    with _tracked(feature or industry, file_name, file_size) as usage:
        usage["row_count"] = len(rows)
        _check_row_limit(rows)
        result = ValidationEngine().validate(rows, industry)

    current_app.logger.info(
        "validated %s (%d rows) as %s: %s, %d errors",
        file_name,
        len(rows),
        industry,
        result.fallback_level,
        len(result.errors),
    )
    return jsonify(result.to_dict()), 200


def _compliance_input():
    billing = _uploaded_rows("billing")
    roster = _uploaded_rows("roster")
    if billing is not None or roster is not None:
        billing_rows, billing_name, billing_size = billing or ([], "billing", 0)
        roster_rows, roster_name, roster_size = roster or ([], "roster", 0)
        return billing_rows, roster_rows, f"{billing_name}+{roster_name}", billing_size + roster_size
    body = ComplianceRequest.model_validate(request.get_json(silent=True) or {})
    return body.billing_rows, body.roster_rows, "compliance.json", request.content_length or 0


def _run_compliance():
    require_feature("compliance_ai")
    billing_rows, roster_rows, file_name, file_size = _compliance_input()
    with _tracked("compliance_ai", file_name, file_size) as usage:
        usage["row_count"] = len(billing_rows) + len(roster_rows)
        _check_row_limit(billing_rows, roster_rows)
        return ComplianceEngine().run(billing_rows, roster_rows)


@analysis_bp.post("/compliance")
@jwt_required()
def compliance():
    result = _run_compliance()
    return jsonify(result.to_dict()), 200


@analysis_bp.post("/compliance/export")
@jwt_required()
def compliance_export():
    result = _run_compliance()
    return Response(
        violations_to_csv(result.violations),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=compliance_violations.csv"},
    )


@analysis_bp.post("/insights")
@jwt_required()
def insights():
    require_feature("op_billing")
    body = InsightsRequest.model_validate(request.get_json(silent=True) or {})
    _check_row_limit(body.billing_data, body.doctor_roster_data)
    result = generate_insights(body.billing_data, body.doctor_roster_data)
    return jsonify({"insights": [i.to_dict() for i in result]}), 200


@analysis_bp.post("/profile")
@jwt_required()
def profile():
    body = ProfileRequest.model_validate(request.get_json(silent=True) or {})
    _check_row_limit(body.rows)
    out = profile_dataset(body.rows, body.dashboard)
    if body.query:
        out["queryResult"] = query_dataset(body.rows, body.query)
    return jsonify(out), 200


@analysis_bp.post("/forecast")
@jwt_required()
def forecast():
    require_feature("op_billing")
    body = ForecastRequest.model_validate(request.get_json(silent=True) or {})
    _check_row_limit(body.rows)
    series = build_monthly_series(body.rows, body.date_field, body.value_field)
    anomalies = detect_anomalies([p["value"] for p in series], body.z_threshold)
    return jsonify({
        "series": series,
        "forecast": moving_average_forecast(series, body.window, body.horizon),
        "anomalies": [{**a, "date": series[int(a["index"])]["date"]} for a in anomalies],
        "topGroups": top_n_by_sum(body.rows, body.group_field, body.value_field) if body.group_field else [],
    }), 200
