from datetime import timedelta
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import create_access_token, get_jwt, get_jwt_identity, jwt_required


auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/login")
def login():
    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or payload.get("email") or "").strip()
    password = payload.get("password") or ""

    # Single fixed admin account, configured through ADMIN_USERNAME / ADMIN_PASSWORD
    admin_user = current_app.config["ADMIN_USERNAME"]
    allowed_users = {admin_user, admin_user.split("@")[0]}
    if username not in allowed_users or password != current_app.config["ADMIN_PASSWORD"]:
        current_app.logger.warning("failed login for %r", username)
        return jsonify({"message": "invalid credentials"}), 401

    claims = {"roles": ["admin"]}
    expires = current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    if not isinstance(expires, timedelta):
        expires = timedelta(minutes=int(expires))
    token = create_access_token(identity=username, additional_claims=claims, expires_delta=expires)
    return jsonify({"access_token": token, "user": {"username": username, "roles": claims["roles"]}}), 200


@auth_bp.get("/me")
@jwt_required()
def me():
    claims = get_jwt()
    return jsonify({"username": get_jwt_identity(), "roles": claims.get("roles", [])}), 200
