import os
from datetime import timedelta
from flask import Flask, jsonify
from flask_cors import CORS
from .extensions import db, jwt
from .settings import AppConfig
from .api import register_blueprints


def create_app(config: AppConfig | None = None) -> Flask:
    app = Flask(__name__)

    cfg = config or AppConfig.from_env()
    app.config.update(
        SQLALCHEMY_DATABASE_URI=cfg.database_url,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        JWT_SECRET_KEY=cfg.jwt_secret_key,
        JWT_ACCESS_TOKEN_EXPIRES=timedelta(minutes=cfg.jwt_access_minutes),
        JWT_DECODE_LEEWAY=10,
        MAX_CONTENT_LENGTH=cfg.max_upload_bytes,
        MAX_UPLOAD_ROWS=cfg.max_upload_rows,
        ADMIN_USERNAME=cfg.admin_username,
        ADMIN_PASSWORD=cfg.admin_password,
        TESTING=cfg.testing,
    )

    db.init_app(app)
    jwt.init_app(app)
    if cfg.cors_origins:
        CORS(app, resources={r"/api/*": {"origins": cfg.cors_origins}}, supports_credentials=True)

    register_blueprints(app)

    # Ensure SQLite directory exists and auto-create tables for local dev
    with app.app_context():
        try:
            uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
            if uri.startswith("sqlite:///"):
                db_path = uri.replace("sqlite:///", "", 1)
                dir_path = os.path.dirname(db_path)
                if dir_path and not os.path.exists(dir_path):
                    os.makedirs(dir_path, exist_ok=True)
            db.create_all()
        except Exception:  # noqa: BLE001
            app.logger.exception("failed to auto-create tables")

    if not cfg.testing:
        for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
            app.logger.debug("route: %s %s", sorted(rule.methods or ()), rule.rule)

    @app.get("/health")
    def health() -> tuple[dict, int]:
        return jsonify({
            "status": "ok",
            "version": os.getenv("APP_VERSION", "0.1.0"),
        }), 200

    return app
