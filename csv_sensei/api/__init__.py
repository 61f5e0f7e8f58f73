from flask import Flask
from .admin import admin_bp
from .analysis import analysis_bp
from .auth import auth_bp
from .feature_toggles import feature_toggles_bp


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(analysis_bp, url_prefix="/api/analysis")
    app.register_blueprint(feature_toggles_bp, url_prefix="/api/feature-toggles")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
