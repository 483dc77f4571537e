"""Application factory."""

from __future__ import annotations

import json
import os
import uuid
from typing import Optional

from flask import Flask, g, jsonify, request, send_from_directory
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException, NotFound

from config import Config
from logging_config import setup_logging
from models import db
from models.user import User
from routes.auth import auth_bp
from routes.equipment import equipment_bp
from routes.users import users_bp
from services.mailer import SMTPMailer
from storage import AbstractStorage, ImageUploader, LocalStorage, build_storage

migrate = Migrate()
jwt = JWTManager()


def create_app(
    config_class: type[Config] = Config,
    *,
    storage: Optional[AbstractStorage] = None,
    mailer=None,
) -> Flask:
    """Create and configure the Flask application.

    ``storage`` and ``mailer`` replace the backends built from configuration;
    they end up in ``app.extensions["blob_storage"]`` and ``app.extensions["mailer"]``.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)
    setup_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Core subsystems
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    _register_jwt_callbacks()

    # External clients
    if storage is None:
        storage = build_storage(app.config)
    app.extensions["blob_storage"] = storage
    app.extensions["image_uploader"] = ImageUploader.from_config(storage, app.config)
    app.extensions["mailer"] = mailer or SMTPMailer.from_config(app.config)

    # CORS
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    # Rate limiting
    storage_uri = app.config.get("RATELIMIT_STORAGE_URI", "memory://")
    headers_enabled = app.config.get("RATELIMIT_HEADERS_ENABLED", True)
    key_prefix = app.config.get("RATELIMIT_KEY_PREFIX") or str(uuid.uuid4())

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[lambda: app.config.get("RATE_LIMIT", "60 per minute")],
        storage_uri=storage_uri,
        headers_enabled=headers_enabled,
        key_prefix=key_prefix,
    )
    limiter.init_app(app)
    app.config["RATELIMIT_KEY_PREFIX"] = key_prefix

    # Blueprints
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(equipment_bp, url_prefix="/api/equipment")
    app.register_blueprint(users_bp, url_prefix="/api/users")

    # Health
    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "ok"})

    if isinstance(storage, LocalStorage):
        base_url = app.config.get("UPLOAD_BASE_URL") or "/uploads"
        if base_url.startswith("/"):

            @app.route(f"{base_url.rstrip('/')}/<path:key>", methods=["GET"])
            def serve_upload(key: str):
                if not (storage.base_directory / key).is_file():
                    raise NotFound("File not found.")
                return send_from_directory(storage.base_directory, key)

    # Errors
    _register_error_handlers(app)

    return app


def _error_response(status: int, error: str, detail: str):
    request_id = g.get("request_id") or str(uuid.uuid4())
    response = jsonify({"error": error, "detail": detail, "request_id": request_id})
    response.status_code = status
    response.headers.setdefault("X-Request-ID", request_id)
    return response


def _register_jwt_callbacks() -> None:
    """Make every authentication failure a JSON 401 in the API error shape."""

    @jwt.user_lookup_loader
    def _load_user(_jwt_header, jwt_data):
        try:
            user_id = int(jwt_data["sub"])
        except (KeyError, TypeError, ValueError):
            return None
        return db.session.get(User, user_id)

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return _error_response(401, "Unauthorized", reason)

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return _error_response(401, "Unauthorized", f"Invalid token: {reason}")

    @jwt.expired_token_loader
    def _expired_token(_jwt_header, _jwt_data):
        return _error_response(401, "Unauthorized", "Token has expired.")

    @jwt.user_lookup_error_loader
    def _unknown_user(_jwt_header, _jwt_data):
        return _error_response(401, "Unauthorized", "User no longer exists.")


def _register_error_handlers(app: Flask) -> None:
    """Register JSON error handlers with request IDs."""

    @app.before_request
    def _assign_request_id():  # pragma: no cover
        g.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    @app.after_request
    def _add_request_id_header(response):  # pragma: no cover
        request_id = g.get("request_id")
        if request_id:
            response.headers.setdefault("X-Request-ID", request_id)
        return response

    @app.errorhandler(HTTPException)
    def _handle_http_exception(error: HTTPException):
        request_id = g.get("request_id") or str(uuid.uuid4())
        response = error.get_response()
        payload = {
            "error": getattr(error, "name", "Error"),
            "detail": error.description,
            "request_id": request_id,
        }
        response.data = json.dumps(payload)
        response.content_type = "application/json"
        response.headers.setdefault("X-Request-ID", request_id)
        if (error.code or 500) >= 500:
            app.logger.error("%s: %s", error.name, error.description)
        return response

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):  # pragma: no cover
        app.logger.exception("Unhandled application error", exc_info=error)
        db.session.rollback()
        return _error_response(500, "Internal Server Error", "An unexpected error occurred.")


if __name__ == "__main__":
    application = create_app()
    application.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
