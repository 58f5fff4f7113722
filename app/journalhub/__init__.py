import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from app.journalhub.config import is_production_env, load_config
from app.journalhub.db import init_db, teardown_db_session
from app.journalhub.errors import ApiError
from app.journalhub.routes import bp as routes_bp
from app.journalhub.auth import bp as auth_bp, load_current_user
from app.journalhub.modules.downloads.dispatcher import DownloadDispatcher, DownloadSettings
from app.journalhub.modules.downloads.routes import bp as downloads_bp
from app.journalhub.modules.journals.admin import bp as journals_bp
from app.journalhub.modules.submissions.admin import bp as submissions_bp
from app.journalhub.storage import StorageError


def create_app(overrides: dict | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if overrides:
        app.config.update(overrides)
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)

    # Production guardrails (fail fast with clear logs)
    if is_production_env(app.config):
        if str(app.config.get("DATABASE_URL") or "").startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    settings = DownloadSettings.from_config(app.config)
    app.extensions["download_dispatcher"] = DownloadDispatcher(settings)
    app.logger.info(
        "Downloads: storage_root=%s legacy_roots=%s fetch_timeout=%ss retries=%s",
        settings.storage_root,
        ", ".join(str(p) for p in settings.legacy_roots) or "-",
        settings.fetch_timeout_seconds,
        settings.fetch_retries,
    )

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(journals_bp, url_prefix="/api/journals")
    app.register_blueprint(submissions_bp, url_prefix="/api/submissions")
    app.register_blueprint(downloads_bp, url_prefix="/api")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    _register_error_handlers(app)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")
    return app


def _register_error_handlers(app: Flask) -> None:
    show_errors = not is_production_env(app.config)

    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        if e.status_code >= 500:
            app.logger.error("%s %s -> %s: %s (request_id=%s)", request.method, request.path, e.status_code, e.message, getattr(g, "request_id", None))
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(StorageError)
    def _storage_error(e: StorageError):
        app.logger.error("Object storage error (request_id=%s): %s", getattr(g, "request_id", None), e)
        body = {"message": "Object storage unavailable"}
        if show_errors:
            body["error"] = str(e)
        return jsonify(body), 503

    @app.errorhandler(413)
    def _err_413(e):
        limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        return jsonify({"message": f"File too large. Max size is {limit_mb}MB"}), 413

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"message": e.description or e.name}), e.code or 500

    @app.errorhandler(Exception)
    def _err_500(e: Exception):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        body = {"message": "Internal server error"}
        if show_errors:
            body["error"] = str(e)
        return jsonify(body), 500
