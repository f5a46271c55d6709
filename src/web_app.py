from __future__ import annotations

import hmac
import logging
import time

from flask import Flask, g, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from cobbler.config import AppConfig, ConfigError, load_config
from cobbler.db import Db, DbError
from cobbler.errors import ConflictError, NotFoundError, ValidationError
from cobbler.logs import configure_logging
from cobbler.routes.common import ApiContext, build_context, fail, ok
from cobbler.routes.enquiries import enquiries_bp
from cobbler.routes.expenses import expenses_bp
from cobbler.routes.reports import reports_bp
from cobbler.routes.settings import settings_bp
from cobbler.routes.stages import delivery_bp, pickup_bp, service_bp

logger = logging.getLogger("cobbler.web")

OPEN_PATHS = {"/api/health"}
# stored bill names carry a random token, so the links work as plain <img>/<a> targets
OPEN_GET_PREFIXES = ("/api/expense/bills/",)


def create_app(cfg: AppConfig, context: ApiContext | None = None) -> Flask:
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024
    app.extensions["cobbler"] = context or build_context(cfg, Db(cfg.db))

    CORS(app, resources={r"/api/*": {"origins": list(cfg.cors_origins)}}, allow_headers=["Content-Type", "X-Token"])

    @app.before_request
    def check_token():
        g.started = time.perf_counter()
        if request.method == "OPTIONS" or request.path in OPEN_PATHS:
            return None
        if request.method == "GET" and request.path.startswith(OPEN_GET_PREFIXES):
            return None
        token = request.headers.get("X-Token", "")
        if not hmac.compare_digest(token, cfg.api_token):
            return fail("Unauthorized", 401, message="Missing or invalid X-Token header")
        return None

    @app.after_request
    def log_request(response):
        started = g.get("started")
        if started is not None:
            elapsed = (time.perf_counter() - started) * 1000
            logger.info("%s %s -> %s (%.1f ms)", request.method, request.path, response.status_code, elapsed)
        return response

    @app.errorhandler(ValidationError)
    def on_validation(e: ValidationError):
        return fail("Validation failed", 400, message=str(e), fields=e.errors)

    @app.errorhandler(NotFoundError)
    def on_not_found(e: NotFoundError):
        return fail("Not found", 404, message=str(e))

    @app.errorhandler(ConflictError)
    def on_conflict(e: ConflictError):
        return fail("Conflict", 409, message=str(e))

    @app.errorhandler(DbError)
    def on_db_error(e: DbError):
        logger.error("Database unavailable: %s", e)
        return fail("Database unavailable", 503, message=str(e))

    @app.errorhandler(HTTPException)
    def on_http_error(e: HTTPException):
        return fail(e.name, e.code or 500, message=e.description)

    @app.errorhandler(Exception)
    def on_unexpected(e: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return fail("Internal server error", 500, message=str(e))

    @app.route("/api/health", methods=["GET"])
    def health():
        return ok({"status": "ok", "name": cfg.name})

    for bp in (enquiries_bp, pickup_bp, service_bp, delivery_bp, expenses_bp, reports_bp, settings_bp):
        app.register_blueprint(bp, url_prefix="/api")

    return app


if __name__ == "__main__":
    try:
        cfg = load_config("config.toml")
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        raise SystemExit(2)
    configure_logging(cfg.log_level)
    create_app(cfg).run(debug=False, host="127.0.0.1", port=5000)
