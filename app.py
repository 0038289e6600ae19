import os
import time

from flask import Flask, jsonify, request

from api.api_v1.query_params import EXTENSION_KEY
from api.blueprint import create_api_blueprint
from api.schemas.api_responses import fail
from api.services.shelter_cache_service import (
    ShelterCacheService,
    create_shelter_cache_service,
)
from config import Config, configure_logging
from logging_utils import configure_app_logging, get_logger
from support.errors import QueryValidationError, ShelterCacheError, UpstreamError


def create_app(shelter_cache: ShelterCacheService | None = None) -> Flask:
    """Build the Flask app.

    Tests pass a pre-wired ``shelter_cache``; otherwise one is created from
    config (real upstream URLs, the default SQLite store).
    """

    app = Flask(__name__)

    # Load defaults from file, then environment overrides.
    app.config.from_pyfile("settings.py")
    app.config.update(Config.as_dict())

    # Configure unified app logging (UTC timestamps, per-file logs, daily rotation)
    configure_app_logging(app.config.get("LOG_LEVEL", "INFO"))
    logger = get_logger(__name__)
    configure_logging(app.logger, app.config.get("LOG_LEVEL", "INFO"))

    # --- slow request logging (opt-in by threshold; default 250ms) ---
    # Set to "0" to disable. A cold-cache request includes the upstream fetch.
    slow_ms = int(os.getenv("SLOW_REQUEST_MS", "250") or "250")

    @app.before_request
    def _start_timer():
        if slow_ms > 0:
            request.environ["_req_start_ns"] = time.perf_counter_ns()

    @app.after_request
    def _log_slow_requests(resp):
        if slow_ms <= 0:
            return resp

        start_ns = request.environ.get("_req_start_ns")
        if not start_ns:
            return resp

        elapsed_ms = (time.perf_counter_ns() - int(start_ns)) / 1_000_000.0
        if elapsed_ms >= slow_ms:
            # Keep it compact and stable for grepping.
            logger.warning(
                "SLOW_REQUEST ms=%.1f status=%s method=%s path=%s query=%s",
                elapsed_ms,
                getattr(resp, "status_code", "?"),
                request.method,
                request.path,
                request.query_string.decode("utf-8", errors="replace"),
            )
        return resp

    if shelter_cache is None:
        shelter_cache = create_shelter_cache_service(app.config)
    app.extensions[EXTENSION_KEY] = shelter_cache

    # Register routes/blueprints (respect feature flags)
    app.register_blueprint(
        create_api_blueprint(enable_admin=app.config.get("ENABLE_ADMIN", True))
    )

    # Error handlers: the only place a failure becomes a user-facing message.
    @app.errorhandler(QueryValidationError)
    def bad_query(err: QueryValidationError):
        details = {"field": err.field} if err.field else None
        return jsonify(fail(str(err), code="validation_error", details=details)), 400

    @app.errorhandler(UpstreamError)
    def upstream_failed(err: UpstreamError):
        logger.error("Upstream failure | source=%s err=%s", err.source, err)
        details = {"source": err.source} if err.source else None
        return (
            jsonify(
                fail(
                    "Shelter data source unavailable",
                    code="upstream_error",
                    details=details,
                )
            ),
            502,
        )

    @app.errorhandler(ShelterCacheError)
    def cache_failed(err: ShelterCacheError):
        logger.error("Shelter cache failure | type=%s err=%s", type(err).__name__, err)
        return jsonify(fail("Shelter cache unavailable", code="cache_error")), 500

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify(fail("Not found", code="not_found")), 404

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return jsonify(fail("Method not allowed", code="method_not_allowed")), 405

    @app.errorhandler(500)
    def server_error(_err):
        logger.exception("Unhandled server error")
        return jsonify(fail("Internal server error", code="internal_error")), 500

    return app


# NOTE: Do not instantiate the Flask app at import time.
# Tests patch the DB engine/sessionmaker before calling create_app().
app: Flask | None = None


if __name__ == "__main__":
    app = create_app()
    get_logger(__name__).info("Starting Flask app")
    app.run(debug=True, use_reloader=False)
