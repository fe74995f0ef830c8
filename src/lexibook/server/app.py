"""Flask application factory for the sync server."""
import logging
from datetime import UTC, datetime, timedelta
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException

from lexibook.config import settings
from lexibook.errors import LexibookError
from lexibook.models.base import init_db, make_engine, make_session_factory
from lexibook.monitoring import error_count
from lexibook.server.auth_routes import auth_bp
from lexibook.server.database import EXTENSION_KEY, close_session
from lexibook.server.sync_routes import sync_bp

logger = logging.getLogger(__name__)


def create_app(
    database_url: Optional[str] = None,
    jwt_secret: Optional[str] = None,
    initialize: bool = True,
) -> Flask:
    """Build the server.

    With initialize=False the tables are not created yet and data endpoints
    answer 503 until initialize_database() is called.
    """
    app = Flask(__name__)
    app.config["JWT_SECRET_KEY"] = jwt_secret or settings.server.jwt_secret
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(days=settings.server.token_expires_days)
    app.config["MAX_CONTENT_LENGTH"] = settings.server.max_content_length
    app.config["MIN_PASSWORD_LENGTH"] = settings.server.min_password_length
    app.json.ensure_ascii = False

    # CORS (allow requests from the web client)
    CORS(app)

    jwt = JWTManager(app)
    _register_jwt_handlers(jwt)

    engine = make_engine(database_url or settings.database.url)
    app.extensions[EXTENSION_KEY] = {
        "engine": engine,
        "session_factory": make_session_factory(engine),
        "db_ready": False,
    }
    app.teardown_appcontext(close_session)

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(sync_bp, url_prefix="/api/sync")

    @app.get("/api/health")
    def health():
        """Liveness check, answers even while the database initializes."""
        return jsonify({"status": "ok", "timestamp": datetime.now(UTC).isoformat()})

    _register_error_handlers(app)

    if initialize:
        initialize_database(app)
    return app


def initialize_database(app: Flask) -> None:
    """Create the tables and open the data endpoints."""
    state = app.extensions[EXTENSION_KEY]
    init_db(state["engine"])
    state["db_ready"] = True
    logger.info("Database ready")


def _register_jwt_handlers(jwt: JWTManager) -> None:
    @jwt.unauthorized_loader
    def missing_token(reason: str):
        return jsonify({"error": "No authentication token provided"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason: str):
        return jsonify({"error": "Token is invalid or expired"}), 403

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token is invalid or expired"}), 403


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LexibookError)
    def handle_app_error(e: LexibookError):
        error_count.labels(error_type=type(e).__name__).inc()
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        error_count.labels(error_type=type(e).__name__).inc()
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        logger.exception("Unhandled error: %s", e)
        error_count.labels(error_type="internal").inc()
        return jsonify({"error": "Internal server error"}), 500
