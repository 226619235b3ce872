import logging
import os
from datetime import datetime, timezone

import redis
from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
socketio = SocketIO()
cache = Cache()
migrate = Migrate()
csrf = CSRFProtect()


def get_real_ip():
    """Client address for rate limiting, honouring reverse proxy headers"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # client, proxy1, proxy2, ...
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or get_remote_address()


SECURITY_HEADERS = {"X-Content-Type-Options": "nosniff", "X-Frame-Options": "DENY"}
HSTS = "max-age=31536000; includeSubDomains"

HTTP_ERROR_MESSAGES = {
    400: "Bad request",
    403: "Access forbidden",
    404: "Resource not found",
    405: "Method not allowed",
    429: "Too many requests",
}

limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
)


def _redis_available(redis_url):
    if not redis_url:
        return False
    try:
        redis.Redis.from_url(redis_url).ping()
        return True
    except redis.exceptions.ConnectionError as e:
        logger.warning(f"Redis not available at {redis_url}: {e}")
        return False


def create_app(config_name=None):
    app = Flask(__name__)

    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SECURE"] = (
        False
        if app.config.get("DEBUG")
        else app.config.get("FLASK_ENV") == "production"
    )
    app.config["PERMANENT_SESSION_LIFETIME"] = 86400  # 24 hours

    # API clients send the token in the X-CSRFToken header
    app.config["WTF_CSRF_TIME_LIMIT"] = None
    app.config["WTF_CSRF_SSL_STRICT"] = False

    # Shared rate-limit storage across workers when Redis is reachable
    redis_url = os.environ.get("REDIS_URL") or app.config.get("CACHE_REDIS_URL")
    use_redis = not app.config.get("TESTING") and _redis_available(redis_url)
    app.config.setdefault(
        "RATELIMIT_STORAGE_URI", redis_url if use_redis else "memory://"
    )

    db.init_app(app)
    login_manager.init_app(app)

    allowed_origins = os.environ.get("ALLOWED_ORIGINS", "*")
    if allowed_origins != "*":
        allowed_origins = allowed_origins.split(",")

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE", "eventlet"),
        ping_timeout=60,
        ping_interval=25,
        message_queue=redis_url if use_redis else None,
    )
    cache.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    from pickem.routes.auth import bp as auth_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")

    from pickem.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    from pickem.routes.admin import bp as admin_bp

    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    register_error_handlers(app)
    register_health_check(app)

    from pickem.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app, config_name)

    with app.app_context():
        db.create_all()

    if not app.config.get("TESTING", False):
        from pickem.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    from pickem import socketio_handlers  # noqa: F401 - imported for side effects

    return app


def show_config_warnings(app, config_name):
    logger.info(f"Pick'em starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        logger.warning("DEBUG mode is enabled in production!")

    if not os.environ.get("SECRET_KEY") and not app.testing:
        logger.warning("SECRET_KEY is auto-generated; run generate_secrets.py")

    backend = app.config.get("SQLALCHEMY_DATABASE_URI", "").split(":", 1)[0]
    logger.info(f"Database backend: {backend or 'unknown'}")


def register_health_check(app):
    @app.route("/health")
    @limiter.exempt
    def health():
        """Health check endpoint - exempt from rate limiting for monitoring systems"""
        return jsonify(
            {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
        )


def register_error_handlers(app):
    """Register global JSON error handlers"""
    from flask_wtf.csrf import CSRFError
    from werkzeug.exceptions import HTTPException

    from pickem.errors import PickemError

    @app.after_request
    def add_security_headers(response):
        response.headers.update(SECURITY_HEADERS)
        if request.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        if not (app.debug or app.testing):
            response.headers["Strict-Transport-Security"] = HSTS
        return response

    @app.errorhandler(PickemError)
    def handle_pickem_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.code}: {error.message} - Path: {request.path}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        app.logger.warning(
            f"CSRF Error: {error.description} - Path: {request.path} - User-Agent: {request.user_agent}"
        )
        return (
            jsonify(
                {"success": False, "error": "Invalid CSRF token", "code": "csrf_error"}
            ),
            400,
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        if error.code is None or error.code < 400:
            return error

        if error.code == 400:
            app.logger.warning(
                f"400 Bad Request: {error.description} - Path: {request.path} - Method: {request.method}"
            )
        return (
            jsonify(
                {
                    "success": False,
                    "error": HTTP_ERROR_MESSAGES.get(error.code, error.name),
                    "code": error.name.lower().replace(" ", "_"),
                }
            ),
            error.code,
        )

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return (
            jsonify(
                {
                    "success": False,
                    "error": "Internal server error",
                    "code": "internal_error",
                }
            ),
            500,
        )


from pickem import models  # noqa: F401, E402 - imported for model registration
