"""
Logging for the Pick'em service

Console output (colored in debug), rotating files for the service, its errors
and the ESPN sync jobs, and request details attached to every record.
"""

import logging
import logging.handlers
import os

from flask import g, has_request_context, request

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
BASE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Loggers whose records also go to sync.log
SYNC_LOGGERS = (
    "pickem.services.scheduler_service",
    "pickem.utils.data_sync",
    "pickem.utils.odds_sync",
)

NOISY_LOGGERS = (
    "werkzeug",
    "urllib3",
    "requests",
    "flask_limiter",
    "apscheduler",
    "engineio",
    "socketio",
)


class RequestContextFilter(logging.Filter):
    """Attach method, path, client address and user id to log records"""

    def filter(self, record):
        record.method = "-"
        record.path = "-"
        record.remote_addr = "-"
        record.user_id = "-"

        if has_request_context():
            record.method = request.method
            record.path = request.path
            record.remote_addr = request.headers.get(
                "X-Forwarded-For", request.remote_addr
            )
            # Only a user already loaded for this request; never trigger a load
            user = g.get("_login_user")
            if getattr(user, "is_authenticated", False):
                record.user_id = user.id
        return True


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if not color:
            return super().format(record)

        levelname = record.levelname
        record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def _file_handler(log_dir, filename, level, fmt, max_mb, backups):
    handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, filename),
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    handler.addFilter(RequestContextFilter())
    return handler


def _console_handler(app, level):
    handler = logging.StreamHandler()
    handler.setLevel(level)
    if app.debug:
        handler.setFormatter(
            ColoredFormatter(
                BASE_FORMAT + " [%(filename)s:%(lineno)d]", datefmt="%H:%M:%S"
            )
        )
    else:
        handler.setFormatter(logging.Formatter(BASE_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RequestContextFilter())
    return handler


def setup_logging(app):
    """Configure root, sync and third-party loggers from app config"""
    level = getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # Test runners install their own capture handlers
    if not app.testing:
        for handler in root.handlers[:]:
            root.removeHandler(handler)

    if app.config.get("LOG_TO_CONSOLE", True):
        root.addHandler(_console_handler(app, level))

    if app.config.get("LOG_TO_FILE", True):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)

        root.addHandler(
            _file_handler(
                log_dir,
                "pickem.log",
                level,
                BASE_FORMAT + " [%(method)s %(path)s] [%(remote_addr)s] [user=%(user_id)s]",
                max_mb=10,
                backups=5,
            )
        )
        root.addHandler(
            _file_handler(
                log_dir,
                "errors.log",
                logging.ERROR,
                BASE_FORMAT + " [%(pathname)s:%(lineno)d] [%(method)s %(path)s]",
                max_mb=5,
                backups=3,
            )
        )

        sync_handler = _file_handler(
            log_dir, "sync.log", logging.INFO, BASE_FORMAT, max_mb=5, backups=3
        )
        for name in SYNC_LOGGERS:
            sync_logger = logging.getLogger(name)
            for handler in sync_logger.handlers[:]:
                sync_logger.removeHandler(handler)
            sync_logger.addHandler(sync_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app.logger.info(f"Logging configured - Level: {logging.getLevelName(level)}")


class ContextualLogger(logging.LoggerAdapter):
    """Logger that appends key=value context, e.g. user and game ids"""

    def __init__(self, name, context=None):
        super().__init__(logging.getLogger(name), context or {})

    def process(self, msg, kwargs):
        if self.extra:
            context = " ".join(f"{k}={v}" for k, v in self.extra.items())
            msg = f"{msg} [{context}]"
        return msg, kwargs
