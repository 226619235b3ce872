import os
import secrets
import warnings

import redis
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


def env_bool(name, default):
    return os.environ.get(name, str(default)).lower() in ("true", "on", "1")


def env_int(name, default):
    return int(os.environ.get(name) or default)


def _secret(name):
    """Configured secret, or a random one that will not survive a restart"""
    value = os.environ.get(name)
    if value:
        return value

    if name == "SECRET_KEY":
        warnings.warn(
            "SECRET_KEY not set! Using auto-generated key; sessions reset on restart. "
            "Run 'python3 generate_secrets.py' to generate secure keys.",
            UserWarning,
        )
    return secrets.token_urlsafe(32)


def database_uri():
    """DATABASE_URL, or a URI assembled from DB_* variables (SQLite by default)"""
    if os.environ.get("DATABASE_URL"):
        return os.environ["DATABASE_URL"]

    if os.environ.get("DB_TYPE", "sqlite").lower() != "postgresql":
        return "sqlite:///" + os.path.join(basedir, "pickem.db")

    user = os.environ.get("DB_USER") or "pickem_user"
    password = os.environ.get("DB_PASSWORD") or "pickem_password"
    host = os.environ.get("DB_HOST") or "localhost"
    port = os.environ.get("DB_PORT") or "5432"
    name = os.environ.get("DB_NAME") or "pickem_db"
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{name}"


class Config:
    SECRET_KEY = _secret("SECRET_KEY")
    WTF_CSRF_SECRET_KEY = _secret("WTF_CSRF_SECRET_KEY")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    NFL_API_BASE_URL = (
        os.environ.get("NFL_API_BASE_URL")
        or "https://site.api.espn.com/apis/site/v2/sports/football/nfl"
    )

    # Betting lines from The Odds API; odds sync is skipped without a key
    ODDS_API_KEY = os.environ.get("ODDS_API_KEY") or os.environ.get("THE_ODDS_API_KEY")
    ODDS_API_BASE_URL = (
        os.environ.get("ODDS_API_BASE_URL") or "https://api.the-odds-api.com/v4"
    )
    ODDS_BOOKMAKER = os.environ.get("ODDS_BOOKMAKER", "draftkings")
    ODDS_REQUESTS_PER_MONTH = env_int("ODDS_REQUESTS_PER_MONTH", 500)

    # The week override only applies when the season override is set too
    CURRENT_NFL_WEEK = os.environ.get("CURRENT_NFL_WEEK")
    CURRENT_NFL_SEASON = os.environ.get("CURRENT_NFL_SEASON")
    NFL_SEASON_START = os.environ.get("NFL_SEASON_START")  # YYYY-MM-DD

    TIMEZONE = os.environ.get("TIMEZONE", "UTC")
    RECENT_PICKS_LIMIT = env_int("RECENT_PICKS_LIMIT", 10)

    CACHE_TYPE = os.environ.get("CACHE_TYPE", "RedisCache")
    CACHE_DEFAULT_TIMEOUT = env_int("CACHE_DEFAULT_TIMEOUT", 300)
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL", "redis://localhost:6379/0")
    CACHE_KEY_PREFIX = "pickem:"

    SCHEDULER_ENABLED = env_bool("SCHEDULER_ENABLED", True)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "eventlet")
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = env_bool("LOG_TO_CONSOLE", True)
    LOG_TO_FILE = env_bool("LOG_TO_FILE", True)
    LOG_DIR = os.environ.get("LOG_DIR", "logs")

    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False

    def __init__(self):
        # Read at instantiation so tests and CLIs can set DATABASE_URL late
        self.SQLALCHEMY_DATABASE_URI = database_uri()


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    def __init__(self):
        super().__init__()
        try:
            redis.Redis.from_url(self.CACHE_REDIS_URL).ping()
        except redis.exceptions.ConnectionError:
            self.CACHE_TYPE = "SimpleCache"
            warnings.warn(
                "Redis not available, falling back to SimpleCache for development.",
                UserWarning,
            )


class ProductionConfig(Config):
    DEBUG = False

    def __init__(self):
        super().__init__()
        for name in ("SECRET_KEY", "WTF_CSRF_SECRET_KEY"):
            if not os.environ.get(name):
                warnings.warn(
                    f"PRODUCTION WARNING: {name} not explicitly set!", UserWarning
                )


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    CACHE_TYPE = "SimpleCache"
    SCHEDULER_ENABLED = False
    SOCKETIO_ASYNC_MODE = "threading"
    RATELIMIT_ENABLED = False
    LOG_TO_FILE = False
    LOG_TO_CONSOLE = False
    CURRENT_NFL_WEEK = None
    CURRENT_NFL_SEASON = None
    NFL_SEASON_START = None
    ODDS_API_KEY = None

    def __init__(self):
        # Keep the in-memory database regardless of DATABASE_URL
        pass


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
