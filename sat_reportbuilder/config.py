"""
Default configuration for SAT-ReportBuilder.

Values are read from the environment when this module is imported.
``create_app`` loads ``Config`` first and layers any other config on top.
"""

import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config(object):
    # Your App secret key
    SECRET_KEY = os.environ.get("SECRET_KEY", "thisismyscretkey-change-me")

    # JWT secret, the legacy JWT_SECRET name is still honoured
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or os.environ.get("JWT_SECRET")
    JWT_ACCESS_TOKEN_HOURS = int(os.environ.get("JWT_ACCESS_TOKEN_HOURS", 24))
    JWT_TOKEN_LOCATION = ["headers"]

    # The SQLAlchemy connection string.
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "sqlite:///" + os.path.join(basedir, "app.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Origin allowed to call the API from a browser
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

    # Uploads
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join(basedir, "uploads"))
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024
    ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "pdf", "csv", "xlsx", "docx"}

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FORMAT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"
    AUDIT_LOG_ENABLED = True

    # Rate limiting
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True
    SECURITY_RATE_LIMITS = {
        "login": "5 per minute",
        "registration": "5 per hour",
    }

    # Security headers
    SECURITY_HEADERS_ENABLED = True
    SECURITY_HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "SAMEORIGIN",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    # OpenAPI
    OPENAPI_VERSION = "3.0.2"
    API_TITLE = "SAT-ReportBuilder API"


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing-secret-key"
    JWT_SECRET_KEY = "testing-jwt-secret-key-with-enough-bytes"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RATELIMIT_ENABLED = False
    AUDIT_LOG_ENABLED = True
