"""
Rate Limiting for SAT-ReportBuilder

Implements rate limiting for authentication endpoints to prevent brute force attacks.
Uses Flask-Limiter, storage is selected with ``RATELIMIT_STORAGE_URI``.
"""

import logging
from typing import Optional

from flask import current_app, Flask, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

log = logging.getLogger(__name__)


class SecurityRateLimiter:
    """Rate limiter with security focus"""

    def __init__(self, app: Optional[Flask] = None):
        self.limiter = Limiter(
            key_func=self._get_limiter_key,
            default_limits=[],
            strategy="fixed-window",
        )
        self.limiter.request_filter(self._request_filter)
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        """Initialize rate limiter"""
        app.config.setdefault("RATELIMIT_ENABLED", True)
        app.config.setdefault("RATELIMIT_STORAGE_URI", "memory://")
        app.config.setdefault("RATELIMIT_HEADERS_ENABLED", True)
        app.config.setdefault(
            "SECURITY_RATE_LIMITS",
            {"login": "5 per minute", "registration": "5 per hour"},
        )
        self.limiter.init_app(app)
        log.info(
            "Security rate limiter initialized (enabled=%s)",
            app.config["RATELIMIT_ENABLED"],
        )

    @staticmethod
    def _get_limiter_key() -> str:
        """Get key for rate limiting (IP + user agent fingerprint)"""
        ip = get_remote_address()
        user_agent = request.headers.get("User-Agent", "")
        ua_hash = str(sum(user_agent.encode("utf-8")) % 10000)
        return f"{ip}:{ua_hash}"

    @staticmethod
    def _request_filter() -> bool:
        """Filter requests that should bypass rate limiting"""
        return request.path.startswith("/api/health")

    def limit_auth_endpoint(self, endpoint_type: str = "login"):
        """
        Decorator for authentication endpoints, the limit string is
        looked up in ``SECURITY_RATE_LIMITS`` on every request.
        """

        def _rate_limit() -> str:
            limits = current_app.config.get("SECURITY_RATE_LIMITS", {})
            return limits.get(endpoint_type, "10 per minute")

        return self.limiter.limit(_rate_limit)


# Global rate limiter instance
_rate_limiter = SecurityRateLimiter()


def init_rate_limiting(app: Flask) -> SecurityRateLimiter:
    """Initialize rate limiting for Flask app"""
    _rate_limiter.init_app(app)
    return _rate_limiter


def limit_auth_endpoint(endpoint_type: str = "login"):
    """Decorator for rate limiting authentication endpoints"""
    return _rate_limiter.limit_auth_endpoint(endpoint_type)
