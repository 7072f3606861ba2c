"""
Security Headers Middleware

Adds security headers to every response and enables CORS for the
frontend origin on the ``/api/*`` routes.
"""

import logging
from typing import Optional

from flask import current_app, Flask
from flask_cors import CORS

log = logging.getLogger(__name__)

DEFAULT_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class SecurityHeaders:
    """Security headers middleware for Flask applications"""

    def __init__(self, app: Optional[Flask] = None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        """Initialize security headers and CORS for Flask app"""
        app.config.setdefault("SECURITY_HEADERS_ENABLED", True)
        app.config.setdefault("SECURITY_HEADERS", dict(DEFAULT_SECURITY_HEADERS))
        app.config.setdefault("FRONTEND_URL", "http://localhost:5173")
        app.after_request(self._add_security_headers)
        CORS(
            app,
            resources={r"/api/*": {"origins": app.config["FRONTEND_URL"]}},
            supports_credentials=True,
        )
        log.info(
            "Security headers middleware initialized, CORS origin %s",
            app.config["FRONTEND_URL"],
        )

    @staticmethod
    def _add_security_headers(response):
        """Add security headers to all responses"""
        if not current_app.config["SECURITY_HEADERS_ENABLED"]:
            return response
        for name, value in current_app.config["SECURITY_HEADERS"].items():
            response.headers.setdefault(name, value)
        return response
