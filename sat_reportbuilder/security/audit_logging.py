"""
Audit logging for SAT-ReportBuilder.

Successful API requests are matched against ``AUDIT_RULES`` after the
view has run. A match writes an ``AuditLog`` row and a JSON line on the
``sat_reportbuilder.audit`` logger. Audit failures are logged and never
change the response.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from flask import current_app, Flask, g, request
from sqlalchemy.exc import SQLAlchemyError

from ..models.audit import AuditLog
from ..models.sqla import db

log = logging.getLogger(__name__)
audit_log = logging.getLogger("sat_reportbuilder.audit")

# Most specific first, the first match wins
AUDIT_RULES = [
    ("POST", r"^/api/auth/login$", "login"),
    ("POST", r"^/api/auth/logout$", "logout"),
    ("POST", r"^/api/auth/register$", "register"),
    ("POST", r"^/api/reports/\d+/submit$", "report_submit"),
    ("POST", r"^/api/reports/\d+/approve$", "report_approve"),
    ("POST", r"^/api/reports/\d+/reject$", "report_reject"),
    ("POST", r"^/api/reports/\d+/revise$", "report_revise"),
    ("GET", r"^/api/reports/\d+/export$", "report_export"),
    ("POST", r"^/api/reports/\d+/comments$", "comment_create"),
    ("PUT", r"^/api/reports/\d+/steps$", "step_save"),
    ("POST", r"^/api/reports/\d+/steps/[a-z_]+/generate$", "step_save"),
    ("PUT", r"^/api/reports/\d+$", "report_update"),
    ("DELETE", r"^/api/reports/\d+$", "report_delete"),
    ("POST", r"^/api/reports/?$", "report_create"),
    ("POST", r"^/api/users/\d+/approve$", "user_approve"),
    ("POST", r"^/api/users/?$", "user_create"),
    ("PUT", r"^/api/users/\d+$", "user_update"),
    ("DELETE", r"^/api/users/\d+$", "user_delete"),
    ("POST", r"^/api/files/upload$", "file_upload"),
    ("PUT", r"^/api/settings/?$", "settings_update"),
]

_compiled_rules = [
    (method, re.compile(pattern), action) for method, pattern, action in AUDIT_RULES
]

_report_id_re = re.compile(r"/api/reports/(\d+)")

SENSITIVE_FIELDS = frozenset(
    ["password", "currentPassword", "newPassword", "signatureData", "token"]
)


def determine_action(method: str, path: str) -> Optional[str]:
    """Return the audit action for a request, or None when not audited"""
    for rule_method, pattern, action in _compiled_rules:
        if method == rule_method and pattern.match(path):
            return action
    return None


def extract_report_id(path: str) -> Optional[int]:
    match = _report_id_re.search(path)
    return int(match.group(1)) if match else None


def sanitize_body(body: Any) -> Any:
    """Remove credentials and signatures from a request body"""
    if isinstance(body, dict):
        return {
            key: sanitize_body(value)
            for key, value in body.items()
            if key not in SENSITIVE_FIELDS
        }
    if isinstance(body, list):
        return [sanitize_body(item) for item in body]
    return body


class AuditLogger:
    """Writes audit trail entries for API requests and explicit events"""

    def __init__(self, app: Optional[Flask] = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        app.config.setdefault("AUDIT_LOG_ENABLED", True)
        app.after_request(self._audit_request)

    def _audit_request(self, response):
        if not current_app.config["AUDIT_LOG_ENABLED"]:
            return response
        if not 200 <= response.status_code < 300:
            return response
        action = determine_action(request.method, request.path)
        if action:
            report_id = g.get("audit_report_id") or extract_report_id(request.path)
            self.log_event(
                action,
                user_id=self._current_user_id(),
                report_id=report_id,
                details=self.request_details(),
            )
        return response

    @staticmethod
    def _current_user_id() -> Optional[int]:
        user = g.get("user")
        if user is not None:
            return user.id
        return g.get("audit_user_id")

    @staticmethod
    def request_details() -> Dict[str, Any]:
        if request.is_json:
            body = request.get_json(silent=True)
        else:
            body = request.form.to_dict() or None
        return {
            "method": request.method,
            "url": request.full_path.rstrip("?"),
            "userAgent": request.headers.get("User-Agent"),
            "body": sanitize_body(body),
        }

    def log_event(
        self,
        action: str,
        user_id: Optional[int] = None,
        report_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Persist an audit entry, returns None when it could not be stored"""
        if ip_address is None:
            ip_address = request.remote_addr if request else None
        entry = AuditLog(
            user_id=user_id,
            report_id=report_id,
            action=action,
            details=details or {},
            ip_address=ip_address or "unknown",
        )
        try:
            db.session.add(entry)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error("Failed to create audit log for %s: %s", action, e)
            return None
        audit_log.info(
            json.dumps(
                {
                    "action": action,
                    "userId": user_id,
                    "reportId": report_id,
                    "ipAddress": entry.ip_address,
                    "timestamp": entry.created_on.isoformat(),
                }
            )
        )
        return entry
