"""
Exception hierarchy for SAT-ReportBuilder.

Every error raised by the service layer carries an HTTP status code,
a category and a severity. The API layer turns them into the standard
error envelope through ``to_dict``.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

log = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for categorization and response."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for systematic handling."""
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    WORKFLOW = "workflow"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


class SATError(Exception):
    """
    Base exception class for all SAT-ReportBuilder errors.

    :param message: Message returned to the API client
    :param status_code: HTTP status the API layer responds with
    :param category: Error category for systematic handling
    :param severity: Error severity, drives the log level
    :param details: Extra structured data merged into the error body
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.category = category
        self.severity = severity
        self.details = details or {}
        self._auto_log()

    def _auto_log(self):
        log_message = f"[{self.__class__.__name__}] {self.message}"
        if self.severity == ErrorSeverity.CRITICAL:
            log.critical(log_message)
        elif self.severity == ErrorSeverity.HIGH:
            log.error(log_message)
        elif self.severity == ErrorSeverity.MEDIUM:
            log.warning(log_message)
        else:
            log.info(log_message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to the body of an error envelope."""
        error = {"message": self.message}
        error.update(self.details)
        return error


class AuthenticationError(SATError):
    """Missing, invalid or expired credentials."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )


class AuthorizationError(SATError):
    """Authenticated user may not perform the action."""

    status_code = 403

    def __init__(self, message: str = "Access denied", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHORIZATION,
            severity=ErrorSeverity.MEDIUM,
            **kwargs,
        )


class NotFoundError(SATError):
    status_code = 404

    def __init__(self, message: str = "Not found", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )


class ValidationError(SATError):
    """
    Data validation errors.

    Business rule violations answer 400, schema violations answer 422
    together with the per field ``errors``.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Union[Dict[str, Any], List[str]]] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {}) or {}
        if errors:
            details["errors"] = errors
        super().__init__(
            message=message,
            status_code=status_code,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            details=details,
            **kwargs,
        )
        self.errors = errors or {}


class ConflictError(SATError):
    """The request conflicts with the current state of a resource."""

    status_code = 409

    def __init__(self, message: str = "Conflict", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFLICT,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )


class WorkflowTransitionError(ConflictError):
    """A report action is not allowed from its current status."""

    def __init__(self, action: str, status: str, **kwargs):
        message = f"Cannot {action} a report in status {status}"
        super().__init__(message=message, **kwargs)
        self.action = action
        self.status = status


class ConfigurationError(SATError):
    def __init__(self, message: str = "Configuration error", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )


class MissingConfigurationError(ConfigurationError):
    """Missing configuration errors."""

    def __init__(self, setting: str, **kwargs):
        message = f"Required configuration setting '{setting}' is missing"
        super().__init__(message=message, **kwargs)
        self.setting = setting
