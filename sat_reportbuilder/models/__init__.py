from .audit import AuditLog  # noqa: F401
from .report import Comment, Report, ReportFile, ReportStep, Signature  # noqa: F401
from .settings import SystemSetting  # noqa: F401
from .sqla import db, Model, SQLA  # noqa: F401
from .user import User  # noqa: F401
