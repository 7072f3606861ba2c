__author__ = "Cully Engineering"
__version__ = "1.0.0"

from .app import create_app  # noqa: F401
from .base import ReportBuilder  # noqa: F401
from .models.sqla import db, Model, SQLA  # noqa: F401
