import logging
from typing import List, Optional, Type

from flask import Flask

from .api import BaseApi
from .api.audit import AuditApi
from .api.files import FilesApi
from .api.openapi import HealthApi, OpenApi
from .api.reports import ReportsApi
from .api.settings import SettingsApi
from .api.users import UsersApi
from .const import LOGMSG_INF_API_REGISTER
from .models.sqla import db
from .process.approval import ReportApprovalWorkflow
from .security.api import SecurityApi
from .security.manager import SecurityManager
from .settings import SettingsManager

log = logging.getLogger(__name__)


class ReportBuilder(object):
    """
    This is the base class for all the framework.
    This is where you will register all your APIs
    and create the managers they rely on.

    initialize your application like this::

        app = Flask(__name__)
        app.config.from_object("config")
        db.init_app(app)
        with app.app_context():
            reportbuilder = ReportBuilder(app)
    """

    baseapis: List[BaseApi] = None
    app = None

    security_manager_class = SecurityManager
    settings_manager_class = SettingsManager
    workflow_class = ReportApprovalWorkflow

    default_apis = (
        SecurityApi,
        ReportsApi,
        UsersApi,
        AuditApi,
        SettingsApi,
        FilesApi,
        HealthApi,
        OpenApi,
    )

    def __init__(self, app: Optional[Flask] = None):
        """
        ReportBuilder constructor

        :param app:
            The flask app object
        """
        self.baseapis = []
        self.sm = None
        self.settings = None
        self.workflow = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.app = app
        app.extensions["reportbuilder"] = self
        self.sm = self.security_manager_class(self)
        self.settings = self.settings_manager_class(self)
        self.workflow = self.workflow_class(self)
        for api_class in self.default_apis:
            self.add_api(api_class)

    @property
    def get_app(self) -> Flask:
        """
        Get current or configured flask app

        :return: Flask App
        """
        return self.app

    def add_api(self, baseview: Type[BaseApi]) -> BaseApi:
        """
        Add a BaseApi class or instance to the app and register
        its blueprint.

        :param baseview: A BaseApi type class or instance
        """
        if isinstance(baseview, type):
            baseview = baseview()
        log.info(LOGMSG_INF_API_REGISTER, baseview.__class__.__name__, baseview.route_base)
        self.baseapis.append(baseview)
        self.get_app.register_blueprint(baseview.create_blueprint(self))
        return baseview

    def create_db(self) -> None:
        """Create every table, then store the default settings"""
        db.create_all()
        self.settings.create_defaults()
