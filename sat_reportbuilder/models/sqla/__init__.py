import logging
import re

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import as_declarative, DeclarativeMeta

log = logging.getLogger(__name__)

_camelcase_re = re.compile(r"([A-Z]+)(?=[a-z0-9])")


class ModelDeclarativeMeta(DeclarativeMeta):
    """
    Base Model declarative meta for all Models definitions.
    Setup the table name based on the class camelcase name.
    """

    def __new__(cls, name, bases, namespace, **kwargs):
        if (
            "__tablename__" not in namespace
            and name != "Model"
            and not namespace.get("__abstract__", False)
        ):
            table_name = _camelcase_re.sub(r"_\1", name).lower().lstrip("_")
            namespace["__tablename__"] = table_name
        return super().__new__(cls, name, bases, namespace, **kwargs)


@as_declarative(name="Model", metaclass=ModelDeclarativeMeta)
class Model(object):
    """
    Use this class has the base for your models,
    it will define your table names automatically
    ReportStep will be called report_step on the database.

    ::

        from sqlalchemy import Integer, String
        from sat_reportbuilder import Model

        class MyModel(Model):
            id = Column(Integer, primary_key=True)
            name = Column(String(50), unique = True, nullable=False)

    """

    __table_args__ = {"extend_existing": True}


class SQLA(SQLAlchemy):
    """
    This is a child class of flask_SQLAlchemy
    It's purpose is to bind the declarative base of the original
    package to the SAT-ReportBuilder Model class, so every table lives
    in the same metadata as the security and audit tables.

    Use it and configure it just like flask_SQLAlchemy
    """

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("model_class", Model)
        super().__init__(*args, **kwargs)


db = SQLA()