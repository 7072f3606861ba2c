import datetime

from sqlalchemy import Column, DateTime, Integer, JSON, String

from .sqla import Model


class SystemSetting(Model):
    id = Column(Integer, primary_key=True)
    key = Column(String(64), unique=True, nullable=False)
    value = Column(JSON)
    changed_on = Column(
        DateTime,
        default=datetime.datetime.utcnow,
        onupdate=datetime.datetime.utcnow,
        nullable=False,
    )

    def __repr__(self):
        return self.key
