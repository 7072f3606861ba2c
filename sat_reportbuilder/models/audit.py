import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from .sqla import Model


class AuditLog(Model):
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), index=True)
    report_id = Column(Integer, index=True)
    action = Column(String(64), nullable=False, index=True)
    details = Column(JSON)
    ip_address = Column(String(64))
    created_on = Column(
        DateTime, default=datetime.datetime.utcnow, nullable=False, index=True
    )

    user = relationship("User")
    report = relationship(
        "Report",
        primaryjoin="foreign(AuditLog.report_id) == Report.id",
        viewonly=True,
    )

    def __repr__(self):
        return f"{self.action} by {self.user_id}"
