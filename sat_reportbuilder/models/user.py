from sqlalchemy import Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship

from ..const import UserRole, UserStatus
from .mixins import AuditMixin
from .sqla import Model


class User(AuditMixin, Model):
    id = Column(Integer, primary_key=True)
    email = Column(String(256), unique=True, nullable=False, index=True)
    full_name = Column(String(128), nullable=False)
    password = Column(String(256), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.ENGINEER)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.PENDING)
    last_login = Column(DateTime)
    login_count = Column(Integer, default=0)
    fail_login_count = Column(Integer, default=0)

    created_reports = relationship(
        "Report", foreign_keys="Report.creator_id", back_populates="creator"
    )
    tm_reports = relationship(
        "Report", foreign_keys="Report.tm_id", back_populates="technical_manager"
    )
    pm_reports = relationship(
        "Report", foreign_keys="Report.pm_id", back_populates="project_manager"
    )

    @property
    def is_active(self):
        return self.status == UserStatus.ACTIVE

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    @property
    def report_counts(self):
        return {
            "createdReports": len(self.created_reports),
            "tmAssignedReports": len(self.tm_reports),
            "pmAssignedReports": len(self.pm_reports),
        }

    def __repr__(self):
        return self.email
