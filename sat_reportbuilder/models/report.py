import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..const import ReportStatus, ReportType, UserRole
from .mixins import AuditMixin, WorkflowMixin
from .sqla import Model


class Report(AuditMixin, WorkflowMixin, Model):
    __table_args__ = (
        UniqueConstraint("document_ref", "revision", name="uq_report_document_revision"),
        {"extend_existing": True},
    )

    id = Column(Integer, primary_key=True)
    title = Column(String(256), nullable=False)
    project_ref = Column(String(128), nullable=False)
    document_ref = Column(String(128), nullable=False)
    revision = Column(String(32), nullable=False)
    type = Column(Enum(ReportType), nullable=False, default=ReportType.SAT)
    status = Column(
        Enum(ReportStatus), nullable=False, default=ReportStatus.DRAFT, index=True
    )
    creator_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    tm_id = Column(Integer, ForeignKey("user.id"), nullable=True)
    pm_id = Column(Integer, ForeignKey("user.id"), nullable=True)
    storage_location = Column(String(512))
    submitted_at = Column(DateTime)
    completed_at = Column(DateTime)

    creator = relationship(
        "User", foreign_keys=[creator_id], back_populates="created_reports"
    )
    technical_manager = relationship(
        "User", foreign_keys=[tm_id], back_populates="tm_reports"
    )
    project_manager = relationship(
        "User", foreign_keys=[pm_id], back_populates="pm_reports"
    )
    steps = relationship(
        "ReportStep",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportStep.id",
    )
    signatures = relationship(
        "Signature",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="Signature.signed_at",
    )
    comments = relationship(
        "Comment",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="Comment.created_on.desc()",
    )
    files = relationship(
        "ReportFile",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportFile.created_on.desc()",
    )

    __workflow_transitions__ = {
        ReportStatus.DRAFT.value: {
            "submit": ReportStatus.PENDING_TM_APPROVAL.value,
        },
        ReportStatus.PENDING_TM_APPROVAL.value: {
            "approve": ReportStatus.PENDING_PM_APPROVAL.value,
            "reject": ReportStatus.REJECTED.value,
        },
        ReportStatus.PENDING_PM_APPROVAL.value: {
            "approve": ReportStatus.COMPLETED.value,
            "reject": ReportStatus.REJECTED.value,
        },
        ReportStatus.REJECTED.value: {
            "revise": ReportStatus.DRAFT.value,
        },
        ReportStatus.COMPLETED.value: {},
    }
    __workflow_enum__ = ReportStatus

    @property
    def is_editable(self):
        return self.status == ReportStatus.DRAFT

    def get_step(self, step_name):
        for step in self.steps:
            if step.step_name == step_name:
                return step
        return None

    def get_step_data(self, step_name):
        step = self.get_step(step_name)
        return step.data if step is not None else None

    @property
    def steps_data(self):
        return {step.step_name: step.data or {} for step in self.steps}

    @property
    def header_data(self):
        """Header fields under their document_info keys"""
        return {
            "title": self.title,
            "projectRef": self.project_ref,
            "documentRef": self.document_ref,
            "revision": self.revision,
            "tmId": self.tm_id,
            "pmId": self.pm_id,
        }

    @property
    def filename_stem(self):
        return f"{self.document_ref}_Rev{self.revision}"

    def is_accessible_by(self, user):
        if user.role == UserRole.ADMIN:
            return True
        return user.id in (self.creator_id, self.tm_id, self.pm_id)

    def __repr__(self):
        return f"{self.document_ref} Rev {self.revision}"


class ReportStep(AuditMixin, Model):
    __table_args__ = (
        UniqueConstraint("report_id", "step_name", name="uq_report_step_name"),
        {"extend_existing": True},
    )

    id = Column(Integer, primary_key=True)
    report_id = Column(
        Integer, ForeignKey("report.id", ondelete="CASCADE"), nullable=False
    )
    step_name = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)

    report = relationship("Report", back_populates="steps")

    def __repr__(self):
        return f"{self.report_id}:{self.step_name}"


class Signature(Model):
    id = Column(Integer, primary_key=True)
    report_id = Column(
        Integer, ForeignKey("report.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    role = Column(Enum(UserRole), nullable=False)
    signature_data = Column(Text)
    signed_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    report = relationship("Report", back_populates="signatures")
    user = relationship("User")


class Comment(Model):
    id = Column(Integer, primary_key=True)
    report_id = Column(
        Integer, ForeignKey("report.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_on = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    report = relationship("Report", back_populates="comments")
    user = relationship("User")


class ReportFile(Model):
    id = Column(Integer, primary_key=True)
    report_id = Column(
        Integer, ForeignKey("report.id", ondelete="CASCADE"), nullable=True
    )
    uploaded_by_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    filename = Column(String(256), nullable=False, unique=True)
    original_name = Column(String(256), nullable=False)
    mime_type = Column(String(128))
    size = Column(Integer, default=0)
    description = Column(String(512))
    created_on = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    report = relationship("Report", back_populates="files")
    uploaded_by = relationship("User")

    def __repr__(self):
        return self.original_name
