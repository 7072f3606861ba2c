import datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ...basemanager import BaseManager
from ...const import (
    LOGMSG_ERR_DBI_EDIT_GENERIC,
    LOGMSG_INF_WORKFLOW_TRANSITION,
    ReportStatus,
    UserRole,
)
from ...exceptions import (
    AuthorizationError,
    ValidationError,
    WorkflowTransitionError,
)
from ...models.report import Comment, Report, Signature
from ...models.sqla import db
from ...models.user import User
from ...wizard.review import submission_issues

log = logging.getLogger(__name__)

# Pending state -> (report attribute holding the approver, signature role)
APPROVAL_STAGES = {
    ReportStatus.PENDING_TM_APPROVAL: ("tm_id", UserRole.TECHNICAL_MANAGER),
    ReportStatus.PENDING_PM_APPROVAL: ("pm_id", UserRole.PROJECT_MANAGER),
}


class ReportApprovalWorkflow(BaseManager):
    """
    Drives a report through its approval states.

    Every method checks that the action is allowed from the current
    status (409 otherwise) and that ``user`` is the actor the status
    waits for (403 otherwise), then records the transition on the
    report's state history and commits.
    """

    def _check_transition(self, report: Report, action: str) -> str:
        target = report.target_state(action)
        if target is None:
            raise WorkflowTransitionError(action, report.workflow_state)
        return target

    @staticmethod
    def _check_creator(report: Report, user: User, action: str) -> None:
        if report.creator_id != user.id:
            raise AuthorizationError(f"Only the report creator can {action} this report")

    @staticmethod
    def _check_approver(report: Report, user: User, action: str) -> UserRole:
        attribute, role = APPROVAL_STAGES[report.status]
        if getattr(report, attribute) != user.id:
            raise AuthorizationError(
                f"Only the assigned {role.value.replace('_', ' ').title()}"
                f" can {action} this report"
            )
        return role

    def _transition(
        self,
        report: Report,
        target: str,
        action: str,
        user: User,
        comment: Optional[str] = None,
    ) -> Report:
        old_state = report.workflow_state
        report.change_state(target, action, user_id=user.id, comment=comment)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error(LOGMSG_ERR_DBI_EDIT_GENERIC, e)
            raise
        log.info(
            LOGMSG_INF_WORKFLOW_TRANSITION,
            report.id,
            old_state,
            report.workflow_state,
            user.id,
            action,
        )
        return report

    def available_actions(self, report: Report, user: User) -> List[str]:
        """Actions ``user`` may perform on the report right now"""
        actions = []
        for action in report.get_available_actions():
            if action in ("submit", "revise"):
                allowed = report.creator_id == user.id
            else:
                attribute, _ = APPROVAL_STAGES[report.status]
                allowed = getattr(report, attribute) == user.id
            if allowed:
                actions.append(action)
        return actions

    def submit(self, report: Report, user: User) -> Report:
        target = self._check_transition(report, "submit")
        self._check_creator(report, user, "submit")
        issues = submission_issues(report.steps_data, report.header_data)
        if issues:
            raise ValidationError("Report is not ready for submission", errors=issues)
        report.submitted_at = datetime.datetime.utcnow()
        return self._transition(report, target, "submit", user)

    def approve(
        self,
        report: Report,
        user: User,
        comment: Optional[str] = None,
        signature_data: Optional[str] = None,
        storage_location: Optional[str] = None,
    ) -> Report:
        target = self._check_transition(report, "approve")
        role = self._check_approver(report, user, "approve")
        if report.status == ReportStatus.PENDING_TM_APPROVAL and not report.pm_id:
            raise ValidationError(
                "A Project Manager must be assigned before the report can be approved"
            )
        if report.status == ReportStatus.PENDING_PM_APPROVAL:
            if storage_location:
                locations = self.appbuilder.settings.get("final_storage_locations")
                if storage_location not in locations:
                    raise ValidationError("Invalid storage location")
                report.storage_location = storage_location
            report.completed_at = datetime.datetime.utcnow()
        report.signatures.append(
            Signature(user_id=user.id, role=role, signature_data=signature_data)
        )
        if comment:
            report.comments.append(Comment(user_id=user.id, content=comment))
        return self._transition(report, target, "approve", user, comment)

    def reject(self, report: Report, user: User, comment: str) -> Report:
        target = self._check_transition(report, "reject")
        self._check_approver(report, user, "reject")
        if not comment or not comment.strip():
            raise ValidationError("A rejection comment is required")
        report.comments.append(Comment(user_id=user.id, content=comment.strip()))
        return self._transition(report, target, "reject", user, comment.strip())

    def revise(self, report: Report, user: User) -> Report:
        target = self._check_transition(report, "revise")
        self._check_creator(report, user, "revise")
        return self._transition(report, target, "revise", user)
