import logging
from io import BytesIO

from flask import current_app, g, Response, send_file
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy import or_

from . import BaseApi, expose, safe
from .schemas import (
    ApprovePostSchema,
    comment_schema,
    CommentPostSchema,
    CommentSchema,
    ExportQuerySchema,
    RejectPostSchema,
    report_detail_schema,
    report_list_schema,
    report_step_schema,
    ReportDetailSchema,
    ReportListSchema,
    ReportPostSchema,
    ReportQuerySchema,
    ReportStepSchema,
    signature_schema,
    SignatureSchema,
    StepPutSchema,
)
from .. import wizard
from ..const import ReportStatus, UserRole
from ..exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..export import export_report
from ..filemanager import FileManager
from ..models.report import Comment, Report, ReportStep
from ..models.sqla import db
from ..models.user import User
from ..security.decorators import protect

log = logging.getLogger(__name__)

DUPLICATE_REPORT_MESSAGE = (
    "A report with this Document Reference and Revision already exists."
)

# document_info step keys synced to the report header
HEADER_KEYS = {
    "title": "title",
    "projectRef": "project_ref",
    "documentRef": "document_ref",
    "revision": "revision",
    "tmId": "tm_id",
    "pmId": "pm_id",
}

report_post = ReportPostSchema()
report_put = ReportPostSchema(partial=True)
report_query = ReportQuerySchema()
step_put = StepPutSchema()
approve_post = ApprovePostSchema()
reject_post = RejectPostSchema()
comment_post = CommentPostSchema()
export_query = ExportQuerySchema()


def get_report_or_404(pk: int, user: User) -> Report:
    """
    The report ``pk`` when ``user`` may see it

    :raises NotFoundError: no such report
    :raises AuthorizationError: the user is not involved with the report
    """
    report = db.session.get(Report, pk)
    if report is None:
        raise NotFoundError("Report not found")
    if not report.is_accessible_by(user):
        raise AuthorizationError("Access denied")
    return report


class ReportsApi(BaseApi):
    """SAT reports, their wizard steps and their approval workflow"""

    resource_name = "reports"
    openapi_spec_tag = "Reports"
    openapi_spec_component_schemas = (
        ReportListSchema,
        ReportDetailSchema,
        ReportStepSchema,
        SignatureSchema,
        CommentSchema,
        ReportPostSchema,
        StepPutSchema,
        ApprovePostSchema,
        RejectPostSchema,
        CommentPostSchema,
    )

    """
    ----------------------------------------
        HELPERS
    ----------------------------------------
    """

    @property
    def workflow(self):
        return self.appbuilder.workflow

    def _dump_detail(self, report: Report):
        data = report_detail_schema.dump(report)
        data["availableActions"] = self.workflow.available_actions(report, g.user)
        return data

    @staticmethod
    def _check_editable(report: Report, user: User) -> None:
        if report.creator_id != user.id:
            raise AuthorizationError("Only the report creator can edit this report")
        if not report.is_editable:
            raise ConflictError("Only draft reports can be edited")

    @staticmethod
    def _check_approver(user_id, role: UserRole, label: str) -> None:
        if user_id is None:
            return
        user = db.session.get(User, user_id)
        if user is None or user.role != role or not user.is_active:
            raise ValidationError(f"Invalid {label} selected")

    @staticmethod
    def _check_unique(document_ref: str, revision: str, exclude_id=None) -> None:
        query = db.session.query(Report).filter(
            Report.document_ref == document_ref, Report.revision == revision
        )
        if exclude_id is not None:
            query = query.filter(Report.id != exclude_id)
        if query.first() is not None:
            raise ValidationError(DUPLICATE_REPORT_MESSAGE)

    def _apply_header(self, report: Report, values) -> None:
        """Validate and set header attributes, keyed by attribute name"""
        if "tm_id" in values:
            self._check_approver(
                values["tm_id"], UserRole.TECHNICAL_MANAGER, "Technical Manager"
            )
        if "pm_id" in values:
            self._check_approver(
                values["pm_id"], UserRole.PROJECT_MANAGER, "Project Manager"
            )
        document_ref = values.get("document_ref", report.document_ref)
        revision = values.get("revision", report.revision)
        if (document_ref, revision) != (report.document_ref, report.revision):
            self._check_unique(document_ref, revision, exclude_id=report.id)
        for key, value in values.items():
            setattr(report, key, value)

    @staticmethod
    def _save_step(report: Report, step_name: str, data) -> ReportStep:
        step = report.get_step(step_name)
        if step is None:
            step = ReportStep(step_name=step_name, data=data)
            report.steps.append(step)
        else:
            step.data = data
        return step

    """
    ----------------------------------------
        CRUD
    ----------------------------------------
    """

    @expose("/", methods=["GET"])
    @protect()
    @safe
    def get_list(self) -> Response:
        """Reports visible to the current user
        ---
        get:
          parameters:
          - in: query
            name: status
            schema:
              type: string
              enum: [DRAFT, PENDING_TM_APPROVAL, PENDING_PM_APPROVAL, COMPLETED, REJECTED]
          - in: query
            name: search
            schema:
              type: string
          responses:
            200:
              description: Reports, most recently changed first
              content:
                application/json:
                  schema:
                    type: array
                    items:
                      $ref: '#/components/schemas/ReportList'
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
        """
        args = self.load_args(report_query)
        user = g.user
        query = db.session.query(Report)
        if user.role == UserRole.ENGINEER:
            query = query.filter(Report.creator_id == user.id)
        elif user.role == UserRole.TECHNICAL_MANAGER:
            query = query.filter(Report.tm_id == user.id)
        elif user.role == UserRole.PROJECT_MANAGER:
            query = query.filter(Report.pm_id == user.id)
        if args.get("status"):
            query = query.filter(Report.status == ReportStatus(args["status"]))
        if args.get("search"):
            term = f"%{args['search']}%"
            query = query.filter(
                or_(
                    Report.title.ilike(term),
                    Report.project_ref.ilike(term),
                    Report.document_ref.ilike(term),
                )
            )
        reports = query.order_by(Report.changed_on.desc(), Report.id.desc()).all()
        return self.response_data(report_list_schema.dump(reports))

    @expose("/<int:pk>", methods=["GET"])
    @protect()
    @safe
    def get(self, pk: int) -> Response:
        """A report with its steps, signatures, comments and files
        ---
        get:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: The report
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportDetail'
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        report = get_report_or_404(pk, g.user)
        return self.response_data(self._dump_detail(report))

    @expose("/", methods=["POST"])
    @protect(UserRole.ENGINEER)
    @safe
    def post(self) -> Response:
        """Create a DRAFT report
        ---
        post:
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/ReportPost'
          responses:
            201:
              description: Report created
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportDetail'
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
        """
        item = self.load_payload(report_post)
        self._check_approver(
            item.get("tm_id"), UserRole.TECHNICAL_MANAGER, "Technical Manager"
        )
        self._check_approver(item.get("pm_id"), UserRole.PROJECT_MANAGER, "Project Manager")
        self._check_unique(item["document_ref"], item["revision"])
        report = Report(creator_id=g.user.id, status=ReportStatus.DRAFT, **item)
        db.session.add(report)
        db.session.commit()
        g.audit_report_id = report.id
        return self.response_data(self._dump_detail(report), code=201)

    @expose("/<int:pk>", methods=["PUT"])
    @protect()
    @safe
    def put(self, pk: int) -> Response:
        """Update the header of a DRAFT report
        ---
        put:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/ReportPost'
          responses:
            200:
              description: Report updated
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportDetail'
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        report = get_report_or_404(pk, g.user)
        self._check_editable(report, g.user)
        item = self.load_payload(report_put)
        self._apply_header(report, item)
        db.session.commit()
        return self.response_data(self._dump_detail(report))

    @expose("/<int:pk>", methods=["DELETE"])
    @protect()
    @safe
    def delete(self, pk: int) -> Response:
        """Delete a report, its steps, signatures, comments and files
        ---
        delete:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: Report deleted
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        report = get_report_or_404(pk, g.user)
        if g.user.role != UserRole.ADMIN:
            self._check_editable(report, g.user)
        stored = [file.filename for file in report.files]
        db.session.delete(report)
        db.session.commit()
        file_manager = FileManager()
        for filename in stored:
            file_manager.delete_file(filename)
        return self.response_data(message="Report deleted successfully")

    """
    ----------------------------------------
        WIZARD STEPS
    ----------------------------------------
    """

    @expose("/<int:pk>/steps", methods=["PUT"])
    @protect()
    @safe
    def put_step(self, pk: int) -> Response:
        """Save the data of one wizard step
        ---
        put:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/StepPut'
          responses:
            200:
              description: Step saved
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportStep'
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
            422:
              $ref: '#/components/responses/422'
        """
        report = get_report_or_404(pk, g.user)
        self._check_editable(report, g.user)
        item = self.load_payload(step_put)
        wizard_step = wizard.get_step(item["step_name"])
        if wizard_step is None or not wizard_step.stores_data:
            raise ValidationError(f"Unknown step: {item['step_name']}")
        try:
            data = wizard_step.clean(item["data"])
        except MarshmallowValidationError as e:
            raise ValidationError("Step data is invalid", errors=e.messages, status_code=422)
        if wizard_step.name == "document_info":
            self._apply_header(
                report,
                {
                    attribute: data.get(key)
                    for key, attribute in HEADER_KEYS.items()
                    if key in data
                },
            )
        step = self._save_step(report, wizard_step.name, data)
        db.session.commit()
        return self.response_data(report_step_schema.dump(step))

    @expose("/<int:pk>/steps/<step_name>", methods=["GET"])
    @protect()
    @safe
    def get_step(self, pk: int, step_name: str) -> Response:
        """Stored data of one wizard step
        ---
        get:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          - in: path
            schema:
              type: string
            name: step_name
          responses:
            200:
              description: The step
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportStep'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        report = get_report_or_404(pk, g.user)
        step = report.get_step(step_name)
        if step is None:
            raise NotFoundError("Step not found")
        return self.response_data(report_step_schema.dump(step))

    @expose("/<int:pk>/steps/signal_tests/generate", methods=["POST"])
    @protect()
    @safe
    def generate_signal_tests(self, pk: int) -> Response:
        """Build the signal tests from the saved module and Modbus setup
        ---
        post:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: Generated signal_tests step
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportStep'
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        report = get_report_or_404(pk, g.user)
        self._check_editable(report, g.user)
        pre_configuration = report.get_step_data("pre_configuration")
        if not pre_configuration:
            raise ValidationError("Save the Module & Modbus Setup step first")
        data = wizard.get_step("signal_tests").clean(
            wizard.generate_signal_tests(pre_configuration)
        )
        step = self._save_step(report, "signal_tests", data)
        db.session.commit()
        return self.response_data(report_step_schema.dump(step))

    @expose("/<int:pk>/review", methods=["GET"])
    @protect()
    @safe
    def review(self, pk: int) -> Response:
        """Completion of every step and the issues blocking a submission
        ---
        get:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: Review of the report
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        report = get_report_or_404(pk, g.user)
        review = wizard.build_review(report.steps_data, report.header_data)
        review["availableActions"] = self.workflow.available_actions(report, g.user)
        return self.response_data(review)

    """
    ----------------------------------------
        WORKFLOW
    ----------------------------------------
    """

    @expose("/<int:pk>/submit", methods=["POST"])
    @protect()
    @safe
    def submit(self, pk: int) -> Response:
        """Submit a DRAFT report to its Technical Manager
        ---
        post:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: Report submitted
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportDetail'
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        report = get_report_or_404(pk, g.user)
        self.workflow.submit(report, g.user)
        return self.response_data(
            self._dump_detail(report), message="Report submitted for approval"
        )

    @expose("/<int:pk>/approve", methods=["POST"])
    @protect(UserRole.TECHNICAL_MANAGER, UserRole.PROJECT_MANAGER)
    @safe
    def approve(self, pk: int) -> Response:
        """Approve and sign a pending report
        ---
        post:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          requestBody:
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/ApprovePost'
          responses:
            200:
              description: Report approved
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportDetail'
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        report = get_report_or_404(pk, g.user)
        item = self.load_payload(approve_post, required=False)
        self.workflow.approve(
            report,
            g.user,
            comment=item.get("comment"),
            signature_data=item.get("signature_data"),
            storage_location=item.get("storage_location"),
        )
        if current_app.config["AUDIT_LOG_ENABLED"]:
            signature = report.signatures[-1]
            self.appbuilder.sm.audit.log_event(
                "signature_create",
                user_id=g.user.id,
                report_id=report.id,
                details={"signatureId": signature.id, "role": str(signature.role)},
            )
        return self.response_data(self._dump_detail(report), message="Report approved")

    @expose("/<int:pk>/reject", methods=["POST"])
    @protect(UserRole.TECHNICAL_MANAGER, UserRole.PROJECT_MANAGER)
    @safe
    def reject(self, pk: int) -> Response:
        """Reject a pending report with a comment
        ---
        post:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/RejectPost'
          responses:
            200:
              description: Report rejected
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportDetail'
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        report = get_report_or_404(pk, g.user)
        item = self.load_payload(reject_post)
        self.workflow.reject(report, g.user, item["comment"])
        return self.response_data(self._dump_detail(report), message="Report rejected")

    @expose("/<int:pk>/revise", methods=["POST"])
    @protect()
    @safe
    def revise(self, pk: int) -> Response:
        """Move a rejected report back to DRAFT
        ---
        post:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: Report back in draft
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/ReportDetail'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        report = get_report_or_404(pk, g.user)
        self.workflow.revise(report, g.user)
        return self.response_data(
            self._dump_detail(report), message="Report returned to draft"
        )

    @expose("/<int:pk>/history", methods=["GET"])
    @protect()
    @safe
    def history(self, pk: int) -> Response:
        """State transitions of a report, oldest first
        ---
        get:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: Transition records
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        report = get_report_or_404(pk, g.user)
        return self.response_data(report.get_state_history())

    """
    ----------------------------------------
        COMMENTS, SIGNATURES AND EXPORT
    ----------------------------------------
    """

    @expose("/<int:pk>/comments", methods=["POST"])
    @protect()
    @safe
    def post_comment(self, pk: int) -> Response:
        """Comment on a report
        ---
        post:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/CommentPost'
          responses:
            201:
              description: Comment added
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/Comment'
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        report = get_report_or_404(pk, g.user)
        item = self.load_payload(comment_post)
        comment = Comment(user_id=g.user.id, content=item["content"])
        report.comments.append(comment)
        db.session.commit()
        return self.response_data(comment_schema.dump(comment), code=201)

    @expose("/<int:pk>/signatures", methods=["GET"])
    @protect()
    @safe
    def get_signatures(self, pk: int) -> Response:
        """Signatures of a report
        ---
        get:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: Signatures, oldest first
              content:
                application/json:
                  schema:
                    type: array
                    items:
                      $ref: '#/components/schemas/Signature'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        report = get_report_or_404(pk, g.user)
        return self.response_data(signature_schema.dump(report.signatures))

    @expose("/<int:pk>/export", methods=["GET"])
    @protect()
    @safe
    def export(self, pk: int) -> Response:
        """Download a report as an Excel workbook or a JSON document
        ---
        get:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          - in: query
            name: format
            schema:
              type: string
              enum: [xlsx, json]
              default: xlsx
          responses:
            200:
              description: The export file
              content:
                application/vnd.openxmlformats-officedocument.spreadsheetml.sheet:
                  schema:
                    type: string
                    format: binary
                application/json:
                  schema:
                    type: object
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        report = get_report_or_404(pk, g.user)
        args = self.load_args(export_query)
        result = export_report(report, args["format"])
        return send_file(
            BytesIO(result.content),
            mimetype=result.mimetype,
            as_attachment=True,
            download_name=result.filename,
        )
