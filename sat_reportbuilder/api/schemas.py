"""
Marshmallow schemas of the REST API.

Model schemas dump ORM objects with camelCase keys, payload schemas
load and validate request bodies and query strings.
"""

from dateutil import parser as date_parser, tz
from marshmallow import (
    EXCLUDE,
    fields,
    pre_load,
    Schema,
    validate,
)
from marshmallow_sqlalchemy import auto_field, SQLAlchemySchema

from ..const import (
    AUDIT_PAGE_SIZE_DEFAULT,
    AUDIT_PAGE_SIZE_MAX,
    AUDIT_STATS_DAYS_DEFAULT,
    MAX_COMMENT_LENGTH,
    MIN_PASSWORD_LENGTH,
    ReportStatus,
    UserRole,
    UserStatus,
)
from ..models.audit import AuditLog
from ..models.report import Comment, Report, ReportFile, ReportStep, Signature
from ..models.user import User

ROLE_CHOICES = [role.value for role in UserRole]
STATUS_CHOICES = [status.value for status in UserStatus]
REPORT_STATUS_CHOICES = [status.value for status in ReportStatus]


class StrippedSchema(Schema):
    """Trims string values and turns blank optional values into None"""

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def strip_strings(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for field in self.fields.values():
            key = field.data_key or field.name
            value = data.get(key)
            if isinstance(value, str) and field.metadata.get("strip", True):
                value = value.strip()
                if value == "" and field.allow_none:
                    value = None
                data[key] = value
        return data


class DateUtilField(fields.Field):
    """Parses any date representation dateutil understands"""

    default_error_messages = {"invalid": "Not a valid date."}

    def _deserialize(self, value, attr, data, **kwargs):
        if value in (None, ""):
            return None
        try:
            parsed = date_parser.parse(str(value))
        except (ValueError, OverflowError):
            raise self.make_error("invalid")
        # stored timestamps are naive UTC
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(tz.UTC).replace(tzinfo=None)
        return parsed

    def _serialize(self, value, attr, obj, **kwargs):
        return value.isoformat() if value is not None else None


"""
----------------------------------------
    MODEL SCHEMAS
----------------------------------------
"""


class UserSummarySchema(SQLAlchemySchema):
    class Meta:
        model = User

    id = auto_field()
    email = auto_field()
    full_name = auto_field(data_key="fullName")
    role = fields.String()


class UserSchema(UserSummarySchema):
    status = fields.String()
    last_login = auto_field(data_key="lastLogin")
    login_count = auto_field(data_key="loginCount")
    created_on = auto_field(data_key="createdAt")
    changed_on = auto_field(data_key="updatedAt")


class UserListSchema(UserSchema):
    report_counts = fields.Dict(data_key="_count")


class SignatureSchema(SQLAlchemySchema):
    class Meta:
        model = Signature

    id = auto_field()
    role = fields.String()
    signature_data = auto_field(data_key="signatureData")
    signed_at = auto_field(data_key="signedAt")
    user = fields.Nested(UserSummarySchema)


class CommentSchema(SQLAlchemySchema):
    class Meta:
        model = Comment

    id = auto_field()
    content = auto_field()
    created_on = auto_field(data_key="createdAt")
    user = fields.Nested(UserSummarySchema)


class ReportFileSchema(SQLAlchemySchema):
    class Meta:
        model = ReportFile

    id = auto_field()
    report_id = auto_field(data_key="reportId")
    uploaded_by_id = auto_field(data_key="uploadedById")
    filename = auto_field()
    original_name = auto_field(data_key="originalName")
    mime_type = auto_field(data_key="mimeType")
    size = auto_field()
    description = auto_field()
    created_on = auto_field(data_key="createdAt")


class ReportStepSchema(SQLAlchemySchema):
    class Meta:
        model = ReportStep

    id = auto_field()
    step_name = auto_field(data_key="stepName")
    data = fields.Raw()
    created_on = auto_field(data_key="createdAt")
    changed_on = auto_field(data_key="updatedAt")


class ReportListSchema(SQLAlchemySchema):
    class Meta:
        model = Report

    id = auto_field()
    title = auto_field()
    project_ref = auto_field(data_key="projectRef")
    document_ref = auto_field(data_key="documentRef")
    revision = auto_field()
    type = fields.String()
    status = fields.String()
    creator_id = auto_field(data_key="creatorId")
    tm_id = auto_field(data_key="tmId")
    pm_id = auto_field(data_key="pmId")
    storage_location = auto_field(data_key="storageLocation")
    submitted_at = auto_field(data_key="submittedAt")
    completed_at = auto_field(data_key="completedAt")
    created_on = auto_field(data_key="createdAt")
    changed_on = auto_field(data_key="updatedAt")
    creator = fields.Nested(UserSummarySchema)
    technical_manager = fields.Nested(
        UserSummarySchema, data_key="technicalManager", allow_none=True
    )
    project_manager = fields.Nested(
        UserSummarySchema, data_key="projectManager", allow_none=True
    )
    signatures = fields.Nested(SignatureSchema, many=True)
    counts = fields.Method("get_counts", data_key="_count")

    @staticmethod
    def get_counts(obj):
        return {"comments": len(obj.comments), "files": len(obj.files)}


class ReportDetailSchema(ReportListSchema):
    steps = fields.Nested(ReportStepSchema, many=True)
    comments = fields.Nested(CommentSchema, many=True)
    files = fields.Nested(ReportFileSchema, many=True)
    state_history = fields.Function(
        lambda obj: obj.get_state_history(), data_key="stateHistory"
    )
    available_actions = fields.Function(
        lambda obj: obj.get_available_actions(), data_key="availableActions"
    )


class AuditUserSchema(Schema):
    full_name = fields.String(data_key="fullName")
    email = fields.String()
    role = fields.String()


class AuditReportSchema(Schema):
    title = fields.String()
    document_ref = fields.String(data_key="documentRef")
    revision = fields.String()


class AuditLogSchema(SQLAlchemySchema):
    class Meta:
        model = AuditLog

    id = auto_field()
    user_id = auto_field(data_key="userId")
    report_id = auto_field(data_key="reportId")
    action = auto_field()
    details = fields.Raw()
    ip_address = auto_field(data_key="ipAddress")
    created_on = auto_field(data_key="createdAt")
    user = fields.Nested(AuditUserSchema, allow_none=True)
    report = fields.Nested(AuditReportSchema, allow_none=True)


"""
----------------------------------------
    PAYLOAD SCHEMAS
----------------------------------------
"""


class ReportPostSchema(StrippedSchema):
    title = fields.String(
        required=True, validate=validate.Length(min=1, max=256, error="Title is required")
    )
    project_ref = fields.String(
        required=True,
        data_key="projectRef",
        validate=validate.Length(min=1, max=128, error="Project reference is required"),
    )
    document_ref = fields.String(
        required=True,
        data_key="documentRef",
        validate=validate.Length(min=1, max=128, error="Document reference is required"),
    )
    revision = fields.String(
        required=True,
        validate=validate.Length(min=1, max=32, error="Revision is required"),
    )
    tm_id = fields.Integer(data_key="tmId", allow_none=True)
    pm_id = fields.Integer(data_key="pmId", allow_none=True)


class StepPutSchema(StrippedSchema):
    step_name = fields.String(required=True, data_key="stepName")
    data = fields.Dict(required=True)


class ApprovePostSchema(StrippedSchema):
    comment = fields.String(
        allow_none=True, validate=validate.Length(max=MAX_COMMENT_LENGTH)
    )
    signature_data = fields.String(data_key="signatureData", allow_none=True)
    storage_location = fields.String(data_key="storageLocation", allow_none=True)


class RejectPostSchema(StrippedSchema):
    comment = fields.String(
        required=True,
        validate=validate.Length(
            min=1, max=MAX_COMMENT_LENGTH, error="A rejection comment is required"
        ),
    )


class CommentPostSchema(StrippedSchema):
    content = fields.String(
        required=True,
        validate=validate.Length(
            min=1,
            max=MAX_COMMENT_LENGTH,
            error=f"Comment must be between 1 and {MAX_COMMENT_LENGTH} characters",
        ),
    )


class ReportQuerySchema(StrippedSchema):
    status = fields.String(
        allow_none=True, validate=validate.OneOf(REPORT_STATUS_CHOICES)
    )
    search = fields.String(allow_none=True)


class ExportQuerySchema(StrippedSchema):
    format = fields.String(
        load_default="xlsx", validate=validate.OneOf(["xlsx", "json"])
    )


class UserPostSchema(StrippedSchema):
    email = fields.Email(required=True)
    full_name = fields.String(
        required=True, data_key="fullName", validate=validate.Length(min=2, max=128)
    )
    role = fields.String(required=True, validate=validate.OneOf(ROLE_CHOICES))
    password = fields.String(
        required=True,
        validate=validate.Length(min=MIN_PASSWORD_LENGTH),
        metadata={"strip": False},
    )


class UserApproveSchema(StrippedSchema):
    role = fields.String(required=True, validate=validate.OneOf(ROLE_CHOICES))
    password = fields.String(
        required=True,
        validate=validate.Length(min=MIN_PASSWORD_LENGTH),
        metadata={"strip": False},
    )


class UserPutSchema(StrippedSchema):
    full_name = fields.String(data_key="fullName", validate=validate.Length(min=2, max=128))
    role = fields.String(validate=validate.OneOf(ROLE_CHOICES))
    status = fields.String(validate=validate.OneOf(STATUS_CHOICES))


class UserQuerySchema(StrippedSchema):
    status = fields.String(allow_none=True, validate=validate.OneOf(STATUS_CHOICES))


class SettingPutSchema(StrippedSchema):
    key = fields.String(required=True, validate=validate.Length(min=1))
    value = fields.Raw(required=True, allow_none=False)


class AuditQuerySchema(StrippedSchema):
    action = fields.String(allow_none=True)
    user_id = fields.Integer(data_key="userId", allow_none=True)
    report_id = fields.Integer(data_key="reportId", allow_none=True)
    start_date = DateUtilField(data_key="startDate", allow_none=True)
    end_date = DateUtilField(data_key="endDate", allow_none=True)
    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    limit = fields.Integer(
        load_default=AUDIT_PAGE_SIZE_DEFAULT,
        validate=validate.Range(min=1, max=AUDIT_PAGE_SIZE_MAX),
    )


class AuditStatsQuerySchema(StrippedSchema):
    days = fields.Integer(
        load_default=AUDIT_STATS_DAYS_DEFAULT, validate=validate.Range(min=1, max=3650)
    )


user_summary_schema = UserSummarySchema()
user_schema = UserSchema()
user_list_schema = UserListSchema(many=True)
report_list_schema = ReportListSchema(many=True)
report_detail_schema = ReportDetailSchema()
report_step_schema = ReportStepSchema()
signature_schema = SignatureSchema(many=True)
comment_schema = CommentSchema()
report_file_schema = ReportFileSchema()
audit_log_schema = AuditLogSchema(many=True)
