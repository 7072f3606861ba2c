from marshmallow import fields, validate

from ..api.schemas import StrippedSchema
from ..const import MIN_PASSWORD_LENGTH, UserRole

REGISTRATION_ROLES = [
    UserRole.ENGINEER.value,
    UserRole.TECHNICAL_MANAGER.value,
    UserRole.PROJECT_MANAGER.value,
]


class LoginPostSchema(StrippedSchema):
    email = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(
        required=True, validate=validate.Length(min=1), metadata={"strip": False}
    )


class RegisterPostSchema(StrippedSchema):
    email = fields.Email(required=True)
    full_name = fields.String(
        required=True,
        data_key="fullName",
        validate=validate.Length(min=2, max=128, error="Full name must be at least 2 characters"),
    )
    role = fields.String(required=True, validate=validate.OneOf(REGISTRATION_ROLES))


class ChangePasswordPostSchema(StrippedSchema):
    current_password = fields.String(
        required=True, data_key="currentPassword", metadata={"strip": False}
    )
    new_password = fields.String(
        required=True,
        data_key="newPassword",
        validate=validate.Length(
            min=MIN_PASSWORD_LENGTH,
            error=f"New password must be at least {MIN_PASSWORD_LENGTH} characters",
        ),
        metadata={"strip": False},
    )


login_post = LoginPostSchema()
register_post = RegisterPostSchema()
change_password_post = ChangePasswordPostSchema()
