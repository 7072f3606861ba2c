import logging

from flask import g, Response

from .decorators import protect
from .rate_limiting import limit_auth_endpoint
from .schemas import (
    change_password_post,
    ChangePasswordPostSchema,
    login_post,
    LoginPostSchema,
    register_post,
    RegisterPostSchema,
)
from ..api import BaseApi, expose, safe
from ..api.schemas import user_schema, UserSchema
from ..exceptions import ValidationError

log = logging.getLogger(__name__)

REGISTRATION_MESSAGE = (
    "Registration successful! Your account is now pending admin approval."
)


class SecurityApi(BaseApi):
    """Authentication endpoints, issues and refreshes JWT access tokens"""

    resource_name = "auth"
    openapi_spec_tag = "Security"
    openapi_spec_component_schemas = (
        LoginPostSchema,
        RegisterPostSchema,
        ChangePasswordPostSchema,
        UserSchema,
    )

    def add_apispec_components(self, api_spec):
        super(SecurityApi, self).add_apispec_components(api_spec)
        jwt_scheme = {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
        api_spec.components.security_scheme("jwt", jwt_scheme)

    def _token_response(self, user, message=None) -> Response:
        token = self.appbuilder.sm.create_access_token(user)
        return self.response_data(
            {"token": token, "user": user_schema.dump(user)}, message=message
        )

    @expose("/register", methods=["POST"])
    @safe
    @limit_auth_endpoint("registration")
    def register(self) -> Response:
        """Self registration, the new account waits for admin approval
        ---
        post:
          description: >-
            Register a new account with a PENDING status
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/RegisterPost'
          responses:
            201:
              description: Registration received
            400:
              $ref: '#/components/responses/400'
            429:
              $ref: '#/components/responses/429'
        """
        item = self.load_payload(register_post)
        user = self.appbuilder.sm.register_user(
            email=item["email"], full_name=item["full_name"], role=item["role"]
        )
        g.audit_user_id = user.id
        return self.response_data(
            {"user": user_schema.dump(user)}, code=201, message=REGISTRATION_MESSAGE
        )

    @expose("/login", methods=["POST"])
    @safe
    @limit_auth_endpoint("login")
    def login(self) -> Response:
        """Login endpoint for the API returns a JWT access token
        ---
        post:
          description: >-
            Authenticate and get a JWT access token
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/LoginPost'
          responses:
            200:
              description: Authentication Successful
              content:
                application/json:
                  schema:
                    type: object
                    properties:
                      success:
                        type: boolean
                      data:
                        type: object
                        properties:
                          token:
                            type: string
                          user:
                            $ref: '#/components/schemas/User'
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
            429:
              $ref: '#/components/responses/429'
        """
        item = self.load_payload(login_post)
        user = self.appbuilder.sm.auth_user_db(item["email"], item["password"])
        g.audit_user_id = user.id
        return self._token_response(user)

    @expose("/me", methods=["GET"])
    @protect()
    @safe
    def me(self) -> Response:
        """The authenticated user
        ---
        get:
          responses:
            200:
              description: Current user
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/User'
            401:
              $ref: '#/components/responses/401'
        """
        return self.response_data(user_schema.dump(g.user))

    @expose("/refresh", methods=["POST"])
    @protect()
    @safe
    def refresh(self) -> Response:
        """Issue a fresh access token for the authenticated user
        ---
        post:
          responses:
            200:
              description: A new token
            401:
              $ref: '#/components/responses/401'
        """
        return self._token_response(g.user)

    @expose("/logout", methods=["POST"])
    @protect()
    @safe
    def logout(self) -> Response:
        """Tokens are stateless, logging out only leaves an audit entry
        ---
        post:
          responses:
            200:
              description: Logged out
            401:
              $ref: '#/components/responses/401'
        """
        return self.response_data(message="Logged out successfully")

    @expose("/change-password", methods=["POST"])
    @protect()
    @safe
    def change_password(self) -> Response:
        """Change the password of the authenticated user
        ---
        post:
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/ChangePasswordPost'
          responses:
            200:
              description: Password changed
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
        """
        item = self.load_payload(change_password_post)
        sm = self.appbuilder.sm
        if not sm.check_password(g.user, item["current_password"]):
            raise ValidationError("Current password is incorrect")
        sm.reset_password(g.user, item["new_password"])
        return self.response_data(message="Password changed successfully")
