import logging

from flask import g, Response

from . import BaseApi, expose, safe
from .schemas import (
    user_list_schema,
    user_schema,
    user_summary_schema,
    UserApproveSchema,
    UserListSchema,
    UserPostSchema,
    UserPutSchema,
    UserQuerySchema,
    UserSchema,
    UserSummarySchema,
)
from ..const import APPROVER_ROLES, UserRole, UserStatus
from ..exceptions import AuthorizationError, NotFoundError, ValidationError
from ..security.decorators import protect

log = logging.getLogger(__name__)

user_post = UserPostSchema()
user_approve = UserApproveSchema()
user_put = UserPutSchema()
user_query = UserQuerySchema()


class UsersApi(BaseApi):
    """User administration and approver lookups"""

    resource_name = "users"
    openapi_spec_tag = "Users"
    openapi_spec_component_schemas = (
        UserSchema,
        UserListSchema,
        UserSummarySchema,
        UserPostSchema,
        UserApproveSchema,
        UserPutSchema,
    )

    def _get_user_or_404(self, pk: int):
        user = self.appbuilder.sm.get_user_by_id(pk)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @expose("/", methods=["GET"])
    @protect(UserRole.ADMIN)
    @safe
    def get_list(self) -> Response:
        """All users, newest first
        ---
        get:
          parameters:
          - in: query
            name: status
            schema:
              type: string
              enum: [PENDING, ACTIVE, INACTIVE]
          responses:
            200:
              description: Users with their report counts
              content:
                application/json:
                  schema:
                    type: array
                    items:
                      $ref: '#/components/schemas/UserList'
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
        """
        args = self.load_args(user_query)
        users = self.appbuilder.sm.get_all_users(status=args.get("status"))
        return self.response_data(user_list_schema.dump(users))

    @expose("/by-role/<role>", methods=["GET"])
    @protect()
    @safe
    def get_by_role(self, role: str) -> Response:
        """Active Technical Managers or Project Managers, to assign on a report
        ---
        get:
          parameters:
          - in: path
            name: role
            schema:
              type: string
              enum: [TECHNICAL_MANAGER, PROJECT_MANAGER]
          responses:
            200:
              description: Active users with the role
              content:
                application/json:
                  schema:
                    type: array
                    items:
                      $ref: '#/components/schemas/UserSummary'
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
        """
        if role not in [approver.value for approver in APPROVER_ROLES]:
            raise ValidationError("Invalid role specified")
        users = self.appbuilder.sm.get_active_users_by_role(UserRole(role))
        return self.response_data(user_summary_schema.dump(users, many=True))

    @expose("/pending/count", methods=["GET"])
    @protect(UserRole.ADMIN)
    @safe
    def pending_count(self) -> Response:
        """Number of registrations waiting for approval
        ---
        get:
          responses:
            200:
              description: Pending user count
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
        """
        return self.response_data({"count": self.appbuilder.sm.count_pending_users()})

    @expose("/", methods=["POST"])
    @protect(UserRole.ADMIN)
    @safe
    def post(self) -> Response:
        """Create an ACTIVE user
        ---
        post:
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/UserPost'
          responses:
            201:
              description: User created
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/User'
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
        """
        item = self.load_payload(user_post)
        user = self.appbuilder.sm.add_user(
            email=item["email"],
            full_name=item["full_name"],
            role=item["role"],
            password=item["password"],
        )
        return self.response_data(
            user_schema.dump(user), code=201, message="User created successfully"
        )

    @expose("/<int:pk>/approve", methods=["POST"])
    @protect(UserRole.ADMIN)
    @safe
    def approve(self, pk: int) -> Response:
        """Activate a PENDING user with a role and a password
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
                  $ref: '#/components/schemas/UserApprove'
          responses:
            200:
              description: User approved
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/User'
            400:
              $ref: '#/components/responses/400'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        user = self._get_user_or_404(pk)
        item = self.load_payload(user_approve)
        self.appbuilder.sm.approve_user(user, item["role"], item["password"])
        return self.response_data(
            user_schema.dump(user), message="User approved successfully"
        )

    @expose("/<int:pk>", methods=["PUT"])
    @protect(UserRole.ADMIN)
    @safe
    def put(self, pk: int) -> Response:
        """Update the name, role or status of a user
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
                  $ref: '#/components/schemas/UserPut'
          responses:
            200:
              description: User updated
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/User'
            400:
              $ref: '#/components/responses/400'
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        user = self._get_user_or_404(pk)
        item = self.load_payload(user_put)
        if user.id == g.user.id and (
            ("role" in item and item["role"] != user.role.value)
            or ("status" in item and item["status"] != user.status.value)
        ):
            raise AuthorizationError("You cannot change your own role or status")
        if "full_name" in item:
            user.full_name = item["full_name"]
        if "role" in item:
            user.role = UserRole(item["role"])
        if "status" in item:
            user.status = UserStatus(item["status"])
        self.appbuilder.sm.update_user(user)
        return self.response_data(
            user_schema.dump(user), message="User updated successfully"
        )

    @expose("/<int:pk>", methods=["DELETE"])
    @protect(UserRole.ADMIN)
    @safe
    def delete(self, pk: int) -> Response:
        """Delete a user, users referenced by reports are deactivated instead
        ---
        delete:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: User deleted or deactivated
            400:
              $ref: '#/components/responses/400'
            404:
              $ref: '#/components/responses/404'
        """
        user = self._get_user_or_404(pk)
        if user.id == g.user.id:
            raise ValidationError("You cannot delete your own account")
        if self.appbuilder.sm.delete_user(user):
            return self.response_data(message="User deleted successfully")
        return self.response_data(
            {"deactivated": True},
            message="User is referenced by reports and has been deactivated",
        )
