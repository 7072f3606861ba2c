import datetime
import logging
import secrets
from typing import List, Optional

from flask import Flask
from flask_jwt_extended import create_access_token, JWTManager
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from .audit_logging import AuditLogger
from .rate_limiting import init_rate_limiting, SecurityRateLimiter
from .security_headers import SecurityHeaders
from ..basemanager import BaseManager
from ..const import (
    LOGMSG_ERR_SEC_ADD_USER,
    LOGMSG_ERR_SEC_UPD_USER,
    LOGMSG_INF_SEC_ADD_USER,
    LOGMSG_INF_SEC_LOGIN_SUCCESS,
    LOGMSG_INF_SEC_UPD_USER,
    LOGMSG_WAR_SEC_LOGIN_FAILED,
    LOGMSG_WAR_SEC_NOT_ACTIVE,
    UserRole,
    UserStatus,
)
from ..exceptions import AuthenticationError, ConflictError, ValidationError
from ..models.report import Comment, Report, ReportFile, Signature
from ..models.sqla import db
from ..models.user import User

log = logging.getLogger(__name__)

FAKE_PASSWORD_HASH_CHECK = (
    "scrypt:32768:8:1$wiDa0ruWlIPhp9LM$6e40"
    "9d093e62ad54df2af895d0e125b05ff6cf6414"
    "8350189ffc4bcc71286edf1b8ad94a442c00f8"
    "90224bf2b32153d0750c89ee9401e62f9dcee5399065e4e5"
)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
NOT_ACTIVE_MESSAGE = "Your account is not active. Please contact an administrator."


class SecurityManager(BaseManager):
    """
    Owns authentication and the user lifecycle: password hashing,
    JWT issuing, registration, approval and deactivation.
    Also sets up rate limiting, security headers, CORS and the audit trail.
    """

    user_model = User

    def __init__(self, appbuilder):
        super(SecurityManager, self).__init__(appbuilder)
        app = self.appbuilder.get_app
        app.config.setdefault("JWT_ACCESS_TOKEN_HOURS", 24)
        app.config.setdefault(
            "JWT_ACCESS_TOKEN_EXPIRES",
            datetime.timedelta(hours=int(app.config["JWT_ACCESS_TOKEN_HOURS"])),
        )
        app.config.setdefault("AUTH_DB_FAKE_PASSWORD_HASH_CHECK", FAKE_PASSWORD_HASH_CHECK)

        # Setup Flask-Jwt-Extended
        self.jwt_manager = self.create_jwt_manager(app)
        # Setup Flask-Limiter
        self.limiter = self.create_limiter(app)
        self.security_headers = SecurityHeaders(app)
        self.audit = AuditLogger(app)

    def create_limiter(self, app: Flask) -> SecurityRateLimiter:
        return init_rate_limiting(app)

    def create_jwt_manager(self, app) -> JWTManager:
        """
        Override to implement your custom JWT manager instance

        :param app: Flask app
        """
        jwt_manager = JWTManager()
        jwt_manager.init_app(app)
        jwt_manager.user_lookup_loader(self.load_user_jwt)
        return jwt_manager

    def load_user_jwt(self, _jwt_header, jwt_data) -> Optional[User]:
        identity = jwt_data["sub"]
        try:
            user = self.get_user_by_id(int(identity))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    def create_access_token(self, user: User) -> str:
        # Identity can be any data that is json serializable
        return create_access_token(identity=str(user.id))

    """
    ----------------------------------------
        AUTHENTICATION
    ----------------------------------------
    """

    def auth_user_db(self, email: str, password: str) -> User:
        """
        Method for authenticating user, auth db style

        :param email:
            The user's email
        :param password:
            The password in clear text
        :raises AuthenticationError: on bad credentials or an inactive account
        """
        user = self.find_user(email=email) if email else None
        if user is None:
            # Balance failure and success
            check_password_hash(
                self.appbuilder.get_app.config["AUTH_DB_FAKE_PASSWORD_HASH_CHECK"],
                "password",
            )
            log.info(LOGMSG_WAR_SEC_LOGIN_FAILED, email)
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)
        if not check_password_hash(user.password, password or ""):
            self.update_user_auth_stat(user, False)
            log.info(LOGMSG_WAR_SEC_LOGIN_FAILED, email)
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)
        if not user.is_active:
            log.info(LOGMSG_WAR_SEC_NOT_ACTIVE, email)
            raise AuthenticationError(NOT_ACTIVE_MESSAGE)
        self.update_user_auth_stat(user, True)
        log.info(LOGMSG_INF_SEC_LOGIN_SUCCESS, email)
        return user

    def update_user_auth_stat(self, user: User, success: bool = True) -> None:
        """
        Update user authentication stats upon successful/unsuccessful
        authentication attempts.

        :param user:
            The identified (but possibly not successfully authenticated) user
            model
        :param success:
            Defaults to true, if true increments login_count, updates
            last_login, and resets fail_login_count to 0, if false increments
            fail_login_count on user model.
        """
        if not user.login_count:
            user.login_count = 0
        if not user.fail_login_count:
            user.fail_login_count = 0
        if success:
            user.login_count += 1
            user.last_login = datetime.datetime.utcnow()
            user.fail_login_count = 0
        else:
            user.fail_login_count += 1
        self.update_user(user)

    """
    ----------------------------------------
        USER LIFECYCLE
    ----------------------------------------
    """

    def find_user(self, email: Optional[str] = None) -> Optional[User]:
        """Finds user by email, case insensitive"""
        if not email:
            return None
        return (
            db.session.query(User)
            .filter(func.lower(User.email) == email.strip().lower())
            .one_or_none()
        )

    def get_user_by_id(self, pk: int) -> Optional[User]:
        return db.session.get(User, pk)

    def get_all_users(self, status: Optional[str] = None) -> List[User]:
        query = db.session.query(User)
        if status:
            query = query.filter(User.status == UserStatus(status))
        return query.order_by(User.created_on.desc(), User.id.desc()).all()

    def get_active_users_by_role(self, role: UserRole) -> List[User]:
        return (
            db.session.query(User)
            .filter(User.role == role, User.status == UserStatus.ACTIVE)
            .order_by(User.full_name)
            .all()
        )

    def count_pending_users(self) -> int:
        return (
            db.session.query(func.count(User.id))
            .filter(User.status == UserStatus.PENDING)
            .scalar()
        )

    def add_user(
        self,
        email: str,
        full_name: str,
        role: UserRole,
        password: str,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        """
        Generic function to create user

        :raises ValidationError: when the email is already registered
        """
        if self.find_user(email=email):
            raise ValidationError("User with this email already exists")
        user = self.user_model()
        user.email = email.strip().lower()
        user.full_name = full_name.strip()
        user.role = UserRole(role)
        user.status = UserStatus(status)
        user.password = generate_password_hash(password)
        user.login_count = 0
        user.fail_login_count = 0
        try:
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error(LOGMSG_ERR_SEC_ADD_USER, e)
            raise
        log.info(LOGMSG_INF_SEC_ADD_USER, user.email)
        return user

    def register_user(self, email: str, full_name: str, role: UserRole) -> User:
        """Self registration: a PENDING user with a random temporary password"""
        return self.add_user(
            email=email,
            full_name=full_name,
            role=role,
            password=secrets.token_urlsafe(16),
            status=UserStatus.PENDING,
        )

    def approve_user(self, user: User, role: UserRole, password: str) -> User:
        if user.status != UserStatus.PENDING:
            raise ConflictError("User is not pending approval")
        user.role = UserRole(role)
        user.password = generate_password_hash(password)
        user.status = UserStatus.ACTIVE
        self.update_user(user)
        return user

    def reset_password(self, user: User, password: str) -> None:
        """
        Change/Reset a user's password

        :param user: User model
        :param password: The clear text password to reset and save hashed on the db
        """
        user.password = generate_password_hash(password)
        self.update_user(user)

    def check_password(self, user: User, password: str) -> bool:
        return check_password_hash(user.password, password or "")

    def update_user(self, user: User) -> User:
        try:
            db.session.merge(user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error(LOGMSG_ERR_SEC_UPD_USER, e)
            raise
        log.info(LOGMSG_INF_SEC_UPD_USER, user.email)
        return user

    def is_user_referenced(self, user: User) -> bool:
        """True when reports or report records point to the user"""
        reports = (
            db.session.query(func.count(Report.id))
            .filter(
                or_(
                    Report.creator_id == user.id,
                    Report.tm_id == user.id,
                    Report.pm_id == user.id,
                )
            )
            .scalar()
        )
        signatures = (
            db.session.query(func.count(Signature.id))
            .filter(Signature.user_id == user.id)
            .scalar()
        )
        comments = (
            db.session.query(func.count(Comment.id))
            .filter(Comment.user_id == user.id)
            .scalar()
        )
        files = (
            db.session.query(func.count(ReportFile.id))
            .filter(ReportFile.uploaded_by_id == user.id)
            .scalar()
        )
        return bool(reports or signatures or comments or files)

    def delete_user(self, user: User) -> bool:
        """
        Deletes a user, users referenced by reports are deactivated instead.

        :return: True when the row was deleted, False when deactivated
        """
        if self.is_user_referenced(user):
            user.status = UserStatus.INACTIVE
            self.update_user(user)
            return False
        try:
            db.session.delete(user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error(LOGMSG_ERR_SEC_UPD_USER, e)
            raise
        return True
