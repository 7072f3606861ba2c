import functools
import logging

from flask import g, request
from flask_jwt_extended import current_user, verify_jwt_in_request
from flask_jwt_extended.exceptions import (
    JWTExtendedException,
    NoAuthorizationError,
    UserLookupError,
)
from jwt.exceptions import PyJWTError

from ..const import LOGMSG_WAR_SEC_ACCESS_DENIED

log = logging.getLogger(__name__)

ACCESS_TOKEN_REQUIRED = "Access token required"
INVALID_TOKEN = "Invalid token"
USER_NOT_ACTIVE = "User not found or not active"
INSUFFICIENT_PERMISSIONS = "Insufficient permissions"


def protect(*roles):
    """
    Use this decorator to enable JWT security on an API method,
    optionally restricted to some user roles::

        class ReportsApi(BaseApi):
            @expose("/", methods=["POST"])
            @protect(UserRole.ENGINEER)
            @safe
            def post(self):
                ...

    A missing, invalid or expired token answers 401, a role outside
    ``roles`` answers 403. The authenticated user is set on ``g.user``.
    """

    def wrap(f):
        def wraps(self, *args, **kwargs):
            try:
                verify_jwt_in_request()
            except NoAuthorizationError:
                return self.response_401(message=ACCESS_TOKEN_REQUIRED)
            except UserLookupError:
                return self.response_401(message=USER_NOT_ACTIVE)
            except (JWTExtendedException, PyJWTError):
                return self.response_401(message=INVALID_TOKEN)
            user = current_user
            if roles and user.role not in roles:
                log.warning(LOGMSG_WAR_SEC_ACCESS_DENIED, user.email, request.path)
                return self.response_403(message=INSUFFICIENT_PERMISSIONS)
            g.user = user
            return f(self, *args, **kwargs)

        wraps = functools.update_wrapper(wraps, f)
        wraps._protected = True
        wraps._roles = roles
        return wraps

    return wrap
