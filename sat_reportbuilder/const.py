import enum


class StrEnum(str, enum.Enum):
    def __str__(self):
        return self.value


class UserRole(StrEnum):
    ADMIN = "ADMIN"
    ENGINEER = "ENGINEER"
    TECHNICAL_MANAGER = "TECHNICAL_MANAGER"
    PROJECT_MANAGER = "PROJECT_MANAGER"


class UserStatus(StrEnum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ReportStatus(StrEnum):
    DRAFT = "DRAFT"
    PENDING_TM_APPROVAL = "PENDING_TM_APPROVAL"
    PENDING_PM_APPROVAL = "PENDING_PM_APPROVAL"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class ReportType(StrEnum):
    SAT = "SAT"


APPROVER_ROLES = (UserRole.TECHNICAL_MANAGER, UserRole.PROJECT_MANAGER)


AUDIT_PAGE_SIZE_DEFAULT = 50
AUDIT_PAGE_SIZE_MAX = 100
AUDIT_STATS_DAYS_DEFAULT = 30
AUDIT_TOP_USERS = 5

MIN_PASSWORD_LENGTH = 8
MAX_COMMENT_LENGTH = 1000

# Log messages
LOGMSG_WAR_SEC_LOGIN_FAILED = "Login Failed for user: %s"
LOGMSG_WAR_SEC_NOT_ACTIVE = "Login attempt for inactive user: %s"
LOGMSG_INF_SEC_LOGIN_SUCCESS = "Login succeeded for user: %s"
LOGMSG_INF_SEC_ADD_USER = "Added user %s"
LOGMSG_INF_SEC_UPD_USER = "Updated user %s"
LOGMSG_ERR_SEC_ADD_USER = "Error adding new user to database. %s"
LOGMSG_ERR_SEC_UPD_USER = "Error updating user to database. %s"
LOGMSG_WAR_SEC_ACCESS_DENIED = "Access denied for user %s on %s"
LOGMSG_INF_WORKFLOW_TRANSITION = "Report %s moved from %s to %s by user %s (%s)"
LOGMSG_ERR_DBI_EDIT_GENERIC = "Edit record error: %s"
LOGMSG_INF_API_REGISTER = "Registering API %s on %s"
