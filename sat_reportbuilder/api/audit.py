import datetime
import logging
import math

from flask import Response
from sqlalchemy import func

from . import BaseApi, expose, safe
from .schemas import (
    audit_log_schema,
    AuditLogSchema,
    AuditQuerySchema,
    AuditStatsQuerySchema,
)
from ..const import AUDIT_TOP_USERS, UserRole
from ..models.audit import AuditLog
from ..models.sqla import db
from ..models.user import User
from ..security.decorators import protect

log = logging.getLogger(__name__)

audit_query = AuditQuerySchema()
audit_stats_query = AuditStatsQuerySchema()


class AuditApi(BaseApi):
    """Read access to the audit trail"""

    resource_name = "audit"
    openapi_spec_tag = "Audit"
    openapi_spec_component_schemas = (AuditLogSchema,)

    @expose("/", methods=["GET"])
    @protect(UserRole.ADMIN)
    @safe
    def get_list(self) -> Response:
        """Audit entries, newest first
        ---
        get:
          parameters:
          - in: query
            name: action
            schema:
              type: string
          - in: query
            name: userId
            schema:
              type: integer
          - in: query
            name: reportId
            schema:
              type: integer
          - in: query
            name: startDate
            schema:
              type: string
              format: date-time
          - in: query
            name: endDate
            schema:
              type: string
              format: date-time
          - in: query
            name: page
            schema:
              type: integer
              minimum: 1
          - in: query
            name: limit
            schema:
              type: integer
              minimum: 1
              maximum: 100
          responses:
            200:
              description: A page of audit entries
              content:
                application/json:
                  schema:
                    type: object
                    properties:
                      logs:
                        type: array
                        items:
                          $ref: '#/components/schemas/AuditLog'
                      pagination:
                        type: object
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
        """
        args = self.load_args(audit_query)
        query = db.session.query(AuditLog)
        if args.get("action"):
            query = query.filter(AuditLog.action == args["action"])
        if args.get("user_id") is not None:
            query = query.filter(AuditLog.user_id == args["user_id"])
        if args.get("report_id") is not None:
            query = query.filter(AuditLog.report_id == args["report_id"])
        if args.get("start_date"):
            query = query.filter(AuditLog.created_on >= args["start_date"])
        if args.get("end_date"):
            query = query.filter(AuditLog.created_on <= args["end_date"])
        total = query.count()
        page, limit = args["page"], args["limit"]
        logs = (
            query.order_by(AuditLog.created_on.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return self.response_data(
            {
                "logs": audit_log_schema.dump(logs),
                "pagination": {
                    "total": total,
                    "pages": math.ceil(total / limit),
                    "page": page,
                    "limit": limit,
                },
            }
        )

    @expose("/stats", methods=["GET"])
    @protect(UserRole.ADMIN)
    @safe
    def stats(self) -> Response:
        """Action counts and most active users over the last days
        ---
        get:
          parameters:
          - in: query
            name: days
            schema:
              type: integer
              default: 30
          responses:
            200:
              description: Audit statistics
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
        """
        args = self.load_args(audit_stats_query)
        since = datetime.datetime.utcnow() - datetime.timedelta(days=args["days"])
        count = func.count(AuditLog.id)
        action_counts = (
            db.session.query(AuditLog.action, count)
            .filter(AuditLog.created_on >= since)
            .group_by(AuditLog.action)
            .order_by(count.desc(), AuditLog.action)
            .all()
        )
        top_users = (
            db.session.query(User, count)
            .join(AuditLog, AuditLog.user_id == User.id)
            .filter(AuditLog.created_on >= since)
            .group_by(User.id)
            .order_by(count.desc(), User.id)
            .limit(AUDIT_TOP_USERS)
            .all()
        )
        return self.response_data(
            {
                "days": args["days"],
                "actionCounts": [
                    {"action": action, "count": total} for action, total in action_counts
                ],
                "topUsers": [
                    {
                        "user": {
                            "id": user.id,
                            "fullName": user.full_name,
                            "email": user.email,
                        },
                        "count": total,
                    }
                    for user, total in top_users
                ],
            }
        )
