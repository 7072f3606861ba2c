import logging
import os.path as op

from flask import g, request, Response, send_file

from . import BaseApi, expose, safe
from .reports import get_report_or_404
from .schemas import report_file_schema, ReportFileSchema
from ..const import UserRole
from ..exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..filemanager import FileManager
from ..models.report import ReportFile
from ..models.sqla import db
from ..security.decorators import protect

log = logging.getLogger(__name__)


class FilesApi(BaseApi):
    """Uploads attached to reports, such as alarm screenshots"""

    resource_name = "files"
    openapi_spec_tag = "Files"
    openapi_spec_component_schemas = (ReportFileSchema,)

    file_manager = FileManager()

    @staticmethod
    def _get_file_or_404(pk: int) -> ReportFile:
        report_file = db.session.get(ReportFile, pk)
        if report_file is None:
            raise NotFoundError("File not found")
        return report_file

    @staticmethod
    def _check_access(report_file: ReportFile) -> None:
        if report_file.report_id is not None:
            get_report_or_404(report_file.report_id, g.user)
        elif g.user.role != UserRole.ADMIN and report_file.uploaded_by_id != g.user.id:
            raise AuthorizationError("Access denied")

    @expose("/upload", methods=["POST"])
    @protect()
    @safe
    def upload(self) -> Response:
        """Upload one or more files, optionally attached to a DRAFT report
        ---
        post:
          requestBody:
            required: true
            content:
              multipart/form-data:
                schema:
                  type: object
                  properties:
                    files:
                      type: array
                      items:
                        type: string
                        format: binary
                    reportId:
                      type: integer
                    description:
                      type: string
          responses:
            201:
              description: Stored files
              content:
                application/json:
                  schema:
                    type: object
                    properties:
                      files:
                        type: array
                        items:
                          $ref: '#/components/schemas/ReportFile'
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
            413:
              $ref: '#/components/responses/413'
        """
        uploads = [f for f in request.files.getlist("files") if f and f.filename]
        if not uploads:
            raise ValidationError("No files uploaded")
        report_id = request.form.get("reportId") or None
        if report_id is not None:
            try:
                report_id = int(report_id)
            except ValueError:
                raise ValidationError("Invalid reportId")
            report = get_report_or_404(report_id, g.user)
            if not report.is_editable:
                raise ConflictError("Files can only be attached to draft reports")
            g.audit_report_id = report_id
        for upload in uploads:
            if not self.file_manager.is_file_allowed(upload.filename):
                raise ValidationError(f"File type not allowed: {upload.filename}")
        description = (request.form.get("description") or "").strip() or None
        stored = []
        try:
            for upload in uploads:
                filename, size = self.file_manager.save_file(upload)
                stored.append(
                    ReportFile(
                        report_id=report_id,
                        uploaded_by_id=g.user.id,
                        filename=filename,
                        original_name=upload.filename,
                        mime_type=upload.mimetype,
                        size=size,
                        description=description,
                    )
                )
            db.session.add_all(stored)
            db.session.commit()
        except Exception:
            for report_file in stored:
                self.file_manager.delete_file(report_file.filename)
            raise
        return self.response_data(
            {"files": [report_file_schema.dump(f) for f in stored]}, code=201
        )

    @expose("/<int:pk>", methods=["GET"])
    @protect()
    @safe
    def get(self, pk: int) -> Response:
        """Download a stored file
        ---
        get:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: The file content
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
        """
        report_file = self._get_file_or_404(pk)
        self._check_access(report_file)
        path = self.file_manager.get_path(report_file.filename)
        if not op.exists(path):
            log.error("Stored file %s is missing", path)
            raise NotFoundError("File not found")
        return send_file(
            path,
            mimetype=report_file.mime_type,
            as_attachment=True,
            download_name=report_file.original_name,
        )

    @expose("/<int:pk>", methods=["DELETE"])
    @protect()
    @safe
    def delete(self, pk: int) -> Response:
        """Delete a stored file
        ---
        delete:
          parameters:
          - in: path
            schema:
              type: integer
            name: pk
          responses:
            200:
              description: File deleted
            403:
              $ref: '#/components/responses/403'
            404:
              $ref: '#/components/responses/404'
            409:
              $ref: '#/components/responses/409'
        """
        report_file = self._get_file_or_404(pk)
        if g.user.role != UserRole.ADMIN:
            if report_file.uploaded_by_id != g.user.id:
                raise AuthorizationError("Access denied")
            if report_file.report is not None and not report_file.report.is_editable:
                raise ConflictError("Files of a submitted report cannot be deleted")
        filename = report_file.filename
        db.session.delete(report_file)
        db.session.commit()
        self.file_manager.delete_file(filename)
        return self.response_data(message="File deleted successfully")
