import logging
import os
import os.path as op
import uuid

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .exceptions import ValidationError

log = logging.getLogger(__name__)


class FileManager(object):
    """
    Stores uploaded files under ``UPLOAD_FOLDER`` with a uuid name,
    keeping the original extension.
    """

    def __init__(self, base_path=None, allowed_extensions=None, permission=0o755):
        self._base_path = base_path
        self._allowed_extensions = allowed_extensions
        self.permission = permission

    @property
    def base_path(self):
        return self._base_path or current_app.config["UPLOAD_FOLDER"]

    @property
    def allowed_extensions(self):
        if self._allowed_extensions is not None:
            return self._allowed_extensions
        return current_app.config.get("ALLOWED_EXTENSIONS", set())

    @staticmethod
    def _uuid_namegen(file_data):
        _, ext = op.splitext(file_data.filename)
        return f"{uuid.uuid4().hex}{ext.lower()}"

    def get_path(self, filename=None):
        if filename:
            return op.join(self.base_path, secure_filename(filename))
        return self.base_path

    def is_file_allowed(self, filename):
        """
        Check if a file extension is allowed.

        :param filename: Filename to check
        :return: True if file is allowed, False otherwise
        """
        if not filename:
            return False
        _, ext = op.splitext(filename.lower())
        return ext[1:] in self.allowed_extensions

    def save_file(self, file_data):
        """
        Save an uploaded file to storage.

        :param file_data: FileStorage object
        :return: (stored filename, size in bytes)
        :raises ValidationError: If file validation fails
        """
        if not isinstance(file_data, FileStorage) or not file_data.filename:
            raise ValidationError("Invalid file data")
        if not self.is_file_allowed(file_data.filename):
            raise ValidationError(
                "File type not allowed. Allowed extensions: "
                + ", ".join(sorted(self.allowed_extensions))
            )
        filename = self._uuid_namegen(file_data)
        path = self.get_path()
        if not op.exists(path):
            os.makedirs(path, mode=self.permission)
        full_path = op.join(path, filename)
        file_data.save(full_path)
        return filename, op.getsize(full_path)

    def delete_file(self, filename):
        """
        Delete a file from storage.

        :param filename: Name of file to delete
        :return: True if file was deleted, False if file didn't exist
        """
        path = self.get_path(filename)
        if op.exists(path):
            try:
                os.remove(path)
                return True
            except OSError as e:
                log.error(f"Error deleting file {path}: {e}")
                return False
        return False
