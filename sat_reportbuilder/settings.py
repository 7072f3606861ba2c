"""
System settings: a small key/value store with a schema and a default
for every known key.
"""

import copy
import logging
from typing import Any, Dict, Optional

from marshmallow import fields, Schema, validate, ValidationError as MarshmallowValidationError
from sqlalchemy.exc import SQLAlchemyError

from .api.schemas import StrippedSchema
from .basemanager import BaseManager
from .const import LOGMSG_ERR_DBI_EDIT_GENERIC
from .exceptions import NotFoundError, ValidationError
from .models.settings import SystemSetting
from .models.sqla import db

log = logging.getLogger(__name__)


class CompanyInfoSchema(StrippedSchema):
    name = fields.String(required=True, validate=validate.Length(min=1))
    logo = fields.String(load_default="")
    primary_color = fields.String(
        required=True,
        data_key="primaryColor",
        validate=validate.Regexp(
            r"^#[0-9a-fA-F]{6}$", error="Must be a hex color like #3B82F6"
        ),
    )


SETTINGS = {
    "company_info": {
        "field": fields.Nested(CompanyInfoSchema, required=True),
        "default": {
            "name": "Cully Engineering",
            "logo": "/logo/company-logo.png",
            "primaryColor": "#3B82F6",
        },
    },
    "final_storage_locations": {
        "field": fields.List(
            fields.String(validate=validate.Length(min=1)),
            required=True,
            validate=validate.Length(min=1),
        ),
        "default": [
            "/storage/completed/project-a",
            "/storage/completed/project-b",
            "/storage/archive/2025",
        ],
    },
}


class SettingsManager(BaseManager):
    """Reads and writes ``SystemSetting`` rows, known keys only"""

    settings = SETTINGS

    def __init__(self, appbuilder):
        super(SettingsManager, self).__init__(appbuilder)
        self._schemas = {
            key: Schema.from_dict({"value": setting["field"]}, name=f"{key}_setting")
            for key, setting in self.settings.items()
        }

    def is_known(self, key: str) -> bool:
        return key in self.settings

    def default(self, key: str) -> Any:
        return copy.deepcopy(self.settings[key]["default"])

    def validate(self, key: str, value: Any) -> Any:
        """
        Validate a setting value and return it in its stored form

        :raises ValidationError: 400 on unknown keys, 422 on invalid values
        """
        if not self.is_known(key):
            raise ValidationError(f"Unknown setting: {key}")
        schema = self._schemas[key]()
        try:
            loaded = schema.load({"value": value})
        except MarshmallowValidationError as e:
            raise ValidationError(
                "Invalid setting value",
                errors=e.messages.get("value", e.messages),
                status_code=422,
            )
        return schema.dump(loaded)["value"]

    def _find(self, key: str) -> Optional[SystemSetting]:
        return db.session.query(SystemSetting).filter_by(key=key).one_or_none()

    def get(self, key: str) -> Any:
        """Stored value of a known key, its default when unset"""
        if not self.is_known(key):
            raise NotFoundError(f"Setting {key} not found")
        setting = self._find(key)
        if setting is None or setting.value is None:
            return self.default(key)
        return setting.value

    def get_all(self) -> Dict[str, Any]:
        values = {key: self.default(key) for key in self.settings}
        for setting in db.session.query(SystemSetting).all():
            if setting.key in values and setting.value is not None:
                values[setting.key] = setting.value
        return values

    def set(self, key: str, value: Any) -> Any:
        value = self.validate(key, value)
        setting = self._find(key)
        if setting is None:
            setting = SystemSetting(key=key)
            db.session.add(setting)
        setting.value = value
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error(LOGMSG_ERR_DBI_EDIT_GENERIC, e)
            raise
        return value

    def create_defaults(self) -> None:
        """Store the default of every unset key"""
        for key in self.settings:
            if self._find(key) is None:
                db.session.add(SystemSetting(key=key, value=self.default(key)))
        db.session.commit()
