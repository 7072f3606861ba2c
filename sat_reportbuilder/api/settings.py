from flask import Response

from . import BaseApi, expose, safe
from .schemas import SettingPutSchema
from ..const import UserRole
from ..security.decorators import protect

setting_put = SettingPutSchema()


class SettingsApi(BaseApi):
    resource_name = "settings"
    openapi_spec_tag = "Settings"
    openapi_spec_component_schemas = (SettingPutSchema,)

    @expose("/", methods=["GET"])
    @protect(UserRole.ADMIN)
    @safe
    def get_list(self) -> Response:
        """Every known setting, defaults filled in
        ---
        get:
          responses:
            200:
              description: Settings keyed by name
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
        """
        return self.response_data(self.appbuilder.settings.get_all())

    @expose("/<key>", methods=["GET"])
    @protect()
    @safe
    def get(self, key: str) -> Response:
        """One setting
        ---
        get:
          parameters:
          - in: path
            name: key
            schema:
              type: string
              enum: [company_info, final_storage_locations]
          responses:
            200:
              description: The setting value
            401:
              $ref: '#/components/responses/401'
            404:
              $ref: '#/components/responses/404'
        """
        return self.response_data(
            {"key": key, "value": self.appbuilder.settings.get(key)}
        )

    @expose("/", methods=["PUT"])
    @protect(UserRole.ADMIN)
    @safe
    def put(self) -> Response:
        """Create or replace a setting
        ---
        put:
          requestBody:
            required: true
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/SettingPut'
          responses:
            200:
              description: Setting saved
            400:
              $ref: '#/components/responses/400'
            401:
              $ref: '#/components/responses/401'
            403:
              $ref: '#/components/responses/403'
            422:
              $ref: '#/components/responses/422'
        """
        item = self.load_payload(setting_put)
        value = self.appbuilder.settings.set(item["key"], item["value"])
        return self.response_data(
            {"key": item["key"], "value": value}, message="Setting updated successfully"
        )
