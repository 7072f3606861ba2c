import datetime

from apispec import APISpec
from apispec.ext.marshmallow import MarshmallowPlugin
from flask import current_app, Response

from . import BaseApi, expose, safe
from .. import __version__

ERROR_RESPONSES = {
    "400": "Bad request",
    "401": "Not authorized",
    "403": "Forbidden",
    "404": "Not found",
    "409": "Conflict with the current state",
    "413": "Payload too large",
    "422": "Could not process entity",
    "429": "Too many requests",
    "500": "Fatal error",
}


def _error_response(description: str):
    return {
        "description": description,
        "content": {
            "application/json": {
                "schema": {
                    "type": "object",
                    "properties": {
                        "success": {"type": "boolean"},
                        "error": {
                            "type": "object",
                            "properties": {"message": {"type": "string"}},
                        },
                    },
                }
            }
        },
    }


class OpenApi(BaseApi):
    """Serves the OpenAPI document of every registered API"""

    route_base = "/api"
    openapi_spec_tag = "OpenApi"

    @expose("/openapi.json", methods=["GET"])
    @safe
    def get(self) -> Response:
        """Get the OpenAPI spec
        ---
        get:
          description: >-
            Get the OpenAPI spec of the REST API
          responses:
            200:
              description: The OpenAPI spec
              content:
                application/json:
                  schema:
                    type: object
        """
        return self.response(200, **self._create_api_spec().to_dict())

    def _create_api_spec(self) -> APISpec:
        api_spec = APISpec(
            title=current_app.config["API_TITLE"],
            version=__version__,
            openapi_version=current_app.config["OPENAPI_VERSION"],
            info={"description": "REST API for Site Acceptance Test reports"},
            plugins=[MarshmallowPlugin()],
            servers=[{"url": "/"}],
        )
        for code, description in ERROR_RESPONSES.items():
            api_spec.components.response(code, _error_response(description))
        for base_api in self.appbuilder.baseapis:
            base_api.add_apispec_components(api_spec)
        for base_api in self.appbuilder.baseapis:
            base_api.add_api_spec(api_spec)
        return api_spec


class HealthApi(BaseApi):
    route_base = "/api"
    openapi_spec_tag = "Health"

    @expose("/health", methods=["GET"])
    def health(self) -> Response:
        """Liveness probe
        ---
        get:
          responses:
            200:
              description: The service is up
        """
        return self.response(
            200,
            status="ok",
            timestamp=datetime.datetime.utcnow().isoformat(),
            version=__version__,
        )
