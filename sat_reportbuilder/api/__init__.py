import functools
import logging
import re
from typing import Any, Dict, Optional, Tuple, Type

from apispec import yaml_utils
from apispec.exceptions import DuplicateComponentNameError
from flask import Blueprint, jsonify, make_response, request, Response
from marshmallow import Schema, ValidationError as MarshmallowValidationError
from werkzeug.exceptions import HTTPException

from ..exceptions import SATError, ValidationError
from ..models.sqla import db

log = logging.getLogger(__name__)

_url_param_re = re.compile(r"<(?:[^:<>]+:)?([^<>]+)>")


def expose(url: str = "/", methods: Tuple[str, ...] = ("GET",)):
    """
    Use this decorator to expose API endpoints on your API classes.

    :param url:
        Relative URL for the endpoint
    :param methods:
        Allowed HTTP methods. By default only GET is allowed.
    """

    def wrap(f):
        if not hasattr(f, "_urls"):
            f._urls = []
        f._urls.append((url, methods))
        return f

    return wrap


def safe(f):
    """
    A decorator that catches uncaught exceptions and
    return the response in JSON format (inspired on Superset code)
    """

    def wraps(self, *args, **kwargs):
        try:
            return f(self, *args, **kwargs)
        except SATError as e:
            db.session.rollback()
            return self.response_error(e.status_code, **e.to_dict())
        except MarshmallowValidationError as e:
            db.session.rollback()
            return self.response_422(message="Validation failed", errors=e.messages)
        except HTTPException as e:
            db.session.rollback()
            return self.response_error(e.code or 500, message=e.description)
        except Exception as e:
            db.session.rollback()
            log.exception(e)
            return self.response_500()

    return functools.update_wrapper(wraps, f)


class BaseApi(object):
    """
    All APIs inherit from this class.
    It's constructor will register your exposed urls on flask
    as a Blueprint under ``/api/<resource_name>``.

    Responses share one envelope, ``{"success": true, "data": ...}``
    on success and ``{"success": false, "error": {"message": ...}}``
    on failure.
    """

    appbuilder = None
    blueprint = None
    endpoint: Optional[str] = None

    route_base: Optional[str] = None
    """
        Define the route base where all methods will suffix from
    """
    resource_name: Optional[str] = None
    """
        Defines a custom resource name, overrides the inferred from Class name
        makes no sense to use it with route base
    """
    openapi_spec_tag: Optional[str] = None
    """
        By default all endpoints will be tagged (grouped) to their class name.
        Use this attribute to override the tag name
    """
    openapi_spec_component_schemas: Tuple[Type[Schema], ...] = tuple()
    """
        A Tuple containing marshmallow schemas to be registered
        on the OpenAPI spec has components
    """

    def __init__(self):
        if self.resource_name is None:
            self.resource_name = self.__class__.__name__.lower()
        if self.route_base is None:
            self.route_base = "/api/{}".format(self.resource_name.lower())

    def create_blueprint(self, appbuilder, endpoint: Optional[str] = None):
        """
        Create Flask blueprint. You will generally not use it

        :param appbuilder:
            the ReportBuilder object
        :param endpoint:
            endpoint override for this blueprint,
            will assume class name if not provided
        """
        self.appbuilder = appbuilder
        self.endpoint = endpoint or self.__class__.__name__
        self.blueprint = Blueprint(self.endpoint, __name__, url_prefix=self.route_base)
        self._register_urls()
        return self.blueprint

    def _register_urls(self):
        for attr_name, attr in self._exposed_methods():
            for url, methods in attr._urls:
                self.blueprint.add_url_rule(
                    url, attr_name, attr, methods=methods, strict_slashes=False
                )

    def _exposed_methods(self):
        for attr_name in dir(self):
            attr = getattr(self, attr_name)
            if hasattr(attr, "_urls"):
                yield attr_name, attr

    """
    ----------------------------------------
        OPENAPI
    ----------------------------------------
    """

    def add_apispec_components(self, api_spec):
        for schema in self.openapi_spec_component_schemas:
            name = schema.__name__
            if name.endswith("Schema"):
                name = name[: -len("Schema")]
            try:
                api_spec.components.schema(name, schema=schema)
            except DuplicateComponentNameError:
                pass

    def add_api_spec(self, api_spec):
        for attr_name, attr in self._exposed_methods():
            docstring_operations = yaml_utils.load_operations_from_docstring(
                attr.__doc__ or ""
            )
            for url, methods in attr._urls:
                operations = {}
                for method in [method.lower() for method in methods]:
                    if method not in docstring_operations:
                        continue
                    operation = dict(docstring_operations[method])
                    operation.setdefault(
                        "tags", [self.openapi_spec_tag or self.__class__.__name__]
                    )
                    operation.setdefault("operationId", f"{self.endpoint}_{attr_name}")
                    if getattr(attr, "_protected", False):
                        operation.setdefault("security", [{"jwt": []}])
                    operations[method] = operation
                path = _url_param_re.sub(r"{\1}", self.route_base + url)
                if operations:
                    api_spec.path(path=path, operations=operations)

    """
    ----------------------------------------
        REQUEST HELPERS
    ----------------------------------------
    """

    @staticmethod
    def load_payload(schema: Schema, required: bool = True) -> Dict[str, Any]:
        """
        Load the JSON request body with a marshmallow schema.

        :raises ValidationError: 400 with the field errors
        """
        payload = request.get_json(silent=True)
        if payload is None:
            if required and not request.is_json:
                raise ValidationError("Request payload is not JSON")
            payload = {}
        try:
            return schema.load(payload)
        except MarshmallowValidationError as e:
            raise ValidationError("Validation failed", errors=e.messages)

    @staticmethod
    def load_args(schema: Schema) -> Dict[str, Any]:
        """
        Load the query string with a marshmallow schema.

        :raises ValidationError: 400 with the field errors
        """
        try:
            return schema.load(request.args.to_dict())
        except MarshmallowValidationError as e:
            raise ValidationError("Invalid query parameters", errors=e.messages)

    """
    ----------------------------------------
        RESPONSE HELPERS
    ----------------------------------------
    """

    @staticmethod
    def response(code: int, **kwargs) -> Response:
        """
        Generic HTTP JSON response method

        :param code: HTTP code (int)
        :param kwargs: Data structure for response (dict)
        :return: HTTP Json response
        """
        _ret_json = jsonify(kwargs)
        resp = make_response(_ret_json, code)
        resp.headers["Content-Type"] = "application/json; charset=utf-8"
        return resp

    def response_data(
        self, data: Any = None, code: int = 200, message: Optional[str] = None
    ) -> Response:
        body = {"success": True}
        if data is not None:
            body["data"] = data
        if message is not None:
            body["message"] = message
        return self.response(code, **body)

    def response_error(self, code: int, message: str = "", **kwargs) -> Response:
        error = {"message": message}
        error.update(kwargs)
        return self.response(code, success=False, error=error)

    def response_400(self, message: Optional[str] = None, **kwargs) -> Response:
        """
        Helper method for HTTP 400 response

        :param message: Error message (str)
        :return: HTTP Json response
        """
        message = message or "Arguments are not correct"
        return self.response_error(400, message, **kwargs)

    def response_422(self, message: Optional[str] = None, **kwargs) -> Response:
        message = message or "Could not process entity"
        return self.response_error(422, message, **kwargs)

    def response_401(self, message: Optional[str] = None) -> Response:
        return self.response_error(401, message or "Not authorized")

    def response_403(self, message: Optional[str] = None) -> Response:
        return self.response_error(403, message or "Access denied")

    def response_404(self, message: Optional[str] = None) -> Response:
        return self.response_error(404, message or "Not found")

    def response_409(self, message: Optional[str] = None) -> Response:
        return self.response_error(409, message or "Conflict")

    def response_500(self, message: Optional[str] = None) -> Response:
        return self.response_error(500, message or "Internal Server Error")
