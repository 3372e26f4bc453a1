"""Construction and transport of the HTTP request for a step."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Sequence
from typing import Any

import httpx

from flowtest.workflows.errors import (
    MissingServerError,
    StepExecutionError,
    TransportError,
    UnsupportedFeatureError,
)
from flowtest.workflows.expressions import ExpressionEngine
from flowtest.workflows.models import Parameter, RequestBody, ResolvedOperation, Reusable

logger = logging.getLogger(__name__)

LOCATIONS = ("path", "query", "header", "cookie", "body")
UNSUPPORTED_LOCATIONS = ("cookie", "body")

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
XML_CONTENT_TYPE = "application/xml"

ParsedParameters = dict[str, dict[str, Any]]


class RequestBuilder:
    """Turns a step's declared parameters and body into an ``httpx.Request``."""

    def __init__(self, client: httpx.Client, workflow_name: str | None = None) -> None:
        self.client = client
        self.workflow_name = workflow_name

    def build(
        self,
        step_id: str,
        engine: ExpressionEngine,
        operation: ResolvedOperation,
        parameters: Sequence[Parameter | Reusable] | None = None,
        workflow_parameters: Sequence[Parameter | Reusable] | None = None,
        request_body: RequestBody | None = None,
    ) -> httpx.Request:
        """Build the request for a resolved operation.

        Workflow-level parameters are applied first and step-level parameters of
        the same name and location override them.

        Raises:
            UnsupportedFeatureError: For references, cookie/body parameters and
                unsupported request bodies.
            MissingServerError: If the operation's document declares no servers.
        """
        step_parameters = self.parse_parameters(step_id, engine, parameters)
        shared_parameters = self.parse_parameters(step_id, engine, workflow_parameters)
        merged = {
            location: {**shared_parameters[location], **step_parameters[location]} for location in LOCATIONS
        }

        body = self.build_body(step_id, engine, request_body)
        server_url = self._get_server_url(step_id, operation)

        path = operation.path
        for name, value in merged["path"].items():
            path = path.replace(f"{{{name}}}", _to_text(value))

        url = f"{server_url}{path}"
        query = str(httpx.QueryParams({name: _to_text(value) for name, value in merged["query"].items()}))
        if query:
            url = f"{url}?{query}"

        headers = httpx.Headers({name: _to_text(value) for name, value in merged["header"].items()})
        if body is not None and request_body is not None:
            headers["Content-Type"] = request_body.content_type

        try:
            return self.client.build_request(
                method=operation.method.upper(),
                url=url,
                headers=headers,
                content=body,
            )
        except httpx.InvalidURL as e:
            raise StepExecutionError(f"Invalid request URL '{url}': {e}", self.workflow_name, step_id) from e

    def send(self, step_id: str, request: httpx.Request) -> httpx.Response:
        """Send a request. Non-2xx responses are returned, not raised.

        Raises:
            TransportError: If the request could not be completed.
        """
        logger.debug("Sending %s %s", request.method, request.url)
        start_time = time.time()
        try:
            response = self.client.send(request)
            response.read()
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}", self.workflow_name, step_id, cause=e) from e
        elapsed_ms = (time.time() - start_time) * 1000
        if not response.is_success:
            logger.warning(
                "Request to %s returned %s %s: %s",
                request.url,
                response.status_code,
                response.reason_phrase,
                response.text,
            )
        else:
            logger.debug("Received %s from %s in %.2fms", response.status_code, request.url, elapsed_ms)
        return response

    def parse_parameters(
        self,
        step_id: str,
        engine: ExpressionEngine,
        parameters: Sequence[Parameter | Reusable] | None,
    ) -> ParsedParameters:
        """Resolve parameter values and group them by location."""
        parsed: ParsedParameters = {location: {} for location in LOCATIONS}
        for parameter in parameters or ():
            if isinstance(parameter, Reusable):
                raise UnsupportedFeatureError(
                    "References are not supported in parameters", self.workflow_name, step_id
                )
            if parameter.in_ in UNSUPPORTED_LOCATIONS:
                raise UnsupportedFeatureError(
                    f"'{parameter.in_}' parameter location is not supported", self.workflow_name, step_id
                )
            parsed[parameter.in_][parameter.name] = engine.resolve_value(parameter.value)
        return parsed

    def build_body(
        self,
        step_id: str,
        engine: ExpressionEngine,
        request_body: RequestBody | None,
    ) -> bytes | None:
        """Encode the request body for its declared content type."""
        if request_body is None:
            return None
        content_type = request_body.content_type
        payload = request_body.payload
        if request_body.replacements:
            raise UnsupportedFeatureError(
                "Replacements are not supported in request bodies", self.workflow_name, step_id
            )
        if content_type == XML_CONTENT_TYPE:
            raise UnsupportedFeatureError(
                f"{XML_CONTENT_TYPE} request body content type is not supported", self.workflow_name, step_id
            )
        if content_type == FORM_CONTENT_TYPE:
            if isinstance(payload, str):
                raise UnsupportedFeatureError(
                    f"{FORM_CONTENT_TYPE} request body should be an object. String form data is not supported",
                    self.workflow_name,
                    step_id,
                )
            if not isinstance(payload, dict):
                raise UnsupportedFeatureError(
                    f"{FORM_CONTENT_TYPE} request body should be an object", self.workflow_name, step_id
                )
            form = {key: engine.resolve_value(value) for key, value in payload.items()}
            return str(httpx.QueryParams({key: _to_text(value) for key, value in form.items()})).encode()
        if content_type == JSON_CONTENT_TYPE:
            if isinstance(payload, str):
                raise UnsupportedFeatureError(
                    f"{JSON_CONTENT_TYPE} request body should be an object. JSON templates are not supported",
                    self.workflow_name,
                    step_id,
                )
            if not isinstance(payload, (dict, list)):
                raise UnsupportedFeatureError(
                    f"{JSON_CONTENT_TYPE} request body should be an object", self.workflow_name, step_id
                )
            return json.dumps(engine.resolve(payload)).encode()
        raise UnsupportedFeatureError(
            f"Content type '{content_type}' is not supported", self.workflow_name, step_id
        )

    def _get_server_url(self, step_id: str, operation: ResolvedOperation) -> str:
        servers = operation.document.get("servers") or []
        if not servers or not servers[0].get("url"):
            raise MissingServerError(self.workflow_name, step_id)
        return servers[0]["url"].rstrip("/")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)
