"""Evaluation context carried across a workflow run."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

    from flowtest.workflows.models import Parameter, Reusable


@dataclass
class EvaluationContext:
    """State that runtime expressions are evaluated against.

    A context is created once per workflow run and owned by that run. Step
    outputs accumulate under ``steps``; the response snapshot is replaced
    after every request.
    """

    inputs: dict[str, Any] = field(default_factory=dict)
    workflow_parameters: list[Parameter | Reusable] | None = None
    steps: dict[str, dict[str, Any]] = field(default_factory=dict)
    url: str | None = None
    method: str | None = None
    status_code: int | None = None
    request: dict[str, Any] | None = None
    response: dict[str, Any] | None = None

    def as_tree(self) -> dict[str, Any]:
        """Mapping queried by ``$``-prefixed expressions."""
        tree: dict[str, Any] = {
            "inputs": self.inputs,
            "steps": self.steps,
        }
        if self.url is not None:
            tree["url"] = self.url
        if self.method is not None:
            tree["method"] = self.method
        if self.status_code is not None:
            tree["statusCode"] = self.status_code
        if self.request is not None:
            tree["request"] = self.request
        if self.response is not None:
            tree["response"] = self.response
        return tree

    def copy(self) -> EvaluationContext:
        return copy.deepcopy(self)

    def with_response(self, response: httpx.Response) -> EvaluationContext:
        """Return an enriched copy holding a snapshot of ``response``."""
        enriched = self.copy()
        request = response.request
        enriched.url = str(response.url)
        enriched.method = request.method
        enriched.status_code = response.status_code
        enriched.request = {
            "header": dict(request.headers),
            "query": dict(request.url.params),
            "body": _decode_body(request.content),
        }
        enriched.response = {
            "header": dict(response.headers),
            "body": _decode_body(response.content, response.text),
        }
        return enriched

    def record_outputs(self, step_id: str, outputs: dict[str, Any]) -> None:
        self.steps[step_id] = {"outputs": outputs}


def _decode_body(content: bytes, text: str | None = None) -> Any:
    if not content:
        return text if text is not None else None
    try:
        return json.loads(content)
    except ValueError:
        if text is not None:
            return text
        return content.decode("utf-8", errors="replace")
