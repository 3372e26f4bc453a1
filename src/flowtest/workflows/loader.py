"""Loading of workflow documents and the API documents they reference.

The engine works on fully dereferenced, in-memory documents; this module
produces them from JSON or YAML files and URLs.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import ValidationError

from flowtest.workflows.errors import UnsupportedFeatureError, WorkflowParseError
from flowtest.workflows.models import ArazzoDocument

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def parse_document(content: str, *, fmt: str | None = None, source: str | None = None) -> Any:
    """Parse JSON or YAML text.

    Args:
        content: Document text.
        fmt: ``"json"`` or ``"yaml"``. When omitted, JSON is tried first.
        source: File path or URL for error reporting.
    """
    if fmt != "yaml":
        try:
            return json.loads(content)
        except ValueError as e:
            if fmt == "json":
                raise WorkflowParseError(f"Invalid JSON: {e}", file_path=source) from e
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise WorkflowParseError(f"Invalid YAML: {e}", file_path=source) from e


def dereference(tree: Any) -> Any:
    """Resolve local ``#/...`` references. Circular references are left in place.

    Raises:
        WorkflowParseError: For references to other files or URLs.
    """
    return _dereference(tree, tree, ())


def _dereference(node: Any, root: Any, stack: tuple[str, ...]) -> Any:
    if isinstance(node, list):
        return [_dereference(item, root, stack) for item in node]
    if not isinstance(node, dict):
        return node
    reference = node.get("$ref")
    if isinstance(reference, str) and not reference.startswith("#"):
        raise WorkflowParseError(f"External references are not supported: {reference}")
    if isinstance(reference, str):
        if reference in stack:
            return node
        target = _resolve_pointer(root, reference)
        resolved = _dereference(target, root, (*stack, reference))
        siblings = {key: _dereference(value, root, stack) for key, value in node.items() if key != "$ref"}
        if siblings and isinstance(resolved, dict):
            return {**resolved, **siblings}
        return resolved
    return {key: _dereference(value, root, stack) for key, value in node.items()}


def _resolve_pointer(root: Any, reference: str) -> Any:
    current = root
    pointer = reference[1:]
    if not pointer:
        return current
    for token in pointer.lstrip("/").split("/"):
        token = token.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict) and token in current:
            current = current[token]
        elif isinstance(current, list) and token.isdigit() and int(token) < len(current):
            current = current[int(token)]
        else:
            raise WorkflowParseError(f"Unresolvable reference: {reference}")
    return current


def _format_for(path: str) -> str | None:
    if path.endswith(YAML_SUFFIXES):
        return "yaml"
    if path.endswith(".json"):
        return "json"
    return None


def load_document(path: str | Path) -> Any:
    """Read, parse and dereference a JSON or YAML file."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise WorkflowParseError(f"Unable to read file: {e}", file_path=str(path)) from e
    return dereference(parse_document(content, fmt=_format_for(path.name), source=str(path)))


def load_workflow_document(path: str | Path) -> ArazzoDocument:
    """Load a workflow document from a file."""
    data = load_document(path)
    return build_workflow_document(data, source=str(path))


def build_workflow_document(data: Any, source: str | None = None) -> ArazzoDocument:
    if not isinstance(data, dict):
        raise WorkflowParseError("Workflow document must be an object", file_path=source)
    try:
        return ArazzoDocument.model_validate(data)
    except ValidationError as e:
        raise WorkflowParseError(f"Invalid workflow document: {e}", file_path=source) from e


def load_source_descriptions(
    document: ArazzoDocument,
    client: httpx.Client,
    base_path: str | Path | None = None,
) -> dict[str, dict[str, Any]]:
    """Fetch and dereference every API document referenced by ``document``.

    Args:
        document: The workflow document.
        client: HTTP client used for ``http(s)`` URLs.
        base_path: Directory that relative file URLs are resolved against.

    Returns:
        API documents keyed by source description name, in declaration order.
    """
    documents: dict[str, dict[str, Any]] = {}
    for source in document.source_descriptions:
        if source.type != "openapi":
            raise UnsupportedFeatureError(
                f"Source description '{source.name}' of type '{source.type}' is not supported"
            )
        logger.debug("Loading source description '%s' from %s", source.name, source.url)
        if source.url.startswith(("http://", "https://")):
            api_document = _fetch_document(client, source.url)
        else:
            path = Path(source.url)
            if base_path is not None and not path.is_absolute():
                path = Path(base_path) / path
            api_document = load_document(path)
        if not isinstance(api_document, dict):
            raise WorkflowParseError("API document must be an object", file_path=source.url)
        documents[source.name] = api_document
    return documents


def _fetch_document(client: httpx.Client, url: str) -> Any:
    try:
        response = client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise WorkflowParseError(f"Unable to fetch document: {e}", file_path=url) from e
    return dereference(parse_document(response.text, fmt=_format_for(httpx.URL(url).path), source=url))
