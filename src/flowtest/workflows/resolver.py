"""Lookup of API operations by operation id."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flowtest.workflows.errors import OperationNotFoundError
from flowtest.workflows.models import HTTP_METHODS, ResolvedOperation


def find_operation(
    operation_id: str,
    documents: Mapping[str, dict[str, Any]],
    step_id: str | None = None,
    workflow_name: str | None = None,
) -> ResolvedOperation:
    """Find the first operation declaring ``operation_id``.

    Documents are searched in mapping order, then paths in document order, then
    methods in ``HTTP_METHODS`` order. Operation ids are expected to be unique
    across all documents; when they are not, the first match wins.

    Raises:
        OperationNotFoundError: If no document declares the operation id.
    """
    for source, document in documents.items():
        for path, path_item in (document.get("paths") or {}).items():
            if not isinstance(path_item, dict):
                continue
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if isinstance(operation, dict) and operation.get("operationId") == operation_id:
                    return ResolvedOperation(
                        method=method,
                        path=path,
                        operation=operation,
                        document=document,
                        source=source,
                    )
    raise OperationNotFoundError(operation_id, workflow_name, step_id)
