"""Execution of a single workflow step."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from flowtest.workflows.context import EvaluationContext
from flowtest.workflows.criteria import evaluate_criteria
from flowtest.workflows.errors import UnsupportedFeatureError
from flowtest.workflows.expressions import ExpressionEngine
from flowtest.workflows.models import (
    FailureAction,
    NextAction,
    Parameter,
    Reusable,
    Step,
    StepResult,
    SuccessAction,
)
from flowtest.workflows.request import RequestBuilder
from flowtest.workflows.resolver import find_operation

logger = logging.getLogger(__name__)


class StepEngine:
    """Executes one step: request, outputs, criteria and action selection."""

    def __init__(
        self,
        documents: Mapping[str, dict[str, Any]],
        client: httpx.Client,
        workflow_name: str | None = None,
    ) -> None:
        """Initialize the step engine.

        Args:
            documents: Dereferenced API documents keyed by source name.
            client: HTTP client used to send requests.
            workflow_name: Workflow name for error reporting.
        """
        self.documents = documents
        self.workflow_name = workflow_name
        self.request_builder = RequestBuilder(client, workflow_name)

    def execute(
        self,
        step: Step,
        context: EvaluationContext,
        workflow_parameters: Sequence[Parameter | Reusable] | None = None,
    ) -> StepResult:
        """Execute a step against its API operation.

        ``context`` is not modified; the returned result carries an enriched copy
        holding the response snapshot.

        Raises:
            WorkflowError: For unsupported features, unknown operations and
                transport failures.
        """
        step_id = step.step_id
        if not step.operation_id or step.operation_path or step.workflow_id:
            raise UnsupportedFeatureError(
                "operationId is required. operationPath and workflowId steps are not supported",
                self.workflow_name,
                step_id,
            )

        operation = find_operation(step.operation_id, self.documents, step_id, self.workflow_name)
        if workflow_parameters is None:
            workflow_parameters = context.workflow_parameters

        engine = ExpressionEngine(context, self.workflow_name, step_id)
        request = self.request_builder.build(
            step_id,
            engine,
            operation,
            parameters=step.parameters,
            workflow_parameters=workflow_parameters,
            request_body=step.request_body,
        )
        start_time = time.time()
        response = self.request_builder.send(step_id, request)
        duration_ms = (time.time() - start_time) * 1000

        enriched = context.with_response(response)
        engine = ExpressionEngine(enriched, self.workflow_name, step_id)
        outputs = {name: engine.resolve_value(expression) for name, expression in (step.outputs or {}).items()}

        success = True
        if step.success_criteria:
            success = evaluate_criteria(step.success_criteria, engine, step_id)

        result = StepResult(
            step_id=step_id,
            success=success,
            outputs=outputs,
            context=enriched,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        if success and step.on_success:
            self._apply_success_actions(step_id, step.on_success, engine, result)
        elif not success and step.on_failure:
            self._apply_failure_actions(step_id, step.on_failure, engine, response, result)

        logger.info(
            "Step '%s' %s (status %s, next action: %s)",
            step_id,
            "succeeded" if success else "failed",
            response.status_code,
            result.next_action.value if result.next_action else "default",
        )
        return result

    def _apply_success_actions(
        self,
        step_id: str,
        actions: Sequence[SuccessAction | Reusable],
        engine: ExpressionEngine,
        result: StepResult,
    ) -> None:
        for action in actions:
            if isinstance(action, Reusable):
                raise UnsupportedFeatureError("References are not supported in onSuccess", self.workflow_name, step_id)
            if action.workflow_id:
                raise UnsupportedFeatureError(
                    "Workflow references are not supported in onSuccess", self.workflow_name, step_id
                )
            if not self._guard_passes(step_id, action.criteria, engine):
                continue
            if action.type == "end":
                result.next_action = NextAction.END
                return
            if action.type == "goto" and action.step_id:
                result.next_action = NextAction.GOTO
                result.next_step_id = action.step_id
                return

    def _apply_failure_actions(
        self,
        step_id: str,
        actions: Sequence[FailureAction | Reusable],
        engine: ExpressionEngine,
        response: httpx.Response,
        result: StepResult,
    ) -> None:
        for action in actions:
            if isinstance(action, Reusable):
                raise UnsupportedFeatureError("References are not supported in onFailure", self.workflow_name, step_id)
            if action.workflow_id:
                raise UnsupportedFeatureError(
                    "Workflow references are not supported in onFailure", self.workflow_name, step_id
                )
            if not self._guard_passes(step_id, action.criteria, engine):
                continue
            if action.type == "end":
                result.next_action = NextAction.END
                return
            if action.type == "goto" and action.step_id:
                result.next_action = NextAction.GOTO
                result.next_step_id = action.step_id
                return
            if action.type == "retry":
                if action.step_id:
                    raise UnsupportedFeatureError(
                        "stepId is not supported in retry failure actions", self.workflow_name, step_id
                    )
                result.next_action = NextAction.RETRY
                result.retry_after = get_retry_after(response, action.retry_after)
                result.retry_limit = action.retry_limit
                return

    def _guard_passes(self, step_id: str, criteria: Sequence[Any] | None, engine: ExpressionEngine) -> bool:
        if not criteria:
            return True
        return evaluate_criteria(criteria, engine, step_id)


def get_retry_after(response: httpx.Response, default: float | None = None) -> float | None:
    """Seconds to wait before retrying, preferring the ``Retry-After`` header.

    The header may hold delay seconds or an HTTP date.
    """
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    value = value.strip()
    try:
        return max(0.0, float(int(value)))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())
