"""Workflow runner driving the step state machine.

A run walks the step list from index 0. Each step either advances to the next
index, jumps to another step, retries itself or terminates the run. The run
ends in one of three states: success, failure or error.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import httpx

from flowtest.config import RunnerConfig
from flowtest.workflows.context import EvaluationContext
from flowtest.workflows.errors import StepNotFoundError, UnsupportedFeatureError, WorkflowError
from flowtest.workflows.expressions import ExpressionEngine
from flowtest.workflows.models import ArazzoDocument, NextAction, StepResult, Workflow, WorkflowResult
from flowtest.workflows.step import StepEngine

logger = logging.getLogger(__name__)

DEFAULT_RETRY_LIMIT = 1


class WorkflowRunner:
    """Executes workflows against live HTTP endpoints."""

    def __init__(
        self,
        config: RunnerConfig | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Runner configuration. Defaults to ``RunnerConfig()``.
            client: HTTP client to send requests with. When omitted, a client is
                created from ``config`` for every run and closed afterwards.
            sleep: Called with the retry delay in seconds before a step is retried.
        """
        self.config = config or RunnerConfig()
        self._client = client
        self._sleep = sleep

    def run(
        self,
        workflow: Workflow,
        inputs: dict[str, Any] | None,
        documents: Mapping[str, dict[str, Any]],
    ) -> WorkflowResult:
        """Run a workflow to completion.

        Args:
            workflow: The dereferenced workflow definition.
            inputs: Workflow inputs keyed by input name.
            documents: Dereferenced API documents keyed by source name.

        Returns:
            WorkflowResult with the terminal status.
        """
        logger.info("Running workflow '%s'", workflow.workflow_id)
        context = EvaluationContext(inputs=dict(inputs or {}), workflow_parameters=workflow.parameters)
        client = self._client or self.config.create_client()
        history: list[StepResult] = []
        try:
            result = self._run(workflow, context, StepEngine(documents, client, workflow.workflow_id), history)
        except WorkflowError as e:
            result = WorkflowResult.error(workflow.workflow_id, str(e))
        finally:
            if self._client is None:
                client.close()
        result.step_results = history
        result.end_time = datetime.utcnow()
        logger.info(
            "Workflow '%s' finished with %s%s",
            workflow.workflow_id,
            result.status.value,
            f": {result.reason or result.error_message}" if not result.is_success else "",
        )
        return result

    def _run(
        self,
        workflow: Workflow,
        context: EvaluationContext,
        step_engine: StepEngine,
        history: list[StepResult],
    ) -> WorkflowResult:
        workflow_id = workflow.workflow_id
        if workflow.depends_on:
            raise UnsupportedFeatureError("dependsOn is not supported", workflow_id)
        if workflow.success_actions or workflow.failure_actions:
            raise UnsupportedFeatureError(
                "Workflow-level successActions and failureActions are not supported. "
                "Use onSuccess and onFailure on the steps instead",
                workflow_id,
            )

        steps = workflow.steps
        index = 0
        retry_count = 0
        retry_limit: int | None = None
        while index < len(steps):
            step = steps[index]
            step_result = step_engine.execute(step, context)
            history.append(step_result)
            if step_result.context is not None:
                context = step_result.context
            context.record_outputs(step.step_id, step_result.outputs)

            if step_result.next_action is None:
                if not step_result.success:
                    return WorkflowResult.failure(workflow_id, f"Step {step.step_id} failed")
                index += 1
                retry_count, retry_limit = 0, None
                continue

            if step_result.next_action == NextAction.END:
                if step_result.success:
                    return self._success(workflow, context)
                return WorkflowResult.failure(workflow_id, f"Step {step.step_id} failed")

            if step_result.next_action == NextAction.GOTO:
                target = workflow.get_step_index(step_result.next_step_id or "")
                if target is None:
                    raise StepNotFoundError(step_result.next_step_id or "", workflow_id)
                logger.debug("Step '%s' jumps to '%s'", step.step_id, step_result.next_step_id)
                index = target
                retry_count, retry_limit = 0, None
                continue

            # Retry the current step
            if retry_limit is None:
                retry_limit = step_result.retry_limit or DEFAULT_RETRY_LIMIT
            retry_count += 1
            if retry_count >= retry_limit:
                return WorkflowResult.failure(workflow_id, f"Step {step.step_id} failed: retry limit exceeded")
            delay = max(0.0, step_result.retry_after or 0)
            logger.info(
                "Retrying step '%s' in %ss (attempt %d of %d)", step.step_id, delay, retry_count + 1, retry_limit
            )
            self._sleep(delay)

        return self._success(workflow, context)

    def _success(self, workflow: Workflow, context: EvaluationContext) -> WorkflowResult:
        engine = ExpressionEngine(context, workflow.workflow_id)
        outputs = {name: engine.resolve_value(expression) for name, expression in (workflow.outputs or {}).items()}
        return WorkflowResult.success(workflow.workflow_id, outputs=outputs)


def run(
    workflow: Workflow,
    inputs: dict[str, Any] | None,
    documents: Mapping[str, dict[str, Any]],
    *,
    config: RunnerConfig | None = None,
) -> WorkflowResult:
    """Convenience function to run a single workflow."""
    return WorkflowRunner(config=config).run(workflow, inputs, documents)


def run_document(
    document: ArazzoDocument,
    inputs: Mapping[str, dict[str, Any]],
    documents: Mapping[str, dict[str, Any]],
    *,
    runner: WorkflowRunner | None = None,
    workflow_ids: list[str] | None = None,
) -> list[WorkflowResult]:
    """Run the workflows of a document in order, stopping at the first one that does not succeed.

    Args:
        document: The dereferenced workflow document.
        inputs: Inputs keyed by workflow id.
        documents: Dereferenced API documents keyed by source name.
        runner: Runner to use. Defaults to ``WorkflowRunner()``.
        workflow_ids: Only run these workflows.

    Returns:
        Results of the workflows that were run.
    """
    runner = runner or WorkflowRunner()
    results: list[WorkflowResult] = []
    for workflow in document.workflows:
        if workflow_ids and workflow.workflow_id not in workflow_ids:
            continue
        result = runner.run(workflow, inputs.get(workflow.workflow_id), documents)
        results.append(result)
        if not result.is_success:
            break
    return results
