"""Tests for flowtest.workflows.models and context modules."""
from __future__ import annotations

from datetime import datetime, timedelta

import httpx
import pytest
from pydantic import ValidationError

from flowtest.workflows.context import EvaluationContext
from flowtest.workflows.models import (
    FailureAction,
    NextAction,
    Parameter,
    Reusable,
    Step,
    StepResult,
    Workflow,
    WorkflowResult,
    WorkflowStatus,
)


class TestDocumentModels:
    def test_camel_case_aliases(self):
        step = Step.model_validate(
            {
                "stepId": "s",
                "operationId": "op",
                "requestBody": {"contentType": "application/json", "payload": {"a": 1}},
                "successCriteria": [{"condition": "$statusCode == 200"}],
                "onFailure": [{"name": "again", "type": "retry", "retryAfter": 0.5, "retryLimit": 2}],
                "x-extension": True,
            }
        )
        assert step.request_body.content_type == "application/json"
        assert step.success_criteria[0].type is None
        action = step.on_failure[0]
        assert isinstance(action, FailureAction)
        assert (action.retry_after, action.retry_limit) == (0.5, 2)

    def test_parameter_or_reference(self):
        step = Step.model_validate(
            {
                "stepId": "s",
                "operationId": "op",
                "parameters": [
                    {"name": "id", "in": "path", "value": 1},
                    {"reference": "$components.parameters.page", "value": 3},
                ],
            }
        )
        assert isinstance(step.parameters[0], Parameter)
        assert isinstance(step.parameters[1], Reusable)

    def test_invalid_parameter_location(self):
        with pytest.raises(ValidationError):
            Parameter.model_validate({"name": "id", "in": "matrix", "value": 1})

    def test_invalid_action_type(self):
        with pytest.raises(ValidationError):
            Step.model_validate({"stepId": "s", "onSuccess": [{"name": "again", "type": "retry"}]})

    def test_step_index(self):
        workflow = Workflow.model_validate(
            {"workflowId": "w", "steps": [{"stepId": "a", "operationId": "x"}, {"stepId": "b", "operationId": "y"}]}
        )
        assert workflow.get_step_index("b") == 1
        assert workflow.get_step_index("c") is None

    def test_duplicate_step_ids(self):
        with pytest.raises(ValidationError, match="Duplicate step id 'a'"):
            Workflow.model_validate({"workflowId": "w", "steps": [{"stepId": "a"}, {"stepId": "a"}]})


class TestResults:
    def test_step_result_to_dict(self):
        result = StepResult(
            step_id="s",
            success=False,
            next_action=NextAction.RETRY,
            retry_after=1.0,
            retry_limit=3,
            status_code=503,
            duration_ms=12.3456,
        )
        data = result.to_dict()
        assert data["next_action"] == "retry"
        assert data["duration_ms"] == 12.35
        assert data["status_code"] == 503

    def test_workflow_result_constructors(self):
        assert WorkflowResult.success("w").is_success
        failure = WorkflowResult.failure("w", "Step s failed")
        assert failure.is_failure
        assert failure.reason == "Step s failed"
        error = WorkflowResult.error("w", "boom")
        assert error.is_error
        assert error.status == WorkflowStatus.ERROR

    def test_workflow_result_to_dict(self):
        start = datetime(2024, 1, 1, 12, 0, 0)
        result = WorkflowResult.success(
            "w",
            outputs={"id": 1},
            step_results=[StepResult(step_id="s", success=True)],
            start_time=start,
        )
        assert result.duration_seconds == 0.0
        result.end_time = start + timedelta(seconds=1.5)
        data = result.to_dict()
        assert data["status"] == "success"
        assert data["start_time"] == "2024-01-01T12:00:00Z"
        assert data["duration_seconds"] == 1.5
        assert data["step_results"][0]["step_id"] == "s"


class TestEvaluationContext:
    def test_tree_omits_unset_snapshot(self):
        tree = EvaluationContext(inputs={"a": 1}).as_tree()
        assert tree == {"inputs": {"a": 1}, "steps": {}}

    def test_with_response(self):
        request = httpx.Request("POST", "http://api.example.com/users?page=2", json={"name": "Jane"})
        response = httpx.Response(201, json={"id": 7}, headers={"X-Request-Id": "abc"}, request=request)
        context = EvaluationContext(inputs={"a": 1})
        enriched = context.with_response(response)
        assert context.status_code is None
        tree = enriched.as_tree()
        assert tree["url"] == "http://api.example.com/users?page=2"
        assert tree["method"] == "POST"
        assert tree["statusCode"] == 201
        assert tree["request"]["query"] == {"page": "2"}
        assert tree["request"]["body"] == {"name": "Jane"}
        assert tree["response"]["header"]["x-request-id"] == "abc"
        assert tree["response"]["body"] == {"id": 7}

    def test_copy_is_deep(self):
        context = EvaluationContext(inputs={"nested": {"a": 1}})
        clone = context.copy()
        clone.inputs["nested"]["a"] = 2
        assert context.inputs["nested"]["a"] == 1

    def test_record_outputs(self):
        context = EvaluationContext()
        context.record_outputs("s", {})
        assert context.steps == {"s": {"outputs": {}}}
