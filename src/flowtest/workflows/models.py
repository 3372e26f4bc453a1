"""Data models for workflow documents and execution results.

Document models mirror the camelCase keys of an Arazzo workflow document and
are expected to be fully dereferenced before they reach the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field, model_validator

if TYPE_CHECKING:
    from flowtest.workflows.context import EvaluationContext

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "options", "head", "trace")

MODEL_CONFIG = {"extra": "allow", "populate_by_name": True}


class Info(BaseModel):
    """Document metadata."""

    title: str
    version: str
    summary: str | None = None
    description: str | None = None

    model_config = MODEL_CONFIG


class SourceDescription(BaseModel):
    """An API document referenced by the workflow document."""

    name: str
    url: str
    type: Literal["openapi", "arazzo"] = "openapi"

    model_config = MODEL_CONFIG


class Reusable(BaseModel):
    """A reference to a shared component."""

    reference: str
    value: Any = None

    model_config = MODEL_CONFIG


class Parameter(BaseModel):
    """A request parameter declared on a step or a workflow."""

    name: str
    in_: Literal["path", "query", "header", "cookie", "body"] = Field(alias="in")
    value: Any = None

    model_config = MODEL_CONFIG


class Criterion(BaseModel):
    """A single condition evaluated against the evaluation context."""

    condition: str
    context: str | None = None
    type: str | dict[str, Any] | None = None

    model_config = MODEL_CONFIG


class RequestBody(BaseModel):
    """Request body declaration of a step."""

    content_type: str = Field(alias="contentType")
    payload: Any = None
    replacements: list[dict[str, Any]] | None = None

    model_config = MODEL_CONFIG


class SuccessAction(BaseModel):
    """Action evaluated when a step's success criteria hold."""

    name: str
    type: Literal["end", "goto"]
    workflow_id: str | None = Field(default=None, alias="workflowId")
    step_id: str | None = Field(default=None, alias="stepId")
    criteria: list[Criterion] | None = None

    model_config = MODEL_CONFIG


class FailureAction(BaseModel):
    """Action evaluated when a step's success criteria do not hold."""

    name: str
    type: Literal["end", "goto", "retry"]
    workflow_id: str | None = Field(default=None, alias="workflowId")
    step_id: str | None = Field(default=None, alias="stepId")
    retry_after: float | None = Field(default=None, alias="retryAfter")
    retry_limit: int | None = Field(default=None, alias="retryLimit")
    criteria: list[Criterion] | None = None

    model_config = MODEL_CONFIG


class Step(BaseModel):
    """A single operation invocation with its success and failure handling."""

    step_id: str = Field(alias="stepId")
    description: str | None = None
    operation_id: str | None = Field(default=None, alias="operationId")
    operation_path: str | None = Field(default=None, alias="operationPath")
    workflow_id: str | None = Field(default=None, alias="workflowId")
    parameters: list[Parameter | Reusable] | None = None
    request_body: RequestBody | None = Field(default=None, alias="requestBody")
    success_criteria: list[Criterion] | None = Field(default=None, alias="successCriteria")
    on_success: list[SuccessAction | Reusable] | None = Field(default=None, alias="onSuccess")
    on_failure: list[FailureAction | Reusable] | None = Field(default=None, alias="onFailure")
    outputs: dict[str, str] | None = None

    model_config = MODEL_CONFIG


class Workflow(BaseModel):
    """An ordered sequence of steps."""

    workflow_id: str = Field(alias="workflowId")
    summary: str | None = None
    description: str | None = None
    inputs: dict[str, Any] | None = None
    depends_on: list[str] | None = Field(default=None, alias="dependsOn")
    steps: list[Step]
    success_actions: list[SuccessAction | Reusable] | None = Field(default=None, alias="successActions")
    failure_actions: list[FailureAction | Reusable] | None = Field(default=None, alias="failureActions")
    outputs: dict[str, str] | None = None
    parameters: list[Parameter | Reusable] | None = None

    model_config = MODEL_CONFIG

    @model_validator(mode="after")
    def _check_unique_step_ids(self) -> Workflow:
        seen: set[str] = set()
        for step in self.steps:
            if step.step_id in seen:
                raise ValueError(f"Duplicate step id '{step.step_id}' in workflow '{self.workflow_id}'")
            seen.add(step.step_id)
        return self

    def get_step_index(self, step_id: str) -> int | None:
        """Position of a step in the step list."""
        for index, step in enumerate(self.steps):
            if step.step_id == step_id:
                return index
        return None


class ArazzoDocument(BaseModel):
    """A complete workflow document."""

    arazzo: str
    info: Info
    source_descriptions: list[SourceDescription] = Field(alias="sourceDescriptions")
    workflows: list[Workflow]
    components: dict[str, Any] | None = None

    model_config = MODEL_CONFIG

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        for workflow in self.workflows:
            if workflow.workflow_id == workflow_id:
                return workflow
        return None


@dataclass(frozen=True)
class ResolvedOperation:
    """An API operation located by its operation id."""

    method: str
    path: str
    operation: dict[str, Any]
    document: dict[str, Any]
    source: str


class NextAction(str, Enum):
    """Control-flow hint returned by a step."""

    END = "end"
    GOTO = "goto"
    RETRY = "retry"


class WorkflowStatus(str, Enum):
    """Terminal status of a workflow run."""

    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


@dataclass
class StepResult:
    """Result of executing a single step attempt."""

    step_id: str
    success: bool
    outputs: dict[str, Any] = field(default_factory=dict)
    next_action: NextAction | None = None
    next_step_id: str | None = None
    retry_after: float | None = None
    retry_limit: int | None = None
    context: EvaluationContext | None = None
    status_code: int | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "step_id": self.step_id,
            "success": self.success,
            "status_code": self.status_code,
            "duration_ms": round(self.duration_ms, 2),
            "outputs": self.outputs,
            "next_action": self.next_action.value if self.next_action else None,
            "next_step_id": self.next_step_id,
            "retry_after": self.retry_after,
            "retry_limit": self.retry_limit,
        }


@dataclass
class WorkflowResult:
    """Terminal result of a workflow run: success, failure or error."""

    workflow_id: str
    status: WorkflowStatus
    reason: str | None = None
    error_message: str | None = None
    outputs: dict[str, Any] = field(default_factory=dict)
    step_results: list[StepResult] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.utcnow)
    end_time: datetime | None = None

    @classmethod
    def success(cls, workflow_id: str, **kwargs: Any) -> WorkflowResult:
        return cls(workflow_id=workflow_id, status=WorkflowStatus.SUCCESS, **kwargs)

    @classmethod
    def failure(cls, workflow_id: str, reason: str, **kwargs: Any) -> WorkflowResult:
        return cls(workflow_id=workflow_id, status=WorkflowStatus.FAILURE, reason=reason, **kwargs)

    @classmethod
    def error(cls, workflow_id: str, error_message: str, **kwargs: Any) -> WorkflowResult:
        return cls(workflow_id=workflow_id, status=WorkflowStatus.ERROR, error_message=error_message, **kwargs)

    @property
    def is_success(self) -> bool:
        return self.status == WorkflowStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.status == WorkflowStatus.FAILURE

    @property
    def is_error(self) -> bool:
        return self.status == WorkflowStatus.ERROR

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "reason": self.reason,
            "error_message": self.error_message,
            "outputs": self.outputs,
            "start_time": self.start_time.isoformat() + "Z",
            "end_time": self.end_time.isoformat() + "Z" if self.end_time else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "step_results": [r.to_dict() for r in self.step_results],
        }
