"""Workflow engine for flowtest.

This module provides:
- Workflow document models
- Expression and criteria evaluation against a run's context
- Operation lookup and request construction
- Step execution with success and failure actions
- The workflow runner state machine
"""

from __future__ import annotations

from flowtest.workflows.context import EvaluationContext
from flowtest.workflows.criteria import evaluate_criteria
from flowtest.workflows.errors import (
    ExpressionError,
    MissingServerError,
    OperationNotFoundError,
    StepExecutionError,
    StepNotFoundError,
    TransportError,
    UnsupportedFeatureError,
    WorkflowError,
    WorkflowParseError,
)
from flowtest.workflows.expressions import ExpressionEngine
from flowtest.workflows.loader import load_source_descriptions, load_workflow_document
from flowtest.workflows.models import (
    ArazzoDocument,
    Criterion,
    FailureAction,
    NextAction,
    Parameter,
    RequestBody,
    ResolvedOperation,
    Step,
    StepResult,
    SuccessAction,
    Workflow,
    WorkflowResult,
    WorkflowStatus,
)
from flowtest.workflows.request import RequestBuilder
from flowtest.workflows.resolver import find_operation
from flowtest.workflows.runner import WorkflowRunner, run, run_document
from flowtest.workflows.step import StepEngine

__all__ = [
    # Models
    "ArazzoDocument",
    "Workflow",
    "Step",
    "Parameter",
    "RequestBody",
    "Criterion",
    "SuccessAction",
    "FailureAction",
    "ResolvedOperation",
    "NextAction",
    "StepResult",
    "WorkflowResult",
    "WorkflowStatus",
    "EvaluationContext",
    # Core components
    "ExpressionEngine",
    "evaluate_criteria",
    "find_operation",
    "RequestBuilder",
    "StepEngine",
    "WorkflowRunner",
    "run",
    "run_document",
    # Loading
    "load_workflow_document",
    "load_source_descriptions",
    # Errors
    "WorkflowError",
    "WorkflowParseError",
    "StepExecutionError",
    "UnsupportedFeatureError",
    "OperationNotFoundError",
    "MissingServerError",
    "StepNotFoundError",
    "TransportError",
    "ExpressionError",
]
