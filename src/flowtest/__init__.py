from __future__ import annotations

from flowtest import workflows
from flowtest.config import ConfigError, RunnerConfig
from flowtest.core.version import FLOWTEST_VERSION
from flowtest.workflows import (
    ArazzoDocument,
    EvaluationContext,
    Workflow,
    WorkflowError,
    WorkflowResult,
    WorkflowRunner,
    WorkflowStatus,
    run,
)

__version__ = FLOWTEST_VERSION

__all__ = [
    "__version__",
    # Core data structures
    "ArazzoDocument",
    "Workflow",
    "WorkflowResult",
    "WorkflowStatus",
    "EvaluationContext",
    # Execution
    "WorkflowRunner",
    "run",
    # Configuration
    "RunnerConfig",
    "ConfigError",
    # Errors
    "WorkflowError",
    # Namespaces
    "workflows",
]
