"""Error classes for the workflow engine.

Every exception here belongs to the *Error* tier: malformed or unsupported
input that aborts a workflow run. Business failures are never raised, they
are returned as a failed ``WorkflowResult``.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base exception for workflow errors."""

    def __init__(self, message: str, workflow_name: str | None = None) -> None:
        self.message = message
        self.workflow_name = workflow_name
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.workflow_name:
            return f"[{self.workflow_name}] {self.message}"
        return self.message


class WorkflowParseError(WorkflowError):
    """Raised when a workflow or API document cannot be loaded."""

    def __init__(
        self,
        message: str,
        workflow_name: str | None = None,
        file_path: str | None = None,
    ) -> None:
        self.file_path = file_path
        super().__init__(message, workflow_name)

    def _format_message(self) -> str:
        parts = []
        if self.file_path:
            parts.append(self.file_path)
        if self.workflow_name:
            parts.append(f"workflow '{self.workflow_name}'")
        parts.append(self.message)
        return ": ".join(parts)


class StepExecutionError(WorkflowError):
    """Raised when a workflow step cannot be executed."""

    def __init__(
        self,
        message: str,
        workflow_name: str | None = None,
        step_name: str | None = None,
    ) -> None:
        self.step_name = step_name
        super().__init__(message, workflow_name)

    def _format_message(self) -> str:
        parts = []
        if self.workflow_name:
            parts.append(f"workflow '{self.workflow_name}'")
        if self.step_name:
            parts.append(f"step '{self.step_name}'")
        parts.append(self.message)
        return ": ".join(parts)


class UnsupportedFeatureError(StepExecutionError):
    """Raised when a document uses a feature the engine does not implement."""


class OperationNotFoundError(StepExecutionError):
    """Raised when no loaded API document declares an operation id."""

    def __init__(
        self,
        operation_id: str,
        workflow_name: str | None = None,
        step_name: str | None = None,
    ) -> None:
        self.operation_id = operation_id
        super().__init__(
            f"Operation '{operation_id}' not found in any of the API documents",
            workflow_name,
            step_name,
        )


class MissingServerError(StepExecutionError):
    """Raised when the API document owning an operation declares no servers."""

    def __init__(self, workflow_name: str | None = None, step_name: str | None = None) -> None:
        super().__init__("API document must declare at least one server URL", workflow_name, step_name)


class StepNotFoundError(WorkflowError):
    """Raised when a goto action targets a step id that does not exist."""

    def __init__(self, step_name: str, workflow_name: str | None = None) -> None:
        self.step_name = step_name
        super().__init__(f"Step '{step_name}' not found", workflow_name)


class TransportError(StepExecutionError):
    """Raised when an HTTP request could not be completed."""

    def __init__(
        self,
        message: str,
        workflow_name: str | None = None,
        step_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.cause = cause
        super().__init__(message, workflow_name, step_name)


class ExpressionError(WorkflowError):
    """Raised when expression evaluation fails."""

    def __init__(
        self,
        expression: str,
        message: str,
        workflow_name: str | None = None,
        step_name: str | None = None,
    ) -> None:
        self.expression = expression
        self.step_name = step_name
        super().__init__(f"Expression '{expression}': {message}", workflow_name)
