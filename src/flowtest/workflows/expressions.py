"""Expression engine for criteria and runtime value resolution.

Handles the small expression language used by workflow documents:
- Runtime references: ``$statusCode``, ``$response.body.id``, ``$inputs.userId``,
  ``$steps.createUser.outputs.id``
- Literals: ``"quoted"`` / ``'quoted'`` strings, ``true``, ``false``, ``null``, numbers
- Comparisons: ``== != >= <= > <`` with one operator per comparison
- Conditions: AND-groups (``&&``) of OR-alternatives (``||``) of comparisons,
  parenthesized sub-conditions and unary ``!``

``&&`` is split first, so ``a || b && c`` reads as ``(a || b) && c``.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any

from jsonpath_ng import parse as parse_jsonpath

from flowtest.workflows.context import EvaluationContext
from flowtest.workflows.errors import ExpressionError

logger = logging.getLogger(__name__)

_MISSING = object()


class ExpressionEngine:
    """Evaluates expressions against an evaluation context."""

    OPERAND = r"\"[^\"]*\"|'[^']*'|[^\s=!<>&|()]+"
    COMPARISON_PATTERN = re.compile(rf"^\s*({OPERAND})\s*(==|!=|>=|<=|>|<)\s*({OPERAND})\s*$")
    SINGLE_OPERAND_PATTERN = re.compile(rf"^\s*({OPERAND})\s*$")
    NUMBER_PATTERN = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
    INTEGER_PATTERN = re.compile(r"^-?\d+$")

    def __init__(
        self,
        context: EvaluationContext,
        workflow_name: str | None = None,
        step_name: str | None = None,
    ) -> None:
        """Initialize the expression engine.

        Args:
            context: Context that ``$`` references are resolved against.
            workflow_name: Workflow name for error reporting.
            step_name: Step name for error reporting.
        """
        self.context = context
        self.workflow_name = workflow_name
        self.step_name = step_name

    def resolve(self, value: Any) -> Any:
        """Resolve every string leaf of a payload tree.

        Args:
            value: The value to resolve (can be string, dict, list, or primitive).

        Returns:
            A new tree with string leaves replaced by their resolved values.
        """
        if isinstance(value, str):
            return self.resolve_value(value)
        elif isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.resolve(item) for item in value]
        return value

    def resolve_value(self, operand: Any) -> Any:
        """Resolve a single operand to a Python value."""
        if not isinstance(operand, str):
            return operand
        if operand.startswith("$"):
            return self.query(operand)
        if len(operand) >= 2 and operand[0] == operand[-1] and operand[0] in "\"'":
            return operand[1:-1]
        if operand == "true":
            return True
        if operand == "false":
            return False
        if operand == "null":
            return None
        if self.NUMBER_PATTERN.match(operand):
            if self.INTEGER_PATTERN.match(operand):
                return int(operand)
            return float(operand)
        return operand

    def query(self, expression: str) -> Any:
        """Return the first value matching a ``$`` reference, or ``None``."""
        path = expression[1:]
        try:
            compiled = _compile_path(path)
        except Exception as e:
            raise ExpressionError(expression, f"Invalid path: {e}", self.workflow_name, self.step_name) from e
        matches = compiled.find(self.context.as_tree())
        if not matches:
            return None
        return matches[0].value

    def evaluate_condition(self, condition: str) -> bool:
        """Evaluate a condition string to a boolean.

        Raises:
            ExpressionError: If the condition is empty or not a supported comparison.
        """
        if not condition or not condition.strip():
            raise ExpressionError(condition, "Empty condition", self.workflow_name, self.step_name)
        for and_group in split_top_level(condition, "&&"):
            alternatives = split_top_level(and_group, "||")
            if not any(self._evaluate_part(part, condition) for part in alternatives):
                return False
        return True

    def _evaluate_part(self, part: str, condition: str) -> bool:
        part = part.strip()
        if not part:
            raise ExpressionError(condition, "Missing operand", self.workflow_name, self.step_name)
        if _is_wrapped(part):
            return self.evaluate_condition(part[1:-1])
        if part.startswith("!") and not part.startswith("!="):
            rest = part[1:].strip()
            if _is_wrapped(rest):
                return not self.evaluate_condition(rest[1:-1])
            if self.COMPARISON_PATTERN.match(rest):
                return not self._evaluate_comparison(rest)
            if self.SINGLE_OPERAND_PATTERN.match(rest):
                return not self.resolve_value(rest.strip())
            raise ExpressionError(part, "Invalid negation", self.workflow_name, self.step_name)
        return self._evaluate_comparison(part)

    def _evaluate_comparison(self, expression: str) -> bool:
        match = self.COMPARISON_PATTERN.match(expression)
        if not match:
            raise ExpressionError(
                expression,
                "Expected exactly one comparison operator (==, !=, >=, <=, >, <)",
                self.workflow_name,
                self.step_name,
            )
        left_operand, operator, right_operand = match.groups()
        left = self.resolve_value(left_operand)
        right = self.resolve_value(right_operand)
        result = compare(left, operator, right)
        if not result:
            logger.debug(
                "Condition failed: %r %s %r. Original expression: %s",
                left,
                operator,
                right,
                expression,
            )
        return result


def compare(left: Any, operator: str, right: Any) -> bool:
    """Compare two resolved values with loose, number-aware semantics."""
    left, right = _coerce_pair(left, right)
    if operator == "==":
        return left == right
    if operator == "!=":
        return left != right
    try:
        if operator == ">=":
            return left >= right
        if operator == "<=":
            return left <= right
        if operator == ">":
            return left > right
        if operator == "<":
            return left < right
    except TypeError:
        return False
    raise ValueError(f"Unsupported operator: {operator}")


def split_top_level(text: str, separator: str) -> list[str]:
    """Split on ``separator`` occurrences outside quotes and parentheses."""
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    start = 0
    i = 0
    while i < len(text):
        char = text[i]
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and text.startswith(separator, i):
            parts.append(text[start:i].strip())
            i += len(separator)
            start = i
            continue
        i += 1
    parts.append(text[start:].strip())
    return parts


@lru_cache(maxsize=256)
def _compile_path(path: str) -> Any:
    return parse_jsonpath(path)


def _is_wrapped(text: str) -> bool:
    """Whether the outermost parentheses enclose the whole text."""
    if not (text.startswith("(") and text.endswith(")")):
        return False
    depth = 0
    quote: str | None = None
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0 and index != len(text) - 1:
                return False
    return depth == 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: str) -> int | float | object:
    text = value.strip()
    if ExpressionEngine.INTEGER_PATTERN.match(text):
        return int(text)
    if ExpressionEngine.NUMBER_PATTERN.match(text):
        return float(text)
    return _MISSING


def _coerce_pair(left: Any, right: Any) -> tuple[Any, Any]:
    # "200" and 200 compare as numbers
    if _is_number(left) and isinstance(right, str):
        number = _as_number(right)
        if number is not _MISSING:
            return left, number
    elif _is_number(right) and isinstance(left, str):
        number = _as_number(left)
        if number is not _MISSING:
            return number, right
    return left, right
