"""Success criteria evaluation."""

from __future__ import annotations

from collections.abc import Sequence

from flowtest.workflows.errors import UnsupportedFeatureError
from flowtest.workflows.expressions import ExpressionEngine
from flowtest.workflows.models import Criterion

SIMPLE = "simple"


def evaluate_criteria(
    criteria: Sequence[Criterion],
    engine: ExpressionEngine,
    step_id: str | None = None,
) -> bool:
    """Evaluate criteria in order, stopping at the first one that does not hold.

    Raises:
        UnsupportedFeatureError: If a criterion declares a type other than ``simple``.
    """
    for criterion in criteria:
        if not evaluate_criterion(criterion, engine, step_id):
            return False
    return True


def evaluate_criterion(criterion: Criterion, engine: ExpressionEngine, step_id: str | None = None) -> bool:
    if criterion.type is not None and criterion.type != SIMPLE:
        # Expression type objects carry the name under "type"
        name = criterion.type.get("type") if isinstance(criterion.type, dict) else criterion.type
        raise UnsupportedFeatureError(
            f"Criterion type '{name}' is not supported. Use a simple condition instead",
            engine.workflow_name,
            step_id,
        )
    return engine.evaluate_condition(criterion.condition)
