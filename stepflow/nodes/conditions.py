"""Condition validation and evaluation shared by the if and filter gates."""

import json
import math
from enum import Enum
from typing import Any, Dict, List, Optional

from stepflow.workflows.paths import get_value_at_path


class ConditionOperator(str, Enum):
    """Supported comparison operators."""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"


OPERATORS = [op.value for op in ConditionOperator]


def validate_condition(condition: Any) -> List[str]:
    """Return human readable problems with a ``{field, operator, value}`` mapping."""
    if not isinstance(condition, dict):
        return ["Condition configuration is required"]

    errors = []
    field = condition.get("field")
    if not isinstance(field, str) or not field.strip():
        errors.append("Condition field is required and must be a string")

    operator = condition.get("operator")
    if not operator:
        errors.append("Condition operator is required")
    elif operator not in OPERATORS:
        errors.append(f"Invalid operator: {operator}")

    if "value" not in condition:
        errors.append("Condition value is required")

    return errors


def to_text(value: Any) -> str:
    """Coerce a value to the string form used for comparisons."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def to_number(value: Any) -> Optional[float]:
    """Parse ``value`` as a finite number, or ``None`` when it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def compare(actual: Any, operator: str, expected: Any) -> bool:
    """Apply ``operator`` to an extracted value and the configured value."""
    actual_text = to_text(actual)
    expected_text = to_text(expected)

    if operator == ConditionOperator.EQUALS:
        return actual_text == expected_text
    if operator == ConditionOperator.NOT_EQUALS:
        return actual_text != expected_text
    if operator == ConditionOperator.CONTAINS:
        return expected_text.lower() in actual_text.lower()

    if operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        left, right = to_number(actual), to_number(expected)
        if left is None or right is None:
            left, right = actual_text, expected_text
        if operator == ConditionOperator.GREATER_THAN:
            return left > right
        return left < right

    raise ValueError(f"Unknown operator: {operator}")


def evaluate_condition(data: Any, condition: Dict[str, Any]) -> bool:
    """Evaluate ``condition`` against the value found at its field path in ``data``."""
    actual = get_value_at_path(data, condition["field"])
    return compare(actual, condition["operator"], condition.get("value"))
