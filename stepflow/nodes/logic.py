"""Logic gate node implementations."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from stepflow.executor.data import StepResult
from stepflow.workflows.models import BranchHandle, LogicType
from stepflow.workflows.paths import get_value_at_path
from .base import LogicNode, NodeParameter, ParameterType
from .conditions import OPERATORS, compare, evaluate_condition, validate_condition

CONDITION_PARAMETERS = [
    NodeParameter(
        name="condition.field",
        display_name="Field",
        type=ParameterType.STRING,
        required=True,
        default="",
        description="Dot-separated path of the value to test, e.g. user.profile.role",
    ),
    NodeParameter(
        name="condition.operator",
        display_name="Operator",
        type=ParameterType.OPTIONS,
        required=True,
        default="equals",
        options=OPERATORS,
    ),
    NodeParameter(
        name="condition.value",
        display_name="Value",
        type=ParameterType.ANY,
        default="",
        description="Value to compare against",
    ),
]


class ConditionNode(LogicNode):
    """Shared validation for gates configured with a single condition."""

    parameters = CONDITION_PARAMETERS
    failure_prefix = "Condition"

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        return validate_condition(config.get("condition"))

    def check_config(self) -> Optional[StepResult]:
        errors = self.validate_config(self.config)
        if errors:
            return StepResult.fail(f"{self.failure_prefix} node validation failed: {', '.join(errors)}")
        return None


class IfNode(ConditionNode):
    """Route execution to the ``true`` or ``false`` handle."""

    subtype = LogicType.IF.value
    display_name = "If"
    description = "Branch execution based on a condition"
    icon = "git-branch"
    color = "#F59F00"
    outputs = [BranchHandle.TRUE.value, BranchHandle.FALSE.value]
    failure_prefix = "IF"

    async def execute(self) -> StepResult:
        invalid = self.check_config()
        if invalid:
            return invalid

        condition = self.config["condition"]
        field, operator, value = condition["field"], condition["operator"], condition.get("value")
        actual = get_value_at_path(self.input_data, field)
        met = compare(actual, operator, value)

        self.logger.debug("Condition evaluated", field=field, operator=operator, result=met)
        return StepResult.ok({
            "conditionMet": met,
            "field": field,
            "operator": operator,
            "value": value,
            "actualValue": actual,
            "branch": BranchHandle.TRUE.value if met else BranchHandle.FALSE.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })


class FilterNode(ConditionNode):
    """Keep the items of an array that satisfy a condition."""

    subtype = LogicType.FILTER.value
    display_name = "Filter"
    description = "Filter array items by a condition"
    icon = "filter"
    color = "#7950F2"
    failure_prefix = "Filter"

    @staticmethod
    def extract_items(data: Any) -> Optional[List[Any]]:
        """Return the array to filter: the input itself or its first list property."""
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for value in data.values():
                if isinstance(value, list):
                    return value
        return None

    async def execute(self) -> StepResult:
        invalid = self.check_config()
        if invalid:
            return invalid

        items = self.extract_items(self.input_data)
        if items is None:
            return StepResult.fail("Input must be an array or contain an array property")

        condition = self.config["condition"]
        field, operator, value = condition["field"], condition["operator"], condition.get("value")
        filtered = [
            item for item in items
            if evaluate_condition(item, condition)
        ]

        self.logger.debug("Items filtered", original=len(items), kept=len(filtered))
        return StepResult.ok({
            "originalCount": len(items),
            "filteredCount": len(filtered),
            "field": field,
            "operator": operator,
            "value": value,
            "filteredItems": filtered,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
