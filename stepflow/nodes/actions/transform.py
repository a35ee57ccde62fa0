"""Transform action node for reshaping upstream data."""

import time
from typing import Any, Dict, List, Optional

from stepflow.executor.data import StepResult
from stepflow.workflows.models import ActionType
from stepflow.workflows.paths import get_value_at_path, set_value_at_path
from stepflow.nodes.base import ActionNode, NodeParameter, ParameterType
from stepflow.nodes.conditions import evaluate_condition, validate_condition

OPERATIONS = ["map", "filter", "sort", "group", "reduce", "merge"]
AGGREGATES = ["count", "sum", "avg", "min", "max"]


def as_items(data: Any) -> List[Any]:
    if data is None:
        return []
    return data if isinstance(data, list) else [data]


class TransformNode(ActionNode):
    """Apply a declarative transformation to the step input."""

    subtype = ActionType.TRANSFORM.value
    display_name = "Transform"
    description = "Map, filter, sort, group, reduce or merge data"
    icon = "shuffle"
    color = "#12B886"
    parameters = [
        NodeParameter(
            name="operation",
            display_name="Operation",
            type=ParameterType.OPTIONS,
            required=True,
            default="map",
            options=OPERATIONS,
        ),
        NodeParameter(name="inputPath", display_name="Input path", type=ParameterType.STRING),
        NodeParameter(name="outputPath", display_name="Output path", type=ParameterType.STRING),
        NodeParameter(name="mapping", display_name="Mapping", type=ParameterType.JSON),
        NodeParameter(name="condition", display_name="Condition", type=ParameterType.JSON),
        NodeParameter(name="field", display_name="Field", type=ParameterType.STRING),
        NodeParameter(
            name="order",
            display_name="Order",
            type=ParameterType.OPTIONS,
            default="asc",
            options=["asc", "desc"],
        ),
        NodeParameter(
            name="aggregate",
            display_name="Aggregate",
            type=ParameterType.OPTIONS,
            default="count",
            options=AGGREGATES,
        ),
    ]

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        errors = super().validate_config(config)
        operation = config.get("operation")

        if operation in ("sort", "group") and not config.get("field"):
            errors.append(f"Field is required for {operation}")
        if operation == "reduce" and config.get("aggregate", "count") != "count" and not config.get("field"):
            errors.append("Field is required for reduce")
        if operation == "filter" and config.get("condition") is not None:
            errors.extend(validate_condition(config["condition"]))

        for key in ("inputPath", "outputPath"):
            path = config.get(key)
            if isinstance(path, str) and path:
                try:
                    set_value_at_path({}, path, None)
                except ValueError as e:
                    errors.append(str(e))
        return errors

    def _map(self, items: List[Any]) -> List[Any]:
        mapping: Optional[Dict[str, str]] = self.get_parameter("mapping")
        if not mapping:
            return [{**item, "processed": True} if isinstance(item, dict) else item for item in items]

        results = []
        for item in items:
            mapped: Dict[str, Any] = {}
            for target, source in mapping.items():
                mapped = set_value_at_path(mapped, target, get_value_at_path(item, source))
            results.append(mapped)
        return results

    def _filter(self, items: List[Any]) -> List[Any]:
        condition = self.get_parameter("condition")
        if not condition:
            return [item for item in items if item]
        return [
            item for item in items
            if evaluate_condition(item, condition)
        ]

    def _sort(self, items: List[Any]) -> List[Any]:
        field = self.get_parameter("field")
        reverse = self.get_parameter("order", "asc") == "desc"
        present = [i for i in items if get_value_at_path(i, field) is not None]
        missing = [i for i in items if get_value_at_path(i, field) is None]
        present.sort(key=lambda i: get_value_at_path(i, field), reverse=reverse)
        return present + missing

    def _group(self, items: List[Any]) -> Dict[str, List[Any]]:
        field = self.get_parameter("field")
        groups: Dict[str, List[Any]] = {}
        for item in items:
            key = get_value_at_path(item, field)
            groups.setdefault("" if key is None else str(key), []).append(item)
        return groups

    def _reduce(self, items: List[Any]) -> Any:
        aggregate = self.get_parameter("aggregate", "count")
        if aggregate == "count":
            return len(items)

        field = self.get_parameter("field")
        values = [
            v for v in (get_value_at_path(item, field) for item in items)
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        ]
        if aggregate == "sum":
            return sum(values)
        if not values:
            return None
        if aggregate == "avg":
            return sum(values) / len(values)
        return min(values) if aggregate == "min" else max(values)

    def _merge(self, data: Any) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        sources = data.values() if isinstance(data, dict) else as_items(data)
        for source in sources:
            if isinstance(source, dict):
                merged.update(source)
        return merged

    async def execute(self) -> StepResult:
        operation = self.get_parameter("operation", "map")
        input_path = self.get_parameter("inputPath")
        output_path = self.get_parameter("outputPath")
        started = time.perf_counter()

        source = get_value_at_path(self.input_data, input_path) if input_path else self.input_data
        items = as_items(source)

        if operation == "merge":
            transformed: Any = self._merge(source)
        else:
            handler = {
                "map": self._map,
                "filter": self._filter,
                "sort": self._sort,
                "group": self._group,
                "reduce": self._reduce,
            }.get(operation)
            if handler is None:
                return StepResult.fail(f"Unsupported operation: {operation}")
            transformed = handler(items)

        if output_path:
            transformed = set_value_at_path(self.input_data or {}, output_path, transformed)

        return StepResult.ok({
            "operation": operation,
            "originalData": self.input_data,
            "transformedData": transformed,
            "itemsProcessed": len(items),
            "duration": int((time.perf_counter() - started) * 1000),
        })
