"""Delay action node."""

import asyncio
import random
from datetime import datetime, timezone
from typing import Any, Dict, List

from stepflow.config import settings
from stepflow.executor.data import StepResult
from stepflow.workflows.models import ActionType
from stepflow.nodes.base import ActionNode, NodeParameter, ParameterType

UNIT_MS = {
    "milliseconds": 1,
    "seconds": 1000,
    "minutes": 60 * 1000,
    "hours": 60 * 60 * 1000,
}
DELAY_TYPES = ["fixed", "random", "exponential"]
MIN_DELAY_MS = 1.0


def to_milliseconds(value: float, unit: str) -> float:
    if unit not in UNIT_MS:
        raise ValueError(f"Invalid unit: {unit}")
    return float(value) * UNIT_MS[unit]


class DelayNode(ActionNode):
    """Pause the run, then hand the input on unchanged."""

    subtype = ActionType.DELAY.value
    display_name = "Delay"
    description = "Pause execution for a fixed, random or exponential duration"
    icon = "hourglass"
    color = "#868E96"
    parameters = [
        NodeParameter(
            name="delayType",
            display_name="Delay type",
            type=ParameterType.OPTIONS,
            required=True,
            default="fixed",
            options=DELAY_TYPES,
        ),
        NodeParameter(name="value", display_name="Value", type=ParameterType.NUMBER, required=True, default=1),
        NodeParameter(
            name="unit",
            display_name="Unit",
            type=ParameterType.OPTIONS,
            required=True,
            default="seconds",
            options=list(UNIT_MS),
        ),
        NodeParameter(name="maxDelayMs", display_name="Max delay (ms)", type=ParameterType.NUMBER, min_value=0),
        NodeParameter(name="passthrough", display_name="Pass input through", type=ParameterType.BOOLEAN, default=True),
    ]

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        errors = super().validate_config(config)
        value = config.get("value")
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value <= 0:
            errors.append("Value must be greater than 0")
        return errors

    @staticmethod
    def clamp(delay_ms: float) -> float:
        return min(max(delay_ms, MIN_DELAY_MS), settings.max_delay_seconds * 1000)

    def plan_delay(self, base_ms: float) -> float:
        delay_type = self.get_parameter("delayType", "fixed")
        max_delay = self.get_parameter("maxDelayMs")

        if delay_type == "random":
            upper = max(0.0, float(max_delay if max_delay is not None else base_ms * 2))
            if upper <= base_ms:
                return base_ms
            return base_ms + random.random() * (upper - base_ms)

        if delay_type == "exponential":
            cap = float(max_delay or base_ms * 4)
            return min(base_ms * 2 ** (random.random() * 3), cap)

        return base_ms

    async def execute(self) -> StepResult:
        unit = self.get_parameter("unit", "seconds")
        planned_ms = self.clamp(to_milliseconds(self.get_parameter("value", 1), unit))
        delay_ms = self.clamp(self.plan_delay(planned_ms))
        passthrough = self.get_parameter("passthrough", True)

        start_time = datetime.now(timezone.utc)
        await asyncio.sleep(delay_ms / 1000)

        return StepResult.ok({
            "delayType": self.get_parameter("delayType", "fixed"),
            "actualDelayMs": round(delay_ms, 3),
            "plannedDelayMs": round(planned_ms, 3),
            "unit": unit,
            "startTime": start_time.isoformat(),
            "endTime": datetime.now(timezone.utc).isoformat(),
            "passthrough": passthrough,
            "passthroughData": self.input_data if passthrough else None,
        })
