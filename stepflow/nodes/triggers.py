"""Trigger node implementations."""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytz
from croniter import croniter

from stepflow.config import settings
from stepflow.executor.data import StepResult
from stepflow.workflows.models import TriggerType
from .base import NodeParameter, ParameterType, TriggerNode

WEBHOOK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]
DEFAULT_SIGNATURE_HEADER = "x-webhook-signature"


def webhook_url(workflow_id: str) -> str:
    """Public URL that starts ``workflow_id`` through its webhook trigger."""
    return f"{settings.webhook_base_url.rstrip('/')}/api/webhooks/{workflow_id}"


class ManualTriggerNode(TriggerNode):
    """Manual trigger node - triggered by user action."""

    subtype = TriggerType.MANUAL.value
    display_name = "Manual Trigger"
    description = "Manually trigger workflow execution"
    icon = "play-circle"
    color = "#4A90E2"

    async def execute(self) -> StepResult:
        output = {
            "triggered": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "triggeredBy": self.context.node_id,
            "reason": "Manual execution triggered",
        }
        if self.input_data:
            output["data"] = self.input_data
        return StepResult.ok(output)


class WebhookTriggerNode(TriggerNode):
    """Webhook trigger node.

    The webhook itself starts the run; as a graph step it only hands the
    payload that started the run to its successors.
    """

    subtype = TriggerType.WEBHOOK.value
    display_name = "Webhook"
    description = "Start the workflow when an HTTP request arrives"
    icon = "webhook"
    color = "#0CA678"
    parameters = [
        NodeParameter(name="method", type=ParameterType.OPTIONS, default="POST", options=WEBHOOK_METHODS),
        NodeParameter(name="secret", type=ParameterType.STRING, description="Shared secret for HMAC signatures"),
        NodeParameter(
            name="signatureHeader",
            display_name="Signature header",
            type=ParameterType.STRING,
            default=DEFAULT_SIGNATURE_HEADER,
        ),
        NodeParameter(
            name="responseMode",
            display_name="Response mode",
            type=ParameterType.OPTIONS,
            default="async",
            options=["sync", "async"],
        ),
        NodeParameter(
            name="responseCode",
            display_name="Response code",
            type=ParameterType.NUMBER,
            default=200,
            min_value=100,
            max_value=599,
        ),
        NodeParameter(name="responseBody", display_name="Response body", type=ParameterType.ANY),
        NodeParameter(name="enabled", type=ParameterType.BOOLEAN, default=True),
    ]

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        errors = super().validate_config(config)
        body = config.get("responseBody")
        if isinstance(body, str) and body.strip():
            try:
                json.loads(body)
            except ValueError:
                errors.append("Response body must be valid JSON")
        return errors

    async def execute(self) -> StepResult:
        if not self.get_parameter("enabled", True):
            return StepResult.ok({"triggered": False, "reason": "Webhook trigger is disabled"})

        if self.input_data not in (None, {}, []):
            return StepResult.ok(self.input_data)

        return StepResult.ok({
            "triggered": True,
            "method": self.get_parameter("method", "POST"),
            "url": webhook_url(self.context.workflow_id),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })


class ScheduleTriggerNode(TriggerNode):
    """Schedule trigger node - triggered by cron schedule."""

    subtype = TriggerType.SCHEDULE.value
    display_name = "Schedule"
    description = "Start the workflow on a cron schedule"
    icon = "clock"
    color = "#F76707"
    parameters = [
        NodeParameter(
            name="cron",
            display_name="Cron expression",
            type=ParameterType.STRING,
            required=True,
            default=settings.default_cron,
        ),
        NodeParameter(name="timezone", type=ParameterType.STRING, default=settings.default_timezone),
        NodeParameter(name="enabled", type=ParameterType.BOOLEAN, default=True),
    ]

    @staticmethod
    def validate_cron_expression(cron: str) -> Optional[str]:
        """Return an error message for an unusable cron expression."""
        if len(cron.split()) != 5:
            return f"Cron expression must have 5 fields: {cron}"
        if not croniter.is_valid(cron):
            return f"Invalid cron expression: {cron}"
        return None

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        errors = super().validate_config(config)
        cron = config.get("cron")
        if isinstance(cron, str) and cron.strip():
            cron_error = cls.validate_cron_expression(cron)
            if cron_error:
                errors.append(cron_error)

        tz_name = config.get("timezone")
        if isinstance(tz_name, str) and tz_name not in pytz.all_timezones_set:
            errors.append(f"Unknown timezone: {tz_name}")
        return errors

    def get_next_run_time(self, cron: str, tz_name: str) -> datetime:
        """Get next scheduled run time."""
        now = datetime.now(pytz.timezone(tz_name))
        return croniter(cron, now).get_next(datetime)

    async def execute(self) -> StepResult:
        cron = self.get_parameter("cron", settings.default_cron)
        tz_name = self.get_parameter("timezone", settings.default_timezone)
        enabled = self.get_parameter("enabled", True)

        cron_error = self.validate_cron_expression(cron)
        if cron_error:
            return StepResult.fail(cron_error)

        next_run = self.get_next_run_time(cron, tz_name)
        return StepResult.ok({
            "triggered": bool(enabled),
            "cronExpression": cron,
            "nextRun": next_run.isoformat(),
            "timezone": tz_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
