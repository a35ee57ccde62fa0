"""Email action node for sending emails."""

import re
import uuid
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List

import aiosmtplib
import httpx

from stepflow.config import settings
from stepflow.executor.data import StepResult
from stepflow.workflows.models import ActionType
from stepflow.nodes.base import ActionNode, NodeParameter, ParameterType


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SMTP_PRESETS = {
    "gmail": {"host": "smtp.gmail.com", "port": 587},
    "outlook": {"host": "smtp-mail.outlook.com", "port": 587},
}
SERVICE_TYPES = ["smtp", "gmail", "outlook", "sendgrid"]
SERVICE_SHAPE_ERROR = "Email service must be an object"


def parse_recipients(value: Any) -> List[str]:
    """Accept a list or a comma-separated string of addresses."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip() for item in value if str(item).strip()]


class EmailNode(ActionNode):
    """Node for sending emails via SMTP or SendGrid."""

    subtype = ActionType.EMAIL.value
    display_name = "Send Email"
    description = "Send emails via SMTP or SendGrid"
    icon = "mail"
    color = "#E64980"
    parameters = [
        NodeParameter(name="to", display_name="To", type=ParameterType.ANY, default=[]),
        NodeParameter(name="subject", display_name="Subject", type=ParameterType.STRING, default=""),
        NodeParameter(name="body", display_name="Body", type=ParameterType.STRING, default=""),
        NodeParameter(name="from", display_name="From", type=ParameterType.STRING),
        NodeParameter(name="isHtml", display_name="HTML body", type=ParameterType.BOOLEAN, default=False),
        NodeParameter(
            name="emailService.type",
            display_name="Email service",
            type=ParameterType.OPTIONS,
            default="smtp",
            options=SERVICE_TYPES,
        ),
    ]

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        errors = super().validate_config(config)

        recipients = parse_recipients(config.get("to"))
        if not recipients:
            errors.append("At least one recipient is required")
        for address in recipients:
            if not EMAIL_PATTERN.match(address):
                errors.append(f"Invalid email address: {address}")

        if not str(config.get("subject") or "").strip():
            errors.append("Subject is required")
        if not str(config.get("body") or "").strip():
            errors.append("Email body is required")

        service = config.get("emailService") or {}
        if not isinstance(service, dict):
            errors.append(SERVICE_SHAPE_ERROR)
            service = {}
        if service.get("type") == "sendgrid" and not service.get("apiKey"):
            errors.append("SendGrid API key is required")
        return errors

    def create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    def _create_message(self, to: List[str], sender: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = sender
        message["To"] = ", ".join(to)
        message["Subject"] = self.get_parameter("subject")
        message["Message-ID"] = f"<{uuid.uuid4()}@stepflow>"
        subtype = "html" if self.get_parameter("isHtml", False) else "plain"
        message.attach(MIMEText(self.get_parameter("body"), subtype, "utf-8"))
        return message

    def _smtp_config(self, service: Dict[str, Any]) -> Dict[str, Any]:
        preset = SMTP_PRESETS.get(service.get("type", "smtp"), {})
        auth = service.get("auth") or {}
        return {
            "hostname": service.get("host") or preset.get("host") or settings.smtp_host,
            "port": int(service.get("port") or preset.get("port") or settings.smtp_port),
            "username": auth.get("user") or settings.smtp_username,
            "password": auth.get("pass") or settings.smtp_password,
            "use_tls": bool(service.get("secure", False)),
            "start_tls": settings.smtp_use_tls and not service.get("secure", False),
        }

    async def _send_smtp(self, to: List[str], sender: str, service: Dict[str, Any]) -> str:
        smtp = self._smtp_config(service)
        if not smtp["hostname"]:
            raise ValueError("SMTP host is not configured")

        message = self._create_message(to, sender)
        await aiosmtplib.send(message, recipients=to, **smtp)
        return message["Message-ID"]

    async def _send_sendgrid(self, to: List[str], sender: str, service: Dict[str, Any]) -> str:
        content_type = "text/html" if self.get_parameter("isHtml", False) else "text/plain"
        payload = {
            "personalizations": [{"to": [{"email": address} for address in to]}],
            "from": {"email": sender},
            "subject": self.get_parameter("subject"),
            "content": [{"type": content_type, "value": self.get_parameter("body")}],
        }
        async with self.create_client() as client:
            response = await client.post(
                settings.sendgrid_api_url,
                json=payload,
                headers={"Authorization": f"Bearer {service['apiKey']}"},
            )
        if not response.is_success:
            raise ValueError(f"HTTP {response.status_code} {response.text}")
        return response.headers.get("x-message-id") or str(uuid.uuid4())

    async def execute(self) -> StepResult:
        to = parse_recipients(self.get_parameter("to"))
        service = self.get_parameter("emailService", {}) or {}
        if not isinstance(service, dict):
            return StepResult.fail(SERVICE_SHAPE_ERROR)
        provider = service.get("type", "smtp")
        auth = service.get("auth") or {}
        sender = self.get_parameter("from") or auth.get("user") or settings.email_from

        try:
            if provider == "sendgrid":
                message_id = await self._send_sendgrid(to, sender, service)
            else:
                message_id = await self._send_smtp(to, sender, service)
        except (aiosmtplib.SMTPException, httpx.HTTPError, ValueError, OSError) as e:
            self.logger.error("Email sending failed", provider=provider, error=str(e))
            return StepResult.fail(f"{provider} error: {e}")

        self.logger.info("Email sent", provider=provider, recipients=len(to))
        return StepResult.ok({
            "sent": True,
            "to": to,
            "subject": self.get_parameter("subject"),
            "messageId": message_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "provider": provider,
        })
