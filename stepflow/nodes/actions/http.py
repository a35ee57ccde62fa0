"""HTTP action node for making HTTP requests."""

import base64
import json
import time
from typing import Any, Dict, List
from urllib.parse import urlparse

import httpx

from stepflow.config import settings
from stepflow.executor.data import StepResult
from stepflow.workflows.models import ActionType
from stepflow.nodes.base import ActionNode, NodeParameter, ParameterType


HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
BODY_METHODS = {"POST", "PUT", "PATCH"}
AUTH_TYPES = ["none", "bearer", "basic", "apiKey"]


class HttpRequestNode(ActionNode):
    """Node for making HTTP requests."""

    subtype = ActionType.HTTP.value
    display_name = "HTTP Request"
    description = "Make HTTP requests to web APIs and services"
    icon = "globe"
    color = "#1C7ED6"
    parameters = [
        NodeParameter(
            name="method",
            display_name="HTTP Method",
            type=ParameterType.OPTIONS,
            required=True,
            default="GET",
            options=HTTP_METHODS,
        ),
        NodeParameter(
            name="url",
            display_name="URL",
            type=ParameterType.STRING,
            required=True,
            default="",
            description="The URL to make the request to",
        ),
        NodeParameter(name="headers", display_name="Headers", type=ParameterType.ANY, default={}),
        NodeParameter(name="body", display_name="Body", type=ParameterType.ANY),
        NodeParameter(
            name="authentication.type",
            display_name="Authentication",
            type=ParameterType.OPTIONS,
            default="none",
            options=AUTH_TYPES,
        ),
        NodeParameter(
            name="timeout",
            display_name="Timeout (seconds)",
            type=ParameterType.NUMBER,
            min_value=0.1,
        ),
    ]

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        errors = super().validate_config(config)

        url = config.get("url")
        if isinstance(url, str) and url:
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(f"Invalid URL: {url}")

        headers = config.get("headers")
        if isinstance(headers, str) and headers.strip():
            try:
                if not isinstance(json.loads(headers), dict):
                    errors.append("Headers must be a JSON object")
            except ValueError:
                errors.append("Headers must be valid JSON")
        elif headers is not None and not isinstance(headers, (dict, str)):
            errors.append("Headers must be a JSON object")

        return errors

    def create_client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def _prepare_headers(self) -> Dict[str, str]:
        """Prepare request headers."""
        headers = {"User-Agent": settings.http_user_agent}

        custom_headers = self.get_parameter("headers", {})
        if isinstance(custom_headers, str):
            custom_headers = json.loads(custom_headers) if custom_headers.strip() else {}
        headers.update({str(k): str(v) for k, v in custom_headers.items()})

        headers.update(self._prepare_authentication())
        return headers

    def _prepare_authentication(self) -> Dict[str, str]:
        """Prepare authentication headers."""
        auth = self.get_parameter("authentication", {}) or {}
        auth_type = auth.get("type", "none")

        if auth_type == "bearer" and auth.get("token"):
            return {"Authorization": f"Bearer {auth['token']}"}

        if auth_type == "basic" and auth.get("username"):
            credentials = base64.b64encode(
                f"{auth['username']}:{auth.get('password', '')}".encode()
            ).decode()
            return {"Authorization": f"Basic {credentials}"}

        if auth_type == "apiKey" and auth.get("apiKey"):
            return {auth.get("header", "X-API-Key"): auth["apiKey"]}

        return {}

    def _prepare_body(self, method: str) -> Dict[str, Any]:
        """Prepare request body for methods that carry one."""
        if method not in BODY_METHODS:
            return {}

        body = self.get_parameter("body")
        if body in (None, "") and self.input_data not in (None, {}, []):
            body = self.input_data

        if body in (None, ""):
            return {}
        if isinstance(body, str):
            try:
                return {"json": json.loads(body)}
            except ValueError:
                return {"content": body}
        return {"json": body}

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            try:
                return response.json()
            except ValueError:
                pass
        return response.text

    async def execute(self) -> StepResult:
        method = str(self.get_parameter("method", "GET")).upper()
        url = self.get_parameter("url")
        timeout = float(self.get_parameter("timeout", settings.http_timeout_seconds))

        started = time.perf_counter()
        try:
            async with self.create_client(timeout) as client:
                response = await client.request(
                    method,
                    url,
                    headers=self._prepare_headers(),
                    **self._prepare_body(method),
                )
        except httpx.TimeoutException:
            return StepResult.fail(f"Request timed out after {timeout:g}s")
        except httpx.RequestError as e:
            self.logger.warning("HTTP request failed", url=url, method=method, error=str(e))
            return StepResult.fail(f"Network error: {e}")

        output = {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "data": self._decode(response),
            "headers": dict(response.headers),
            "duration": int((time.perf_counter() - started) * 1000),
            "url": url,
            "method": method,
        }

        if not response.is_success:
            return StepResult.fail(
                f"HTTP {response.status_code}: {response.reason_phrase}", output=output
            )
        return StepResult.ok(output)
