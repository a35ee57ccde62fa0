"""Webhook processing: turns an incoming request into a workflow run.

The transport layer (an HTTP server, a queue consumer, a test) builds a
``WebhookRequest`` and hands it to ``WebhookProcessor.process`` together
with the target workflow id. The processor looks the workflow up,
checks the request against the webhook trigger's configuration and
starts a run with the request body as the seed input.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set

import structlog

from stepflow.exceptions import (
    NotFoundError,
    WebhookError,
    WebhookMethodNotAllowedError,
    WebhookSignatureError,
)
from stepflow.executor.data import ExecutionRecord, ExecutionStatus
from stepflow.executor.engine import WorkflowExecutor
from stepflow.executor.registry import ExecutionRegistry, get_execution_registry
from stepflow.nodes.registry import NodeRegistry, get_node_registry
from stepflow.nodes.triggers import DEFAULT_SIGNATURE_HEADER, WebhookTriggerNode
from stepflow.workflows.models import TriggerType, Workflow, WorkflowNode
from .signature import verify_signature

logger = structlog.get_logger()

WorkflowLookup = Callable[[str], Optional[Workflow]]


@dataclass
class WebhookRequest:
    """Webhook request data."""
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    raw_body: bytes = b""
    query_params: Dict[str, str] = field(default_factory=dict)
    client_ip: Optional[str] = None

    def get_header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def payload_bytes(self) -> bytes:
        """Bytes the signature is computed over."""
        if self.raw_body:
            return self.raw_body
        if self.body is None:
            return b""
        if isinstance(self.body, (bytes, str)):
            return self.body.encode("utf-8") if isinstance(self.body, str) else self.body
        return json.dumps(self.body, separators=(",", ":")).encode("utf-8")


@dataclass
class WebhookResponse:
    """Webhook response data."""
    status_code: int
    body: Any
    headers: Dict[str, str] = field(default_factory=dict)
    execution: Optional[ExecutionRecord] = None

    def __post_init__(self):
        if "Content-Type" not in self.headers:
            self.headers["Content-Type"] = "application/json"


class WebhookProcessor:
    """Starts workflow runs for incoming webhook requests."""

    def __init__(
        self,
        workflow_lookup: WorkflowLookup,
        node_registry: Optional[NodeRegistry] = None,
        execution_registry: Optional[ExecutionRegistry] = None,
    ):
        self.workflow_lookup = workflow_lookup
        self.node_registry = node_registry if node_registry is not None else get_node_registry()
        self.execution_registry = (
            execution_registry if execution_registry is not None else get_execution_registry()
        )
        self._tasks: Set[asyncio.Task] = set()
        self.logger = logger.bind(component="webhook_processor")

    @staticmethod
    def find_trigger(workflow: Workflow) -> Optional[WorkflowNode]:
        """First enabled webhook trigger in ``workflow``."""
        for node in workflow.get_trigger_nodes():
            if node.subtype == TriggerType.WEBHOOK.value and node.config.get("enabled", True):
                return node
        return None

    def authenticate(self, request: WebhookRequest, config: Dict[str, Any]) -> None:
        """Raise unless the request matches the trigger's method and signature."""
        method = str(config.get("method", "POST")).upper()
        if request.method.upper() != method:
            raise WebhookMethodNotAllowedError(
                f"Method {request.method.upper()} not allowed, expected {method}",
                details={"allowed": [method]},
            )

        secret = config.get("secret")
        if secret:
            header = config.get("signatureHeader") or DEFAULT_SIGNATURE_HEADER
            signature = request.get_header(header)
            if not signature:
                raise WebhookSignatureError(f"Missing signature header: {header}")
            if not verify_signature(request.payload_bytes(), signature, secret):
                raise WebhookSignatureError("Invalid signature")

    @staticmethod
    def build_seed(request: WebhookRequest) -> Any:
        body = request.body
        if isinstance(body, (bytes, str)):
            text = body.decode("utf-8") if isinstance(body, bytes) else body
            try:
                return json.loads(text) if text.strip() else {}
            except ValueError:
                return {"body": text}
        return {} if body is None else body

    @staticmethod
    def _response_body(config: Dict[str, Any], record: ExecutionRecord) -> Any:
        body = config.get("responseBody")
        if isinstance(body, str) and body.strip():
            return json.loads(body)
        if body not in (None, ""):
            return body

        default = {
            "success": record.status == ExecutionStatus.COMPLETED,
            "executionId": record.id,
            "status": record.status.value,
        }
        if record.error:
            default["error"] = record.error
        return default

    async def process(self, workflow_id: str, request: WebhookRequest) -> WebhookResponse:
        """Validate ``request`` and start a run of ``workflow_id``."""
        workflow = self.workflow_lookup(workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow not found: {workflow_id}")
        if not workflow.is_active:
            raise WebhookError(f"Workflow is not active: {workflow_id}")

        trigger = self.find_trigger(workflow)
        if trigger is None:
            raise WebhookError(f"Workflow {workflow_id} has no enabled webhook trigger")

        config = {**WebhookTriggerNode.get_defaults(), **trigger.config}
        self.authenticate(request, config)
        seed = self.build_seed(request)

        executor = WorkflowExecutor(
            workflow,
            node_registry=self.node_registry,
            execution_registry=self.execution_registry,
        )
        self.logger.info(
            "Webhook received",
            workflow_id=workflow.id,
            trigger_id=trigger.id,
            response_mode=config.get("responseMode"),
        )

        if config.get("responseMode") == "sync":
            record = await executor.execute(start_node_id=trigger.id, input_data=seed)
            status_code = int(config.get("responseCode", 200)) \
                if record.status == ExecutionStatus.COMPLETED else 500
            return WebhookResponse(
                status_code=status_code,
                body=self._response_body(config, record),
                execution=record,
            )

        # Claimed before scheduling; execute() accepts the same executor again.
        self.execution_registry.register(workflow.id, executor)

        task = asyncio.create_task(executor.execute(start_node_id=trigger.id, input_data=seed))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        task.add_done_callback(lambda _: self.execution_registry.unregister(workflow.id, executor))
        return WebhookResponse(
            status_code=202,
            body={"success": True, "message": "Workflow execution started"},
        )

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Background execution failed to start", error=str(error))

    async def wait_for_pending(self) -> None:
        """Wait until every background run started by this processor has finished."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
