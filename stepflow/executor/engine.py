"""Run controller: owns the lifecycle of one workflow execution."""

from typing import Any, Optional

import structlog

from stepflow.nodes.registry import NodeRegistry, get_node_registry
from stepflow.workflows.models import Workflow
from .context import ExecutionContext
from .data import ExecutionRecord, ExecutionStatus, LogLevel
from .dispatcher import ExecutionDispatcher
from .errors import ExecutionCancelledError, ExecutionError, ExecutionStateError
from .registry import ExecutionRegistry, get_execution_registry

logger = structlog.get_logger()


class WorkflowExecutor:
    """Executes one workflow run.

    Each instance runs at most once. While running it is registered in
    the execution registry under the workflow id so that ``cancel`` calls
    from elsewhere can reach it.
    """

    def __init__(
        self,
        workflow: Workflow,
        node_registry: Optional[NodeRegistry] = None,
        execution_registry: Optional[ExecutionRegistry] = None,
    ):
        self.workflow = workflow
        self.node_registry = node_registry if node_registry is not None else get_node_registry()
        self.execution_registry = (
            execution_registry if execution_registry is not None else get_execution_registry()
        )
        self.dispatcher = ExecutionDispatcher(self.node_registry)

        self._context: Optional[ExecutionContext] = None
        self._stop_requested = False
        self.logger = logger.bind(component="executor", workflow_id=workflow.id)

    @property
    def record(self) -> Optional[ExecutionRecord]:
        return self._context.record if self._context else None

    @property
    def status(self) -> Optional[ExecutionStatus]:
        return self.record.status if self.record else None

    @property
    def is_running(self) -> bool:
        return self.status == ExecutionStatus.RUNNING

    def stop(self) -> None:
        """Request cancellation; honoured before the next node starts."""
        self._stop_requested = True
        if self._context is not None:
            self._context.cancel()
        self.logger.info("Stop requested")

    async def execute(
        self,
        start_node_id: Optional[str] = None,
        input_data: Any = None,
    ) -> ExecutionRecord:
        """Run the workflow and return its finished execution record.

        ``start_node_id`` starts the walk at that node instead of at the
        trigger nodes without incoming edges. ``input_data`` is the seed
        handed to the start node(s).
        """
        if self._context is not None:
            raise ExecutionStateError("This executor has already been started")

        self.execution_registry.register(self.workflow.id, self)
        try:
            context = ExecutionContext(self.workflow, ExecutionRecord(workflow_id=self.workflow.id))
            self._context = context
            if self._stop_requested:
                context.cancel()

            await self._run(context, start_node_id, input_data)
            return context.record
        finally:
            self.execution_registry.unregister(self.workflow.id, self)

    async def _run(self, context: ExecutionContext, start_node_id: Optional[str], input_data: Any) -> None:
        record = context.record
        record.add_log(
            LogLevel.INFO,
            f"Starting workflow: {self.workflow.name}",
            data={"startNodeId": start_node_id} if start_node_id else None,
        )

        try:
            await self.dispatcher.dispatch(context, start_node_id=start_node_id, input_data=input_data)

        except ExecutionCancelledError:
            record.finish(ExecutionStatus.CANCELLED)

        except ExecutionError as e:
            record.add_log(LogLevel.ERROR, f"Workflow failed: {e.message}", data=e.to_dict())
            record.finish(ExecutionStatus.FAILED, error=e.message)

        except Exception as e:
            context.logger.exception("Unexpected error during execution", error=str(e))
            message = str(e) or e.__class__.__name__
            record.add_log(LogLevel.ERROR, f"Workflow failed: {message}")
            record.finish(ExecutionStatus.FAILED, error=message)

        else:
            record.add_log(LogLevel.INFO, "Workflow completed successfully")
            record.finish(ExecutionStatus.COMPLETED)

        context.logger.info(
            "Workflow execution finished",
            status=record.status.value,
            nodes_executed=len(record.node_outputs),
            duration_ms=record.duration_ms,
        )
