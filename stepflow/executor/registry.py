"""Registry of in-flight executions, keyed by workflow id."""

from functools import lru_cache
from threading import RLock
from typing import TYPE_CHECKING, Dict, List, Optional

import structlog

from .errors import ExecutionConflictError

if TYPE_CHECKING:
    from .engine import WorkflowExecutor

logger = structlog.get_logger()


class ExecutionRegistry:
    """Maps a workflow id to the executor currently running it.

    At most one executor per workflow id. Registration is
    insert-if-absent under a lock so two runs of the same workflow
    cannot both claim the slot.
    """

    def __init__(self):
        self._executors: Dict[str, "WorkflowExecutor"] = {}
        self._lock = RLock()
        self.logger = logger.bind(component="execution_registry")

    def register(self, workflow_id: str, executor: "WorkflowExecutor") -> None:
        """Claim the slot for ``workflow_id`` or raise ``ExecutionConflictError``."""
        with self._lock:
            current = self._executors.get(workflow_id)
            if current is not None and current is not executor:
                raise ExecutionConflictError(workflow_id)
            self._executors[workflow_id] = executor

        self.logger.debug("Execution registered", workflow_id=workflow_id)

    def unregister(self, workflow_id: str, executor: Optional["WorkflowExecutor"] = None) -> bool:
        """Release the slot. With ``executor`` given, only if it still owns it."""
        with self._lock:
            current = self._executors.get(workflow_id)
            if current is None or (executor is not None and current is not executor):
                return False
            del self._executors[workflow_id]

        self.logger.debug("Execution unregistered", workflow_id=workflow_id)
        return True

    def get(self, workflow_id: str) -> Optional["WorkflowExecutor"]:
        with self._lock:
            return self._executors.get(workflow_id)

    def is_running(self, workflow_id: str) -> bool:
        return self.get(workflow_id) is not None

    def cancel(self, workflow_id: str) -> bool:
        """Ask the active run of ``workflow_id`` to stop.

        Returns False, without raising, when nothing is running.
        """
        executor = self.get(workflow_id)
        if executor is None:
            self.logger.debug("No active execution to cancel", workflow_id=workflow_id)
            return False

        executor.stop()
        self.logger.info("Cancellation requested", workflow_id=workflow_id)
        return True

    def active_workflow_ids(self) -> List[str]:
        with self._lock:
            return list(self._executors)

    def clear(self) -> None:
        with self._lock:
            self._executors.clear()

    def __contains__(self, workflow_id: str) -> bool:
        return self.is_running(workflow_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._executors)


@lru_cache()
def get_execution_registry() -> ExecutionRegistry:
    """Process-wide default registry."""
    return ExecutionRegistry()
