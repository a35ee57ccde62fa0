"""Execution engine error classes."""

from typing import Any, Dict, Optional


class ExecutionError(Exception):
    """Base class for all execution errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class WorkflowExecutionError(ExecutionError):
    """Raised when workflow execution fails outside a single node."""

    def __init__(
        self,
        message: str,
        workflow_id: str,
        execution_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.workflow_id = workflow_id
        self.execution_id = execution_id
        self.details.update({
            "workflow_id": workflow_id,
            "execution_id": execution_id,
        })


class NodeExecutionError(ExecutionError):
    """Raised when a node reports failure.

    ``message`` is the node's own error string so it can be copied to the
    execution record unchanged.
    """

    def __init__(
        self,
        message: str,
        node_id: str,
        node_label: str,
        node_type: str,
        execution_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.node_id = node_id
        self.node_label = node_label
        self.node_type = node_type
        self.execution_id = execution_id
        self.details.update({
            "node_id": node_id,
            "node_label": node_label,
            "node_type": node_type,
            "execution_id": execution_id,
        })


class InvalidStartNodeError(WorkflowExecutionError):
    """Raised when the requested start node is not part of the workflow."""

    def __init__(self, node_id: str, workflow_id: str, **kwargs):
        super().__init__(
            f"Start node not found: {node_id}",
            workflow_id=workflow_id,
            error_code="INVALID_START_NODE",
            **kwargs
        )
        self.node_id = node_id
        self.details["node_id"] = node_id


class ExecutionCancelledError(ExecutionError):
    """Raised when execution is cancelled."""

    def __init__(self, message: str = "Execution was cancelled", **kwargs):
        super().__init__(message, error_code="CANCELLED", **kwargs)


class ExecutionConflictError(ExecutionError):
    """Raised when a workflow already has an active run."""

    def __init__(self, workflow_id: str, **kwargs):
        super().__init__(
            f"Workflow {workflow_id} already has an active execution",
            error_code="ALREADY_RUNNING",
            **kwargs
        )
        self.workflow_id = workflow_id
        self.details["workflow_id"] = workflow_id


class ExecutionStateError(ExecutionError):
    """Raised on an illegal execution state transition."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="INVALID_STATE", **kwargs)
