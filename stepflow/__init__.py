"""stepflow - in-process workflow execution engine.

Runs directed graphs of trigger, action and logic steps and produces a
structured execution record of what every step produced.
"""

__version__ = "0.1.0"

from stepflow.executor.data import ExecutionRecord, ExecutionStatus, StepResult
from stepflow.executor.engine import WorkflowExecutor
from stepflow.executor.registry import ExecutionRegistry, get_execution_registry
from stepflow.nodes.registry import NodeRegistry, create_default_registry, get_node_registry
from stepflow.workflows.models import Workflow, WorkflowEdge, WorkflowNode

__all__ = [
    "ExecutionRecord",
    "ExecutionRegistry",
    "ExecutionStatus",
    "NodeRegistry",
    "StepResult",
    "Workflow",
    "WorkflowEdge",
    "WorkflowExecutor",
    "WorkflowNode",
    "create_default_registry",
    "get_execution_registry",
    "get_node_registry",
]
