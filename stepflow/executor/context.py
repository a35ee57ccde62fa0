"""Execution context classes."""

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from stepflow.workflows.models import Workflow, WorkflowEdge, WorkflowNode
from .data import ExecutionRecord

logger = structlog.get_logger()


class NodeExecutionContext:
    """Everything a node handler may see for one invocation."""

    def __init__(
        self,
        node: WorkflowNode,
        workflow_id: str,
        execution_id: str,
        input_data: Any = None,
        previous_nodes: Optional[List[str]] = None,
        config: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.node = node
        self.workflow_id = workflow_id
        self.execution_id = execution_id
        self.input_data = input_data
        self.previous_nodes = list(previous_nodes or [])
        self.config = dict(node.config if config is None else config)
        self.metadata = metadata or {}

    @property
    def node_id(self) -> str:
        return self.node.id

    def get_parameter(self, key: str, default: Any = None) -> Any:
        """Get a top level config value."""
        value = self.config.get(key)
        return default if value is None else value


class ExecutionContext:
    """Per-run state shared by the dispatcher and the run controller."""

    def __init__(self, workflow: Workflow, record: ExecutionRecord):
        self.workflow = workflow
        self.record = record
        self.cancel_event = asyncio.Event()

        # Node tracking
        self.executed_nodes: List[str] = []
        self.traversed_edges: Dict[str, List[WorkflowEdge]] = {}

        # Workflow graph
        self.nodes_by_id: Dict[str, WorkflowNode] = {}
        self.edges_by_source: Dict[str, List[WorkflowEdge]] = {}
        self.edges_by_target: Dict[str, List[WorkflowEdge]] = {}

        self.logger = logger.bind(
            workflow_id=workflow.id,
            execution_id=record.id,
        )
        self._build_indices()

    def _build_indices(self) -> None:
        for node in self.workflow.nodes:
            self.nodes_by_id[node.id] = node

        for edge in self.workflow.edges:
            self.edges_by_source.setdefault(edge.source, []).append(edge)
            self.edges_by_target.setdefault(edge.target, []).append(edge)

    @property
    def execution_id(self) -> str:
        return self.record.id

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Get node by ID."""
        return self.nodes_by_id.get(node_id)

    def get_outgoing_edges(self, node_id: str) -> List[WorkflowEdge]:
        return self.edges_by_source.get(node_id, [])

    def get_incoming_edges(self, node_id: str) -> List[WorkflowEdge]:
        return self.edges_by_target.get(node_id, [])

    def get_start_nodes(self) -> List[WorkflowNode]:
        """Trigger nodes without an incoming edge (self-loops do not count)."""
        start_nodes = []
        for node in self.workflow.nodes:
            if not node.is_trigger:
                continue
            incoming = [e for e in self.get_incoming_edges(node.id) if not e.is_self_loop]
            if not incoming:
                start_nodes.append(node)
        return start_nodes

    def has_path(self, source_id: str, target_id: str) -> bool:
        """Whether ``target_id`` can be reached from ``source_id`` along edges."""
        seen = {source_id}
        stack = [source_id]
        while stack:
            for edge in self.get_outgoing_edges(stack.pop()):
                if edge.target == target_id:
                    return True
                if edge.target not in seen:
                    seen.add(edge.target)
                    stack.append(edge.target)
        return False

    def mark_traversed(self, edge: WorkflowEdge) -> None:
        self.traversed_edges.setdefault(edge.target, []).append(edge)

    def get_producers(self, node_id: str) -> List[str]:
        """Executed upstream nodes feeding ``node_id``, in completion order."""
        sources = {edge.source for edge in self.traversed_edges.get(node_id, [])}
        return [n for n in self.executed_nodes if n in sources]

    def cancel(self) -> None:
        """Request cancellation at the next node boundary."""
        self.cancel_event.set()
