"""Breadth-first traversal of a workflow graph."""

import time
from collections import deque
from typing import Any, Deque, Iterator, List, Optional, Set

from stepflow.nodes.registry import NodeRegistry
from stepflow.workflows.models import WorkflowNode
from .context import ExecutionContext, NodeExecutionContext
from .data import LogLevel, StepResult
from .errors import (
    ExecutionCancelledError,
    InvalidStartNodeError,
    NodeExecutionError,
    WorkflowExecutionError,
)


class ExecutionDispatcher:
    """Walks the graph, runs each node through the registry and records outputs.

    Nodes run one at a time in breadth-first order. A node's input is the
    seed for start nodes, the single producer's output when one upstream
    node fed it, or a dict keyed by producer id (in completion order) when
    several did. The first failing node stops the walk.
    """

    def __init__(self, node_registry: NodeRegistry):
        self.node_registry = node_registry

    def resolve_start_nodes(
        self, context: ExecutionContext, start_node_id: Optional[str] = None
    ) -> List[WorkflowNode]:
        if start_node_id is not None:
            node = context.get_node(start_node_id)
            if node is None:
                raise InvalidStartNodeError(start_node_id, workflow_id=context.workflow.id)
            return [node]

        start_nodes = context.get_start_nodes()
        if not start_nodes:
            raise WorkflowExecutionError(
                "No trigger nodes found in workflow",
                workflow_id=context.workflow.id,
                execution_id=context.execution_id,
                error_code="NO_TRIGGER_NODES",
            )
        return start_nodes

    @staticmethod
    def resolve_input(context: ExecutionContext, producers: List[str], seed: Any) -> Any:
        if not producers:
            return seed
        outputs = context.record.node_outputs
        if len(producers) == 1:
            return outputs[producers[0]]
        return {producer: outputs[producer] for producer in producers}

    async def dispatch(
        self,
        context: ExecutionContext,
        start_node_id: Optional[str] = None,
        input_data: Any = None,
    ) -> None:
        """Run the graph to the end, raising on failure or cancellation."""
        record = context.record
        seed = {} if input_data is None else input_data

        start_nodes = self.resolve_start_nodes(context, start_node_id)
        queue: Deque[str] = deque(node.id for node in start_nodes)
        queued: Set[str] = set(queue)

        while queue:
            node_id = queue.popleft()
            node = context.get_node(node_id)

            if context.cancelled:
                record.add_log(LogLevel.INFO, "Workflow execution cancelled", node_id=node_id)
                raise ExecutionCancelledError()

            producers = context.get_producers(node_id)
            node_input = self.resolve_input(context, producers, seed)
            result = await self.run_node(context, node, node_input, producers)

            if not result.success:
                record.add_log(
                    LogLevel.ERROR,
                    f"Node failed: {node.display_name}",
                    node_id=node.id,
                    data={"error": result.error},
                )
                raise NodeExecutionError(
                    result.error or "Node failed",
                    node_id=node.id,
                    node_label=node.display_name,
                    node_type=node.type_key,
                    execution_id=context.execution_id,
                )

            record.set_node_output(node.id, result.output)
            context.executed_nodes.append(node.id)
            record.add_log(LogLevel.INFO, f"Node completed: {node.display_name}", node_id=node.id)

            for target_id in self.next_nodes(context, node, result):
                if target_id not in queued:
                    queue.append(target_id)
                    queued.add(target_id)

    def next_nodes(self, context: ExecutionContext, node: WorkflowNode, result: StepResult) -> Iterator[str]:
        """Targets reachable from ``node`` after it produced ``result``."""
        record = context.record
        branch = None
        if node.is_if_gate and isinstance(result.output, dict):
            branch = result.output.get("branch")

        for edge in context.get_outgoing_edges(node.id):
            if edge.is_self_loop:
                record.add_log(
                    LogLevel.WARNING,
                    f"Skipping self-loop edge {edge.id} on node {node.id}",
                    node_id=node.id,
                )
                continue

            if context.get_node(edge.target) is None:
                record.add_log(
                    LogLevel.WARNING,
                    f"Edge {edge.id} references missing node {edge.target}",
                    node_id=node.id,
                )
                continue

            if node.is_if_gate and edge.source_handle != branch:
                context.logger.debug("Branch pruned", edge_id=edge.id, branch=branch)
                continue

            if edge.target in context.executed_nodes:
                if context.has_path(edge.target, edge.source):
                    message = f"Cycle detected: {edge.source} -> {edge.target} not re-traversed"
                else:
                    message = f"Node {edge.target} already executed, {edge.source} -> {edge.target} not re-traversed"
                record.add_log(
                    LogLevel.WARNING,
                    message,
                    node_id=node.id,
                    data={"edgeId": edge.id},
                )
                continue

            context.mark_traversed(edge)
            yield edge.target

    async def run_node(
        self,
        context: ExecutionContext,
        node: WorkflowNode,
        input_data: Any,
        producers: List[str],
    ) -> StepResult:
        """Validate and run one node; never raises for node level problems."""
        context.record.add_log(
            LogLevel.INFO,
            f"Executing node: {node.display_name}",
            node_id=node.id,
            data={"type": node.type_key},
        )

        definition = self.node_registry.lookup(node.category, node.subtype)
        if definition is None:
            return StepResult.fail(f"No handler registered for {node.type_key}")

        errors = definition.validate_config(node.config)
        if errors:
            return StepResult.fail(f"Invalid configuration: {'; '.join(errors)}")

        node_context = NodeExecutionContext(
            node=node,
            workflow_id=context.workflow.id,
            execution_id=context.execution_id,
            input_data=input_data,
            previous_nodes=producers,
            metadata={"workflowName": context.workflow.name, "label": node.display_name},
        )

        started = time.perf_counter()
        result = await definition.create_node(node_context).run()
        context.logger.debug(
            "Node finished",
            node_id=node.id,
            success=result.success,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return result
