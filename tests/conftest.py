"""Pytest configuration and fixtures."""

from typing import Any, Dict, List, Optional, Type

import pytest

from stepflow.executor.context import NodeExecutionContext
from stepflow.executor.data import StepResult
from stepflow.executor.registry import ExecutionRegistry
from stepflow.nodes.base import ActionNode, BaseNode
from stepflow.nodes.registry import NodeRegistry, create_default_registry
from stepflow.workflows.models import NodeCategory, Workflow, WorkflowEdge, WorkflowNode


def make_probe_node() -> Type[BaseNode]:
    """A fresh ``action/probe`` node class that records every invocation.

    ``hooks`` maps node ids to callables run inside ``execute``; a hook
    returning a ``StepResult`` replaces the default output.
    """

    class ProbeNode(ActionNode):
        subtype = "probe"
        display_name = "Probe"
        description = "Records calls for tests"
        calls: List[str] = []
        inputs: Dict[str, Any] = {}
        hooks: Dict[str, Any] = {}

        async def execute(self) -> StepResult:
            node_id = self.context.node_id
            type(self).calls.append(node_id)
            type(self).inputs[node_id] = self.input_data

            hook = type(self).hooks.get(node_id)
            if hook is not None:
                outcome = hook(self)
                if isinstance(outcome, StepResult):
                    return outcome
            return StepResult.ok({"node": node_id, "input": self.input_data})

    return ProbeNode


class WorkflowFactory:
    """Helpers for building workflow graphs in tests."""

    @staticmethod
    def node(
        node_id: str,
        category: str = "action",
        subtype: str = "probe",
        config: Optional[Dict[str, Any]] = None,
        label: Optional[str] = None,
    ) -> WorkflowNode:
        return WorkflowNode(
            id=node_id,
            category=NodeCategory(category),
            subtype=subtype,
            config=config or {},
            label=label,
        )

    @staticmethod
    def trigger(node_id: str = "trigger", subtype: str = "manual", config: Optional[Dict[str, Any]] = None) -> WorkflowNode:
        return WorkflowFactory.node(node_id, category="trigger", subtype=subtype, config=config)

    @staticmethod
    def edge(source: str, target: str, source_handle: Optional[str] = None) -> WorkflowEdge:
        handle = f"-{source_handle}" if source_handle else ""
        return WorkflowEdge(
            id=f"e-{source}-{target}{handle}",
            source=source,
            target=target,
            source_handle=source_handle,
        )

    @staticmethod
    def build(
        nodes: List[WorkflowNode],
        edges: Optional[List[WorkflowEdge]] = None,
        workflow_id: str = "wf-test",
        name: str = "Test Workflow",
    ) -> Workflow:
        return Workflow(id=workflow_id, name=name, nodes=nodes, edges=edges or [])

    @classmethod
    def linear(cls, count: int, workflow_id: str = "wf-linear") -> Workflow:
        """``n1`` (manual trigger) -> ``n2`` -> ... -> ``n<count>`` (probes)."""
        nodes = [cls.trigger("n1")] + [cls.node(f"n{i}") for i in range(2, count + 1)]
        edges = [cls.edge(f"n{i}", f"n{i + 1}") for i in range(1, count)]
        return cls.build(nodes, edges, workflow_id=workflow_id)


def make_node_context(
    node_class: Type[BaseNode],
    config: Optional[Dict[str, Any]] = None,
    input_data: Any = None,
    node_id: str = "node-1",
    workflow_id: str = "wf-1",
) -> NodeExecutionContext:
    """Context for invoking a node class directly."""
    node = WorkflowNode(
        id=node_id,
        category=node_class.category,
        subtype=node_class.subtype,
        config=config or {},
    )
    return NodeExecutionContext(
        node=node,
        workflow_id=workflow_id,
        execution_id="exec-1",
        input_data=input_data,
    )


async def run_node(node_class: Type[BaseNode], config: Optional[Dict[str, Any]] = None, input_data: Any = None) -> StepResult:
    return await node_class(make_node_context(node_class, config, input_data)).run()


@pytest.fixture
def node_registry() -> NodeRegistry:
    """Registry holding the built-in nodes."""
    return create_default_registry()


@pytest.fixture
def execution_registry() -> ExecutionRegistry:
    """Empty execution registry."""
    return ExecutionRegistry()


@pytest.fixture
def probe_node(node_registry):
    """Probe node class registered in ``node_registry``."""
    probe = make_probe_node()
    node_registry.register_node(probe)
    return probe


@pytest.fixture
def workflow_factory():
    return WorkflowFactory
