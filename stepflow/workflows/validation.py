"""Structural validation of workflow graphs."""

from typing import List, Optional

import networkx as nx

from stepflow.exceptions import WorkflowValidationError
from stepflow.nodes.registry import NodeRegistry, get_node_registry
from .models import Workflow


def build_graph(workflow: Workflow) -> nx.DiGraph:
    """Directed graph of the workflow, ignoring edges to unknown nodes."""
    graph = nx.DiGraph()
    for node in workflow.nodes:
        graph.add_node(node.id)
    for edge in workflow.edges:
        if edge.source in graph and edge.target in graph:
            graph.add_edge(edge.source, edge.target)
    return graph


def find_cycles(workflow: Workflow) -> List[List[str]]:
    """Cycles in the graph, self-loops excluded."""
    graph = build_graph(workflow)
    graph.remove_edges_from(list(nx.selfloop_edges(graph)))
    return [cycle for cycle in nx.simple_cycles(graph)]


def validate_workflow(workflow: Workflow, node_registry: Optional[NodeRegistry] = None) -> List[str]:
    """Return human readable problems with ``workflow``; empty means valid."""
    if node_registry is None:
        node_registry = get_node_registry()

    errors: List[str] = []
    node_ids = {node.id for node in workflow.nodes}

    if not workflow.get_trigger_nodes():
        errors.append("Workflow has no trigger nodes")

    for edge in workflow.edges:
        if edge.source not in node_ids:
            errors.append(f"Edge {edge.id} references missing source node {edge.source}")
        if edge.target not in node_ids:
            errors.append(f"Edge {edge.id} references missing target node {edge.target}")
        if edge.is_self_loop:
            errors.append(f"Edge {edge.id} connects node {edge.source} to itself")

    for cycle in find_cycles(workflow):
        errors.append(f"Cycle detected: {' -> '.join(cycle + cycle[:1])}")

    for node in workflow.nodes:
        for problem in node_registry.validate(node.category, node.subtype, node.config):
            errors.append(f"{node.display_name}: {problem}")

    return errors


def ensure_valid(workflow: Workflow, node_registry: Optional[NodeRegistry] = None) -> Workflow:
    """Raise ``WorkflowValidationError`` unless ``workflow`` is valid."""
    errors = validate_workflow(workflow, node_registry)
    if errors:
        raise WorkflowValidationError(errors)
    return workflow
