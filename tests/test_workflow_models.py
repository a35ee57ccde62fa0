"""Test workflow graph models and structural validation."""

import pydantic
import pytest

from stepflow.exceptions import ValidationError, WorkflowValidationError
from stepflow.workflows.models import NodeCategory, Workflow, WorkflowEdge, WorkflowNode, validate_workflow_id
from stepflow.workflows.validation import ensure_valid, find_cycles, validate_workflow


@pytest.mark.unit
class TestWorkflowModels:
    """Test the graph models."""

    def test_editor_node_shape_is_flattened(self):
        node = WorkflowNode.model_validate({
            "id": "n1",
            "type": "trigger",
            "position": {"x": 10, "y": 20},
            "data": {
                "label": "On webhook",
                "nodeType": "trigger",
                "triggerType": "webhook",
                "config": {"method": "POST"},
            },
        })

        assert node.category == NodeCategory.TRIGGER
        assert node.subtype == "webhook"
        assert node.label == "On webhook"
        assert node.config == {"method": "POST"}
        assert node.position == {"x": 10, "y": 20}
        assert node.is_trigger
        assert node.type_key == "trigger/webhook"

    def test_flat_node_shape(self):
        node = WorkflowNode(id="g", category="logic", subtype="if")

        assert node.is_if_gate
        assert node.display_name == "g"
        assert node.config == {}

    def test_camel_case_edges(self):
        edge = WorkflowEdge.model_validate({"id": "e1", "source": "a", "target": "b", "sourceHandle": "true"})

        assert edge.source_handle == "true"
        assert not edge.is_self_loop
        assert WorkflowEdge(id="e2", source="a", target="a").is_self_loop

    def test_workflow_from_editor_json(self):
        workflow = Workflow.model_validate({
            "id": "wf-1",
            "name": "Editor",
            "isActive": False,
            "nodes": [
                {"id": "t", "type": "trigger", "data": {"nodeType": "trigger", "triggerType": "manual"}},
                {"id": "a", "type": "action", "data": {"nodeType": "action", "actionType": "delay", "config": {"value": 1}}},
            ],
            "edges": [{"id": "e", "source": "t", "target": "a"}],
        })

        assert workflow.is_active is False
        assert [n.id for n in workflow.get_trigger_nodes()] == ["t"]
        assert workflow.get_node("a").subtype == "delay"
        assert workflow.get_node("missing") is None

    def test_duplicate_node_ids_rejected(self):
        with pytest.raises(pydantic.ValidationError, match="Duplicate node id: a"):
            Workflow(
                id="wf",
                name="Dupes",
                nodes=[
                    WorkflowNode(id="a", category="action", subtype="delay"),
                    WorkflowNode(id="a", category="action", subtype="http"),
                ],
            )

    def test_unknown_category_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            WorkflowNode(id="a", category="sensor", subtype="x")


@pytest.mark.unit
class TestWorkflowIds:
    """Test validate_workflow_id."""

    @pytest.mark.parametrize("value,expected", [
        ("order-sync", "order-sync"),
        ("  nightly_report  ", "nightly_report"),
        ("abc", "abc"),
        ("a" * 64, "a" * 64),
    ])
    def test_valid(self, value, expected):
        assert validate_workflow_id(value) == expected

    @pytest.mark.parametrize("value", [
        None,
        "",
        "ab",
        "a" * 65,
        "admin",
        "NULL",
        "-leading",
        "trailing_",
        "double--dash",
        "has space",
        "dots.here",
    ])
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            validate_workflow_id(value)


def graph(nodes, edges):
    return Workflow(
        id="wf-v",
        name="Validation",
        nodes=[WorkflowNode(**node) for node in nodes],
        edges=[WorkflowEdge(id=f"{s}->{t}", source=s, target=t) for s, t in edges],
    )


@pytest.mark.unit
class TestValidateWorkflow:
    """Test structural validation."""

    def test_valid_workflow(self, node_registry):
        workflow = graph(
            [
                {"id": "t", "category": "trigger", "subtype": "manual"},
                {"id": "d", "category": "action", "subtype": "delay",
                 "config": {"delayType": "fixed", "value": 1, "unit": "seconds"}},
            ],
            [("t", "d")],
        )

        assert validate_workflow(workflow, node_registry) == []
        assert ensure_valid(workflow, node_registry) is workflow

    def test_reports_every_problem(self, node_registry):
        workflow = graph(
            [
                {"id": "a", "category": "action", "subtype": "delay",
                 "config": {"delayType": "fixed", "value": 1, "unit": "seconds"}},
                {"id": "b", "category": "action", "subtype": "teleport", "label": "Beam"},
            ],
            [("a", "b"), ("b", "a"), ("a", "a"), ("a", "ghost")],
        )

        errors = validate_workflow(workflow, node_registry)

        assert "Workflow has no trigger nodes" in errors
        assert "Edge a->ghost references missing target node ghost" in errors
        assert "Edge a->a connects node a to itself" in errors
        assert any(e.startswith("Cycle detected: ") for e in errors)
        assert "Beam: No handler registered for action/teleport" in errors

    def test_node_config_errors_are_labelled(self, node_registry):
        workflow = graph(
            [
                {"id": "t", "category": "trigger", "subtype": "schedule", "label": "Nightly", "config": {"cron": "nope"}},
            ],
            [],
        )

        assert validate_workflow(workflow, node_registry) == ["Nightly: Cron expression must have 5 fields: nope"]

    def test_malformed_email_service_is_reported(self, node_registry):
        workflow = graph(
            [
                {"id": "t", "category": "trigger", "subtype": "manual"},
                {"id": "m", "category": "action", "subtype": "email", "label": "Notify",
                 "config": {"to": "ops@example.com", "subject": "Hi", "body": "Hello", "emailService": "smtp"}},
            ],
            [("t", "m")],
        )

        assert validate_workflow(workflow, node_registry) == ["Notify: Email service must be an object"]

    def test_find_cycles_ignores_self_loops(self):
        workflow = graph(
            [{"id": "a", "category": "action", "subtype": "delay"}, {"id": "b", "category": "action", "subtype": "delay"}],
            [("a", "a"), ("a", "b")],
        )

        assert find_cycles(workflow) == []

    def test_ensure_valid_raises(self, node_registry):
        workflow = graph([{"id": "a", "category": "action", "subtype": "delay"}], [])

        with pytest.raises(WorkflowValidationError) as exc_info:
            ensure_valid(workflow, node_registry)

        assert "Workflow has no trigger nodes" in exc_info.value.errors
        assert exc_info.value.status_code == 400
        assert exc_info.value.message.startswith("Workflow validation failed: ")
