"""Test the built-in workflow templates."""

from unittest.mock import AsyncMock, patch

import pytest

from stepflow.exceptions import NotFoundError
from stepflow.executor.data import ExecutionStatus
from stepflow.executor.engine import WorkflowExecutor
from stepflow.nodes.actions.email import EmailNode
from stepflow.templates import TEMPLATES, build_workflow, get_template, list_templates
from stepflow.workflows.validation import validate_workflow


def node_by_label(workflow, label):
    return next(node for node in workflow.nodes if node.label == label)


@pytest.mark.unit
class TestTemplateCatalog:
    """Test template lookup."""

    def test_keys(self):
        assert set(TEMPLATES) == {
            "manual-to-http",
            "webhook-to-http",
            "schedule-to-email",
            "schedule-filter-email",
            "webhook-conditional-email",
        }
        assert [t.key for t in list_templates()] == list(TEMPLATES)

    def test_unknown_template(self):
        with pytest.raises(NotFoundError, match="Template not found: nope"):
            get_template("nope")

    @pytest.mark.parametrize("key", sorted(TEMPLATES))
    def test_every_template_builds_a_valid_workflow(self, key, node_registry):
        workflow = build_workflow(key, node_registry=node_registry)

        assert validate_workflow(workflow, node_registry) == []
        assert workflow.name == TEMPLATES[key].label
        assert workflow.description == TEMPLATES[key].description
        assert len(workflow.get_trigger_nodes()) == 1


@pytest.mark.unit
class TestTemplateBuild:
    """Test instantiating templates."""

    def test_fresh_ids_each_build(self, node_registry):
        first = build_workflow("manual-to-http", node_registry=node_registry)
        second = build_workflow("manual-to-http", node_registry=node_registry)

        assert first.id != second.id
        assert {n.id for n in first.nodes}.isdisjoint({n.id for n in second.nodes})
        assert first.edges[0].id != second.edges[0].id

    def test_overrides(self, node_registry):
        workflow = build_workflow("manual-to-http", workflow_id="ping-api", name="Ping", node_registry=node_registry)

        assert workflow.id == "ping-api"
        assert workflow.name == "Ping"

    def test_defaults_are_merged_under_overrides(self, node_registry):
        workflow = build_workflow("schedule-filter-email", node_registry=node_registry)

        schedule = node_by_label(workflow, "Daily Report")
        assert schedule.config["cron"] == "0 9 * * *"
        assert "timezone" in schedule.config

        email = node_by_label(workflow, "Send Report")
        assert email.config["to"] == ["reports@example.com"]
        assert email.config["subject"] == "Daily Active Items Report"
        assert email.config["emailService"] == {"type": "smtp"}

    def test_layout_rows(self, node_registry):
        workflow = build_workflow("schedule-filter-email", node_registry=node_registry)

        assert [node.position["y"] for node in workflow.nodes] == [0, 140, 280]

    def test_conditional_email_structure(self, node_registry):
        workflow = build_workflow("webhook-conditional-email", node_registry=node_registry)

        webhook = node_by_label(workflow, "Webhook")
        gate = node_by_label(workflow, "Check Priority")
        email = node_by_label(workflow, "Send Alert Email")

        assert gate.is_if_gate
        assert gate.config["condition"] == {"field": "priority", "operator": "equals", "value": "high"}
        assert email.config["to"] == ["admin@example.com"]
        assert email.config["subject"] == "High Priority Alert"
        assert [(e.source, e.target, e.source_handle) for e in workflow.edges] == [
            (webhook.id, gate.id, None),
            (gate.id, email.id, "true"),
        ]


@pytest.mark.integration
class TestConditionalEmailRun:
    """Run the conditional email template end to end."""

    @pytest.mark.asyncio
    async def test_low_priority_skips_email(self, node_registry, execution_registry):
        workflow = build_workflow("webhook-conditional-email", node_registry=node_registry)
        email = node_by_label(workflow, "Send Alert Email")
        executor = WorkflowExecutor(workflow, node_registry=node_registry, execution_registry=execution_registry)

        with patch.object(EmailNode, "_send_smtp", new_callable=AsyncMock) as send:
            record = await executor.execute(input_data={"priority": "low"})

        assert record.status == ExecutionStatus.COMPLETED
        assert email.id not in record.node_outputs
        send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_high_priority_sends_email(self, node_registry, execution_registry):
        workflow = build_workflow("webhook-conditional-email", node_registry=node_registry)
        gate = node_by_label(workflow, "Check Priority")
        email = node_by_label(workflow, "Send Alert Email")
        executor = WorkflowExecutor(workflow, node_registry=node_registry, execution_registry=execution_registry)

        with patch.object(EmailNode, "_send_smtp", new_callable=AsyncMock, return_value="<id@x>") as send:
            record = await executor.execute(input_data={"priority": "high", "item": "server down"})

        assert record.status == ExecutionStatus.COMPLETED
        assert record.node_outputs[gate.id]["branch"] == "true"
        assert record.node_outputs[email.id]["messageId"] == "<id@x>"
        assert record.node_outputs[email.id]["to"] == ["admin@example.com"]
        send.assert_awaited_once()
