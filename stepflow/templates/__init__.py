"""Built-in workflow templates."""

from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from stepflow.exceptions import NotFoundError
from stepflow.nodes.registry import NodeRegistry, get_node_registry
from stepflow.workflows.models import (
    ActionType,
    LogicType,
    NodeCategory,
    TriggerType,
    Workflow,
    WorkflowEdge,
    WorkflowNode,
)

ROW_HEIGHT = 140


class TemplateNode(BaseModel):
    """A node blueprint; ``ref`` is only meaningful inside the template."""
    ref: str
    category: NodeCategory
    subtype: str
    label: str
    config: Dict[str, Any] = Field(default_factory=dict, description="Overrides applied on top of defaults")


class TemplateEdge(BaseModel):
    source: str
    target: str
    source_handle: Optional[str] = None


class WorkflowTemplate(BaseModel):
    """Workflow template model."""
    key: str = Field(..., description="Template key")
    label: str = Field(..., description="Display name")
    description: str = Field(..., description="Template description")
    nodes: List[TemplateNode] = Field(default_factory=list)
    edges: List[TemplateEdge] = Field(default_factory=list)

    def build(
        self,
        workflow_id: Optional[str] = None,
        name: Optional[str] = None,
        node_registry: Optional[NodeRegistry] = None,
    ) -> Workflow:
        """Instantiate the template with fresh node and edge ids."""
        registry = node_registry if node_registry is not None else get_node_registry()
        ids = {node.ref: str(uuid4()) for node in self.nodes}

        nodes = []
        for row, blueprint in enumerate(self.nodes):
            definition = registry.lookup(blueprint.category, blueprint.subtype)
            config = definition.get_defaults() if definition else {}
            config.update(blueprint.config)
            nodes.append(WorkflowNode(
                id=ids[blueprint.ref],
                category=blueprint.category,
                subtype=blueprint.subtype,
                label=blueprint.label,
                config=config,
                position={"x": 0, "y": row * ROW_HEIGHT},
            ))

        edges = [
            WorkflowEdge(
                id=str(uuid4()),
                source=ids[edge.source],
                target=ids[edge.target],
                source_handle=edge.source_handle,
            )
            for edge in self.edges
        ]

        return Workflow(
            id=workflow_id or str(uuid4()),
            name=name or self.label,
            description=self.description,
            nodes=nodes,
            edges=edges,
        )


def _chain(*refs: str) -> List[TemplateEdge]:
    return [TemplateEdge(source=a, target=b) for a, b in zip(refs, refs[1:])]


TEMPLATES: Dict[str, WorkflowTemplate] = {
    template.key: template
    for template in [
        WorkflowTemplate(
            key="manual-to-http",
            label="Manual -> HTTP Request",
            description="Start manually and call an HTTP endpoint",
            nodes=[
                TemplateNode(ref="trigger", category=NodeCategory.TRIGGER,
                             subtype=TriggerType.MANUAL.value, label="Manual Trigger"),
                TemplateNode(ref="http", category=NodeCategory.ACTION,
                             subtype=ActionType.HTTP.value, label="HTTP Request",
                             config={"url": "https://httpbin.org/get"}),
            ],
            edges=_chain("trigger", "http"),
        ),
        WorkflowTemplate(
            key="webhook-to-http",
            label="Webhook -> HTTP Request",
            description="Forward an incoming webhook to an HTTP endpoint",
            nodes=[
                TemplateNode(ref="webhook", category=NodeCategory.TRIGGER,
                             subtype=TriggerType.WEBHOOK.value, label="Webhook"),
                TemplateNode(ref="http", category=NodeCategory.ACTION,
                             subtype=ActionType.HTTP.value, label="HTTP Request",
                             config={"method": "POST", "url": "https://httpbin.org/post"}),
            ],
            edges=_chain("webhook", "http"),
        ),
        WorkflowTemplate(
            key="schedule-to-email",
            label="Schedule -> Send Email",
            description="Send an email on a schedule",
            nodes=[
                TemplateNode(ref="schedule", category=NodeCategory.TRIGGER,
                             subtype=TriggerType.SCHEDULE.value, label="Schedule"),
                TemplateNode(ref="email", category=NodeCategory.ACTION,
                             subtype=ActionType.EMAIL.value, label="Send Email",
                             config={"to": ["team@example.com"], "subject": "Scheduled update",
                                     "body": "This is your scheduled update."}),
            ],
            edges=_chain("schedule", "email"),
        ),
        WorkflowTemplate(
            key="schedule-filter-email",
            label="Schedule -> Filter Active -> Email",
            description="Every morning, filter active items and email a report",
            nodes=[
                TemplateNode(ref="schedule", category=NodeCategory.TRIGGER,
                             subtype=TriggerType.SCHEDULE.value, label="Daily Report",
                             config={"cron": "0 9 * * *"}),
                TemplateNode(ref="filter", category=NodeCategory.LOGIC,
                             subtype=LogicType.FILTER.value, label="Filter Active Items",
                             config={"condition": {"field": "status", "operator": "equals",
                                                   "value": "active"}}),
                TemplateNode(ref="email", category=NodeCategory.ACTION,
                             subtype=ActionType.EMAIL.value, label="Send Report",
                             config={"to": ["reports@example.com"],
                                     "subject": "Daily Active Items Report",
                                     "body": "Active items are attached to this run's output."}),
            ],
            edges=_chain("schedule", "filter", "email"),
        ),
        WorkflowTemplate(
            key="webhook-conditional-email",
            label="Webhook -> If Priority -> Email",
            description="Receive a webhook and send email only for high priority items",
            nodes=[
                TemplateNode(ref="webhook", category=NodeCategory.TRIGGER,
                             subtype=TriggerType.WEBHOOK.value, label="Webhook"),
                TemplateNode(ref="if", category=NodeCategory.LOGIC,
                             subtype=LogicType.IF.value, label="Check Priority",
                             config={"condition": {"field": "priority", "operator": "equals",
                                                   "value": "high"}}),
                TemplateNode(ref="email", category=NodeCategory.ACTION,
                             subtype=ActionType.EMAIL.value, label="Send Alert Email",
                             config={"to": ["admin@example.com"], "subject": "High Priority Alert",
                                     "body": "A high priority item was received via webhook."}),
            ],
            edges=[
                TemplateEdge(source="webhook", target="if"),
                TemplateEdge(source="if", target="email", source_handle="true"),
            ],
        ),
    ]
}


def list_templates() -> List[WorkflowTemplate]:
    return list(TEMPLATES.values())


def get_template(key: str) -> WorkflowTemplate:
    try:
        return TEMPLATES[key]
    except KeyError:
        raise NotFoundError(f"Template not found: {key}") from None


def build_workflow(
    key: str,
    workflow_id: Optional[str] = None,
    name: Optional[str] = None,
    node_registry: Optional[NodeRegistry] = None,
) -> Workflow:
    """Build a fresh workflow from the template ``key``."""
    return get_template(key).build(workflow_id=workflow_id, name=name, node_registry=node_registry)
