"""Workflow graph models."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from stepflow.exceptions import ValidationError


class NodeCategory(str, Enum):
    """Node category enumeration."""
    TRIGGER = "trigger"
    ACTION = "action"
    LOGIC = "logic"


class TriggerType(str, Enum):
    """Trigger subtypes."""
    MANUAL = "manual"
    WEBHOOK = "webhook"
    SCHEDULE = "schedule"


class ActionType(str, Enum):
    """Action subtypes."""
    HTTP = "http"
    EMAIL = "email"
    DATABASE = "database"
    TRANSFORM = "transform"
    DELAY = "delay"


class LogicType(str, Enum):
    """Logic gate subtypes."""
    IF = "if"
    FILTER = "filter"


class BranchHandle(str, Enum):
    """Source handles emitted by the if gate."""
    TRUE = "true"
    FALSE = "false"


# Editor payloads carry the subtype under a category specific key.
_EDITOR_SUBTYPE_KEYS = {
    NodeCategory.TRIGGER.value: "triggerType",
    NodeCategory.ACTION.value: "actionType",
    NodeCategory.LOGIC.value: "logicType",
}


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


class GraphModel(BaseModel):
    """Base model accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class WorkflowNode(GraphModel):
    """A single step in a workflow graph."""

    id: str = Field(..., min_length=1, description="Node id, unique within the workflow")
    category: NodeCategory = Field(..., description="Node category")
    subtype: str = Field(..., min_length=1, description="Node subtype within its category")
    config: Dict[str, Any] = Field(default_factory=dict, description="Subtype specific configuration")
    label: Optional[str] = Field(None, description="Display label")
    description: Optional[str] = Field(None, description="Node description")
    error: Optional[str] = Field(None, description="Error from the last run")
    position: Dict[str, float] = Field(
        default_factory=lambda: {"x": 0, "y": 0},
        description="Node position in the editor",
    )

    @model_validator(mode="before")
    @classmethod
    def _flatten_editor_shape(cls, data: Any) -> Any:
        """Accept the editor's ``{id, type, data: {...}}`` node layout."""
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            return data

        inner = data["data"]
        category = inner.get("nodeType") or data.get("type")
        subtype_key = _EDITOR_SUBTYPE_KEYS.get(str(category), "")
        return {
            "id": data.get("id"),
            "category": category,
            "subtype": inner.get(subtype_key) or inner.get("subtype"),
            "config": inner.get("config") or {},
            "label": inner.get("label"),
            "description": inner.get("description"),
            "error": inner.get("error"),
            "position": data.get("position") or {"x": 0, "y": 0},
        }

    @property
    def display_name(self) -> str:
        return self.label or self.id

    @property
    def type_key(self) -> str:
        return f"{self.category.value}/{self.subtype}"

    @property
    def is_trigger(self) -> bool:
        return self.category == NodeCategory.TRIGGER

    @property
    def is_if_gate(self) -> bool:
        return self.category == NodeCategory.LOGIC and self.subtype == LogicType.IF.value


class WorkflowEdge(GraphModel):
    """A directed connection between two nodes."""

    id: str = Field(..., description="Edge id")
    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")
    source_handle: Optional[str] = Field(None, description="Branch selector on the source node")
    target_handle: Optional[str] = Field(None, description="Input port on the target node")

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target


class Workflow(GraphModel):
    """A workflow graph supplied to the engine."""

    id: str = Field(..., min_length=1, description="Workflow id")
    name: str = Field(..., min_length=1, description="Workflow name")
    description: Optional[str] = Field(None, description="Workflow description")
    nodes: List[WorkflowNode] = Field(default_factory=list, description="Workflow nodes")
    edges: List[WorkflowEdge] = Field(default_factory=list, description="Workflow edges")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Variable bindings")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update time")
    is_active: bool = Field(default=True, description="Whether the workflow accepts runs")

    @field_validator("nodes")
    @classmethod
    def _unique_node_ids(cls, nodes: List[WorkflowNode]) -> List[WorkflowNode]:
        seen = set()
        for node in nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id: {node.id}")
            seen.add(node.id)
        return nodes

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Get node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_trigger_nodes(self) -> List[WorkflowNode]:
        """Get all trigger nodes."""
        return [node for node in self.nodes if node.is_trigger]


WORKFLOW_ID_PATTERN = re.compile(r"^(?!.*[_-]{2})(?![_-])(?!.*[_-]$)[a-zA-Z0-9_-]+$")

RESERVED_WORKFLOW_IDS = frozenset({
    "api", "app", "www", "admin", "root", "test", "demo", "config", "settings",
    "system", "public", "private", "static", "assets", "lib", "src", "node_modules",
    "null", "undefined", "true", "false", "new", "delete", "edit", "create",
})


def validate_workflow_id(workflow_id: Optional[str]) -> str:
    """Validate an externally supplied workflow id and return it trimmed.

    Ids are 3 to 64 characters of letters, digits, ``-`` and ``_``. They
    must start and end with a letter or digit, may not contain two
    separators in a row and may not be a reserved name.
    """
    trimmed = (workflow_id or "").strip()
    if not trimmed:
        raise ValidationError("Workflow id is required")
    if not 3 <= len(trimmed) <= 64:
        raise ValidationError("Workflow id must be between 3 and 64 characters")
    if trimmed.lower() in RESERVED_WORKFLOW_IDS:
        raise ValidationError(f"Workflow id is reserved: {trimmed}")
    if not WORKFLOW_ID_PATTERN.match(trimmed):
        raise ValidationError(f"Invalid workflow id: {trimmed}")
    return trimmed
