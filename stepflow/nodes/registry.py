"""Node registry keyed by (category, subtype)."""

import inspect
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Tuple, Type, Union

import structlog

from stepflow.exceptions import NodeRegistrationError
from stepflow.workflows.models import NodeCategory
from .actions import DatabaseNode, DelayNode, EmailNode, HttpRequestNode, TransformNode
from .base import BaseNode, NodeDefinition
from .logic import FilterNode, IfNode
from .triggers import ManualTriggerNode, ScheduleTriggerNode, WebhookTriggerNode

logger = structlog.get_logger()

NodeKey = Tuple[NodeCategory, str]

BUILTIN_NODES: List[Type[BaseNode]] = [
    ManualTriggerNode,
    WebhookTriggerNode,
    ScheduleTriggerNode,
    HttpRequestNode,
    EmailNode,
    DatabaseNode,
    TransformNode,
    DelayNode,
    IfNode,
    FilterNode,
]


def make_key(category: Union[NodeCategory, str], subtype: str) -> NodeKey:
    return (NodeCategory(category), str(getattr(subtype, "value", subtype)))


class NodeRegistry:
    """In-memory table of node definitions.

    Populated once at startup. Registering a key twice replaces the
    earlier definition and logs a warning.
    """

    def __init__(self):
        self._definitions: Dict[NodeKey, NodeDefinition] = {}
        self.logger = logger.bind(component="node_registry")

    def register(self, definition: NodeDefinition) -> NodeDefinition:
        """Store ``definition`` under its (category, subtype) key."""
        missing = [
            name for name in ("validator", "defaults_factory", "node_class")
            if getattr(definition, name) is None
        ]
        if missing:
            raise NodeRegistrationError(
                f"Node definition {definition.type_key} is missing: {', '.join(missing)}",
                details={"missing": missing},
            )
        if inspect.isabstract(definition.node_class):
            raise NodeRegistrationError(
                f"Node class {definition.node_class.__name__} is abstract"
            )

        key = definition.key
        if key in self._definitions:
            self.logger.warning(
                "Overwriting node definition",
                node_type=definition.type_key,
                previous=self._definitions[key].node_class.__name__,
                replacement=definition.node_class.__name__,
            )
        self._definitions[key] = definition
        self.logger.debug("Registered node type", node_type=definition.type_key)
        return definition

    def register_node(self, node_class: Type[BaseNode]) -> NodeDefinition:
        """Register a node class through its ``get_definition``."""
        if not inspect.isclass(node_class) or not issubclass(node_class, BaseNode):
            raise NodeRegistrationError(f"{node_class!r} is not a BaseNode subclass")
        if inspect.isabstract(node_class):
            raise NodeRegistrationError(f"Node class {node_class.__name__} is abstract")
        return self.register(node_class.get_definition())

    def node(self, node_class: Type[BaseNode]) -> Type[BaseNode]:
        """Class decorator form of ``register_node``."""
        self.register_node(node_class)
        return node_class

    def unregister(self, category: Union[NodeCategory, str], subtype: str) -> bool:
        return self._definitions.pop(make_key(category, subtype), None) is not None

    def lookup(self, category: Union[NodeCategory, str], subtype: str) -> Optional[NodeDefinition]:
        """Return the definition for (category, subtype), or None."""
        return self._definitions.get(make_key(category, subtype))

    def validate(self, category: Union[NodeCategory, str], subtype: str, config: Dict) -> List[str]:
        """Run the definition's validator; an empty list means valid."""
        definition = self.lookup(category, subtype)
        if definition is None:
            return [f"No handler registered for {NodeCategory(category).value}/{subtype}"]
        return definition.validate_config(config)

    def list_definitions(self, category: Optional[Union[NodeCategory, str]] = None) -> List[NodeDefinition]:
        definitions = list(self._definitions.values())
        if category is not None:
            definitions = [d for d in definitions if d.category == NodeCategory(category)]
        return sorted(definitions, key=lambda d: (d.category.value, d.subtype))

    def search(self, query: str) -> List[NodeDefinition]:
        """Case-insensitive match on name, subtype and description."""
        needle = query.lower()
        return [
            d for d in self.list_definitions()
            if needle in d.name.lower() or needle in d.subtype.lower() or needle in d.description.lower()
        ]

    def __contains__(self, key: NodeKey) -> bool:
        return make_key(*key) in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[NodeDefinition]:
        return iter(self.list_definitions())


def create_default_registry() -> NodeRegistry:
    """A registry holding the built-in nodes."""
    registry = NodeRegistry()
    for node_class in BUILTIN_NODES:
        registry.register_node(node_class)
    return registry


@lru_cache()
def get_node_registry() -> NodeRegistry:
    """Process-wide default registry."""
    return create_default_registry()
