"""Base node classes and definitions."""

import copy
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from stepflow.executor.context import NodeExecutionContext
from stepflow.executor.data import StepResult
from stepflow.workflows.models import NodeCategory
from stepflow.workflows.paths import get_value_at_path, set_value_at_path

logger = structlog.get_logger()

ConfigValidator = Callable[[Dict[str, Any]], List[str]]
DefaultsFactory = Callable[[], Dict[str, Any]]


class ParameterType(str, Enum):
    """Parameter type enumeration."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    OPTIONS = "options"
    ARRAY = "array"
    ANY = "any"


class NodeParameter(BaseModel):
    """Node parameter definition.

    ``name`` may be a dot-separated path into the node config, e.g.
    ``condition.field``.
    """
    name: str = Field(..., description="Parameter path")
    display_name: Optional[str] = Field(None, description="Parameter display name")
    type: ParameterType = Field(..., description="Parameter type")
    required: bool = Field(default=False, description="Is parameter required")
    default: Any = Field(default=None, description="Default value")
    description: Optional[str] = Field(None, description="Parameter description")

    # Type-specific attributes
    options: Optional[List[Any]] = Field(None, description="Options for OPTIONS type")
    min_value: Optional[Union[int, float]] = Field(None, description="Minimum value for NUMBER type")
    max_value: Optional[Union[int, float]] = Field(None, description="Maximum value for NUMBER type")

    @property
    def label(self) -> str:
        return self.display_name or self.name

    def validate_value(self, value: Any) -> bool:
        """Validate parameter value."""
        if value is None:
            return not self.required

        if self.type == ParameterType.STRING:
            return isinstance(value, str)

        elif self.type == ParameterType.NUMBER:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return False
            if self.min_value is not None and value < self.min_value:
                return False
            if self.max_value is not None and value > self.max_value:
                return False
            return True

        elif self.type == ParameterType.BOOLEAN:
            return isinstance(value, bool)

        elif self.type == ParameterType.JSON:
            return isinstance(value, (dict, list))

        elif self.type == ParameterType.OPTIONS:
            return value in (self.options or [])

        elif self.type == ParameterType.ARRAY:
            return isinstance(value, list)

        return True


class NodeDefinition(BaseModel):
    """Registered node type: metadata plus validator, defaults factory and handler class."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Node display name")
    category: NodeCategory = Field(..., description="Node category")
    subtype: str = Field(..., description="Node subtype")
    description: str = Field(default="", description="Node description")
    icon: Optional[str] = Field(None, description="Node icon")
    color: Optional[str] = Field(None, description="Node color")

    parameters: List[NodeParameter] = Field(default_factory=list, description="Node parameters")
    outputs: List[str] = Field(default_factory=lambda: ["main"], description="Output handles")
    version: str = Field(default="1.0", description="Node version")

    node_class: Optional[type] = Field(None, exclude=True, description="Handler class")
    validator: Optional[ConfigValidator] = Field(None, exclude=True, description="Config validator")
    defaults_factory: Optional[DefaultsFactory] = Field(
        None, exclude=True, description="Default config factory"
    )

    @property
    def key(self) -> Tuple[NodeCategory, str]:
        return (self.category, self.subtype)

    @property
    def type_key(self) -> str:
        return f"{self.category.value}/{self.subtype}"

    def get_parameter(self, name: str) -> Optional[NodeParameter]:
        """Get parameter by name."""
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """Run the validator; a validator that raises reports the error instead."""
        if not self.validator:
            return []
        try:
            return list(self.validator(config or {}))
        except Exception as e:
            logger.warning("Config validator raised", node_type=self.type_key, error=str(e))
            return [f"{e.__class__.__name__}: {e}"]

    def get_defaults(self) -> Dict[str, Any]:
        return self.defaults_factory() if self.defaults_factory else {}

    def create_node(self, context: NodeExecutionContext) -> "BaseNode":
        return self.node_class(context)


class BaseNode(ABC):
    """Base class for all nodes.

    Subclasses declare their category, subtype and parameters as class
    attributes and implement ``execute``. ``run`` wraps ``execute`` so
    that no exception ever escapes a node: anything raised is turned
    into a failed ``StepResult``.
    """

    category: ClassVar[NodeCategory]
    subtype: ClassVar[str]
    display_name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    icon: ClassVar[Optional[str]] = None
    color: ClassVar[Optional[str]] = None
    parameters: ClassVar[List[NodeParameter]] = []
    outputs: ClassVar[List[str]] = ["main"]
    version: ClassVar[str] = "1.0"

    def __init__(self, context: NodeExecutionContext):
        self.context = context
        self.logger = logger.bind(
            node_id=context.node.id,
            node_label=context.node.display_name,
            node_type=context.node.type_key,
            execution_id=context.execution_id,
        )

    @property
    def config(self) -> Dict[str, Any]:
        return self.context.config

    @property
    def input_data(self) -> Any:
        return self.context.input_data

    def get_parameter(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot path."""
        value = get_value_at_path(self.context.config, key)
        return default if value is None else value

    async def run(self) -> StepResult:
        """Run the node with lifecycle hooks."""
        try:
            await self.pre_execute()
            result = await self.execute()
            await self.post_execute(result)
            return result

        except Exception as e:
            self.logger.exception("Node raised during execution", error=str(e))
            await self.on_error(e)
            return StepResult.fail(str(e) or e.__class__.__name__)

    async def pre_execute(self) -> None:
        """Hook called before execution."""
        pass

    @abstractmethod
    async def execute(self) -> StepResult:
        """Execute the node. Must be implemented by subclasses."""
        raise NotImplementedError("Node execution not implemented")

    async def post_execute(self, result: StepResult) -> None:
        """Hook called after execution returned a result."""
        pass

    async def on_error(self, error: Exception) -> None:
        """Hook called when execution raised."""
        pass

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        """Check required parameters and parameter types."""
        errors = []
        for param in cls.parameters:
            value = get_value_at_path(config, param.name)
            if param.required and (value is None or value == ""):
                errors.append(f"{param.label} is required")
            elif value is not None and not param.validate_value(value):
                if param.type == ParameterType.OPTIONS:
                    errors.append(f"{param.label} must be one of: {', '.join(map(str, param.options or []))}")
                else:
                    errors.append(f"{param.label} must be of type {param.type.value}")
        return errors

    @classmethod
    def get_defaults(cls) -> Dict[str, Any]:
        """Build a config from parameter defaults."""
        defaults: Dict[str, Any] = {}
        for param in cls.parameters:
            if param.default is not None:
                defaults = set_value_at_path(defaults, param.name, copy.deepcopy(param.default))
        return defaults

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name=cls.display_name or cls.__name__,
            category=cls.category,
            subtype=cls.subtype,
            description=cls.description,
            icon=cls.icon,
            color=cls.color,
            parameters=list(cls.parameters),
            outputs=list(cls.outputs),
            version=cls.version,
            node_class=cls,
            validator=cls.validate_config,
            defaults_factory=cls.get_defaults,
        )


class TriggerNode(BaseNode):
    """Base class for trigger nodes."""

    category = NodeCategory.TRIGGER


class ActionNode(BaseNode):
    """Base class for action nodes."""

    category = NodeCategory.ACTION


class LogicNode(BaseNode):
    """Base class for logic gates."""

    category = NodeCategory.LOGIC
