"""Test node definitions and the node registry."""

import pytest
from structlog.testing import capture_logs

from conftest import make_node_context, make_probe_node
from stepflow.exceptions import NodeRegistrationError
from stepflow.executor.data import StepResult
from stepflow.nodes.base import ActionNode, NodeDefinition, NodeParameter, ParameterType
from stepflow.nodes.registry import BUILTIN_NODES, NodeRegistry, get_node_registry
from stepflow.workflows.models import NodeCategory


@pytest.mark.unit
class TestNodeParameter:
    """Test NodeParameter validation."""

    def test_number_bounds(self):
        param = NodeParameter(name="code", type=ParameterType.NUMBER, min_value=100, max_value=599)

        assert param.validate_value(200)
        assert not param.validate_value(99)
        assert not param.validate_value(600)
        assert not param.validate_value(True)
        assert not param.validate_value("200")

    def test_options(self):
        param = NodeParameter(name="order", type=ParameterType.OPTIONS, options=["asc", "desc"])

        assert param.validate_value("asc")
        assert not param.validate_value("up")

    def test_required_none(self):
        assert not NodeParameter(name="x", type=ParameterType.STRING, required=True).validate_value(None)
        assert NodeParameter(name="x", type=ParameterType.STRING).validate_value(None)

    def test_label_falls_back_to_name(self):
        assert NodeParameter(name="url", type=ParameterType.STRING).label == "url"
        assert NodeParameter(name="url", display_name="URL", type=ParameterType.STRING).label == "URL"


@pytest.mark.unit
class TestBaseNode:
    """Test BaseNode behaviour shared by all handlers."""

    def test_validate_config_reports_required_and_types(self):
        class Sample(ActionNode):
            subtype = "sample"
            parameters = [
                NodeParameter(name="target.url", display_name="URL", type=ParameterType.STRING, required=True),
                NodeParameter(name="retries", type=ParameterType.NUMBER),
                NodeParameter(name="mode", type=ParameterType.OPTIONS, options=["a", "b"]),
            ]

            async def execute(self):
                return StepResult.ok()

        errors = Sample.validate_config({"retries": "three", "mode": "c"})

        assert errors == [
            "URL is required",
            "retries must be of type number",
            "mode must be one of: a, b",
        ]
        assert Sample.validate_config({"target": {"url": "https://x.test"}}) == []

    def test_defaults_fold_nested_parameters(self):
        class Sample(ActionNode):
            subtype = "sample"
            parameters = [
                NodeParameter(name="auth.type", type=ParameterType.STRING, default="none"),
                NodeParameter(name="auth.header", type=ParameterType.STRING, default="X-Key"),
                NodeParameter(name="limit", type=ParameterType.NUMBER, default=10),
                NodeParameter(name="optional", type=ParameterType.STRING),
            ]

            async def execute(self):
                return StepResult.ok()

        assert Sample.get_defaults() == {"auth": {"type": "none", "header": "X-Key"}, "limit": 10}

    @pytest.mark.asyncio
    async def test_run_converts_exceptions(self):
        class Exploding(ActionNode):
            subtype = "exploding"

            async def execute(self):
                raise KeyError("missing")

        result = await Exploding(make_node_context(Exploding)).run()

        assert result.success is False
        assert "missing" in result.error

    def test_definition_from_class(self):
        probe = make_probe_node()
        definition = probe.get_definition()

        assert definition.name == "Probe"
        assert definition.key == (NodeCategory.ACTION, "probe")
        assert definition.type_key == "action/probe"
        assert definition.node_class is probe
        assert definition.validate_config({}) == []
        assert definition.get_defaults() == {}


@pytest.mark.unit
class TestNodeRegistry:
    """Test NodeRegistry."""

    def test_default_registry_has_builtins(self, node_registry):
        assert len(node_registry) == len(BUILTIN_NODES) == 10
        for category, subtype in [
            ("trigger", "manual"), ("trigger", "webhook"), ("trigger", "schedule"),
            ("action", "http"), ("action", "email"), ("action", "database"),
            ("action", "transform"), ("action", "delay"),
            ("logic", "if"), ("logic", "filter"),
        ]:
            assert (category, subtype) in node_registry

    def test_lookup(self, node_registry):
        definition = node_registry.lookup(NodeCategory.LOGIC, "if")

        assert definition is not None
        assert definition.outputs == ["true", "false"]
        assert node_registry.lookup("logic", "if") is definition
        assert node_registry.lookup("logic", "switch") is None

    def test_validate_unregistered(self, node_registry):
        assert node_registry.validate("action", "teleport", {}) == [
            "No handler registered for action/teleport"
        ]

    def test_validate_delegates_to_definition(self, node_registry):
        assert node_registry.validate("action", "delay", {"delayType": "fixed", "value": 1, "unit": "seconds"}) == []
        assert node_registry.validate("action", "delay", {"delayType": "fixed", "value": 0, "unit": "seconds"}) == [
            "Value must be greater than 0"
        ]

    def test_register_rejects_incomplete_definition(self):
        registry = NodeRegistry()
        definition = NodeDefinition(
            name="Broken",
            category=NodeCategory.ACTION,
            subtype="broken",
            node_class=make_probe_node(),
        )

        with pytest.raises(NodeRegistrationError) as exc_info:
            registry.register(definition)

        assert exc_info.value.details["missing"] == ["validator", "defaults_factory"]
        assert len(registry) == 0

    def test_register_rejects_abstract_class(self):
        with pytest.raises(NodeRegistrationError):
            NodeRegistry().register_node(ActionNode)

    def test_register_rejects_non_nodes(self):
        with pytest.raises(NodeRegistrationError):
            NodeRegistry().register_node(dict)

    def test_overwrite_logs_warning(self):
        registry = NodeRegistry()
        first, second = make_probe_node(), make_probe_node()

        with capture_logs() as logs:
            registry.register_node(first)
            registry.register_node(second)

        assert registry.lookup("action", "probe").node_class is second
        warnings = [log for log in logs if log["log_level"] == "warning"]
        assert warnings[0]["event"] == "Overwriting node definition"
        assert warnings[0]["node_type"] == "action/probe"

    def test_decorator_registers(self):
        registry = NodeRegistry()

        @registry.node
        class Echo(ActionNode):
            subtype = "echo"

            async def execute(self):
                return StepResult.ok(self.input_data)

        assert ("action", "echo") in registry
        assert registry.lookup("action", "echo").node_class is Echo

    def test_unregister(self, node_registry):
        assert node_registry.unregister("action", "delay") is True
        assert node_registry.unregister("action", "delay") is False
        assert node_registry.lookup("action", "delay") is None

    def test_list_by_category(self, node_registry):
        logic = node_registry.list_definitions("logic")
        assert [d.subtype for d in logic] == ["filter", "if"]

        everything = list(node_registry)
        assert [d.category.value for d in everything] == sorted(d.category.value for d in everything)

    def test_search(self, node_registry):
        assert {d.subtype for d in node_registry.search("HTTP")} == {"http", "webhook"}
        assert {d.subtype for d in node_registry.search("cron")} == {"schedule"}

    def test_process_registry_is_cached(self):
        assert get_node_registry() is get_node_registry()

    def test_webhook_defaults(self, node_registry):
        assert node_registry.lookup("trigger", "webhook").get_defaults() == {
            "method": "POST",
            "signatureHeader": "x-webhook-signature",
            "responseMode": "async",
            "responseCode": 200,
            "enabled": True,
        }
