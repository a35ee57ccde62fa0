"""Test the registry of in-flight executions."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from stepflow.executor.errors import ExecutionConflictError
from stepflow.executor.registry import ExecutionRegistry, get_execution_registry


@pytest.mark.unit
class TestExecutionRegistry:
    """Test ExecutionRegistry."""

    def test_register_and_lookup(self, execution_registry):
        executor = Mock()
        execution_registry.register("wf-1", executor)

        assert execution_registry.get("wf-1") is executor
        assert execution_registry.is_running("wf-1")
        assert "wf-1" in execution_registry
        assert len(execution_registry) == 1
        assert execution_registry.get("wf-2") is None

    def test_second_executor_for_same_workflow_conflicts(self, execution_registry):
        execution_registry.register("wf-1", Mock())

        with pytest.raises(ExecutionConflictError) as exc_info:
            execution_registry.register("wf-1", Mock())

        assert exc_info.value.error_code == "ALREADY_RUNNING"
        assert exc_info.value.workflow_id == "wf-1"

    def test_reregistering_same_executor_is_allowed(self, execution_registry):
        executor = Mock()
        execution_registry.register("wf-1", executor)
        execution_registry.register("wf-1", executor)

        assert len(execution_registry) == 1

    def test_unregister_only_by_owner(self, execution_registry):
        owner = Mock()
        execution_registry.register("wf-1", owner)

        assert execution_registry.unregister("wf-1", Mock()) is False
        assert execution_registry.is_running("wf-1")

        assert execution_registry.unregister("wf-1", owner) is True
        assert not execution_registry.is_running("wf-1")
        assert execution_registry.unregister("wf-1") is False

    def test_unregister_without_owner(self, execution_registry):
        execution_registry.register("wf-1", Mock())

        assert execution_registry.unregister("wf-1") is True
        assert len(execution_registry) == 0

    def test_cancel_stops_active_executor(self, execution_registry):
        executor = Mock()
        execution_registry.register("wf-1", executor)

        assert execution_registry.cancel("wf-1") is True
        executor.stop.assert_called_once_with()

    def test_cancel_unknown_workflow_is_a_noop(self, execution_registry):
        assert execution_registry.cancel("missing") is False

    def test_active_ids_and_clear(self, execution_registry):
        execution_registry.register("a", Mock())
        execution_registry.register("b", Mock())

        assert sorted(execution_registry.active_workflow_ids()) == ["a", "b"]

        execution_registry.clear()
        assert execution_registry.active_workflow_ids() == []

    def test_concurrent_registration_admits_one(self):
        registry = ExecutionRegistry()

        def attempt(_):
            try:
                registry.register("wf-race", Mock())
                return True
            except ExecutionConflictError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(32)))

        assert results.count(True) == 1
        assert len(registry) == 1

    def test_default_registry_is_cached(self):
        assert get_execution_registry() is get_execution_registry()
