"""Test execution records, step results and execution errors."""

import pytest
from structlog.testing import capture_logs

from stepflow.executor.data import (
    ExecutionRecord,
    ExecutionStatus,
    LogLevel,
    StepResult,
)
from stepflow.executor.errors import (
    ExecutionCancelledError,
    ExecutionError,
    ExecutionStateError,
    InvalidStartNodeError,
    NodeExecutionError,
)


@pytest.mark.unit
class TestStepResult:
    """Test StepResult."""

    def test_ok(self):
        result = StepResult.ok({"a": 1})
        assert result.success is True
        assert result.output == {"a": 1}
        assert result.error is None

    def test_fail_keeps_output(self):
        result = StepResult.fail("HTTP 500: Internal Server Error", output={"status": 500})
        assert result.success is False
        assert result.error == "HTTP 500: Internal Server Error"
        assert result.output == {"status": 500}


@pytest.mark.unit
class TestExecutionRecord:
    """Test ExecutionRecord."""

    def test_new_record_is_running(self):
        record = ExecutionRecord(workflow_id="wf-1")

        assert record.status == ExecutionStatus.RUNNING
        assert not record.is_terminal
        assert record.id
        assert record.duration_ms is None

    def test_ids_are_unique(self):
        assert ExecutionRecord(workflow_id="wf").id != ExecutionRecord(workflow_id="wf").id

    def test_add_log_is_mirrored_to_structlog(self):
        record = ExecutionRecord(workflow_id="wf-1")

        with capture_logs() as logs:
            entry = record.add_log(LogLevel.WARNING, "Something odd", node_id="n1", data={"k": "v"})

        assert record.logs == [entry]
        assert entry.node_id == "n1"
        assert logs[0]["event"] == "Something odd"
        assert logs[0]["log_level"] == "warning"
        assert logs[0]["workflow_id"] == "wf-1"
        assert logs[0]["execution_id"] == record.id

    def test_finish_sets_terminal_state(self):
        record = ExecutionRecord(workflow_id="wf-1")
        record.set_node_output("n1", {"x": 1})

        record.finish(ExecutionStatus.FAILED, error="boom")

        assert record.status == ExecutionStatus.FAILED
        assert record.error == "boom"
        assert record.completed_at >= record.started_at
        assert record.duration_ms >= 0

    @pytest.mark.parametrize("status", [
        ExecutionStatus.COMPLETED,
        ExecutionStatus.FAILED,
        ExecutionStatus.CANCELLED,
    ])
    def test_no_transition_out_of_terminal_state(self, status):
        record = ExecutionRecord(workflow_id="wf-1")
        record.finish(status)

        with pytest.raises(ExecutionStateError):
            record.finish(ExecutionStatus.COMPLETED)
        with pytest.raises(ExecutionStateError):
            record.add_log(LogLevel.INFO, "late")
        with pytest.raises(ExecutionStateError):
            record.set_node_output("n1", None)

    def test_finish_requires_terminal_status(self):
        record = ExecutionRecord(workflow_id="wf-1")

        with pytest.raises(ExecutionStateError):
            record.finish(ExecutionStatus.RUNNING)

    def test_to_dict_uses_camel_case(self):
        record = ExecutionRecord(workflow_id="wf-1")
        record.add_log(LogLevel.INFO, "hello", node_id="n1")
        record.set_node_output("n1", {"value": 1})
        record.finish(ExecutionStatus.COMPLETED)

        data = record.to_dict()

        assert data["workflowId"] == "wf-1"
        assert data["nodeOutputs"] == {"n1": {"value": 1}}
        assert data["logs"][0]["nodeId"] == "n1"
        assert data["logs"][0]["level"] == "info"
        assert isinstance(data["completedAt"], str)


@pytest.mark.unit
class TestExecutionErrors:
    """Test execution error classes."""

    def test_base_error(self):
        error = ExecutionError("Test error", error_code="TEST", details={"key": "value"})

        assert error.to_dict() == {
            "error": "ExecutionError",
            "message": "Test error",
            "error_code": "TEST",
            "details": {"key": "value"},
        }

    def test_node_error_details(self):
        error = NodeExecutionError("boom", node_id="n2", node_label="Step 2", node_type="action/probe")

        assert str(error) == "boom"
        assert error.details["node_id"] == "n2"
        assert error.details["node_type"] == "action/probe"

    def test_invalid_start_node(self):
        error = InvalidStartNodeError("nope", workflow_id="wf-1")

        assert error.message == "Start node not found: nope"
        assert error.error_code == "INVALID_START_NODE"
        assert error.details["workflow_id"] == "wf-1"

    def test_cancelled_error_code(self):
        assert ExecutionCancelledError().error_code == "CANCELLED"

    def test_status_terminal_flags(self):
        assert not ExecutionStatus.RUNNING.is_terminal
        assert all(s.is_terminal for s in ExecutionStatus if s != ExecutionStatus.RUNNING)
