"""Execution data types: step results, log entries and the execution record."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import ExecutionStateError

logger = structlog.get_logger()


class ExecutionStatus(str, Enum):
    """Run status. ``RUNNING`` is the only non-terminal state."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self != ExecutionStatus.RUNNING


class LogLevel(str, Enum):
    """Severity of an execution log entry."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class StepResult(BaseModel):
    """Outcome of one node invocation."""

    success: bool = Field(..., description="Whether the node succeeded")
    output: Any = Field(None, description="Output payload")
    error: Optional[str] = Field(None, description="Error message on failure")

    @classmethod
    def ok(cls, output: Any = None) -> "StepResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str, output: Any = None) -> "StepResult":
        return cls(success=False, error=error, output=output)


class _RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExecutionLogEntry(_RecordModel):
    """A single entry in a run's log."""

    level: LogLevel = Field(..., description="Severity")
    message: str = Field(..., description="Log message")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="When it happened"
    )
    node_id: Optional[str] = Field(None, description="Node the entry belongs to")
    data: Optional[Any] = Field(None, description="Structured context")


class ExecutionRecord(_RecordModel):
    """Everything a run produced.

    The record is only mutated through ``add_log``, ``set_node_output``
    and ``finish``. All three refuse to touch a record whose status is
    terminal.
    """

    id: str = Field(default_factory=lambda: str(uuid4()), description="Run id")
    workflow_id: str = Field(..., description="Workflow id")
    status: ExecutionStatus = Field(default=ExecutionStatus.RUNNING, description="Run status")
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Start time"
    )
    completed_at: Optional[datetime] = Field(None, description="Finish time")
    error: Optional[str] = Field(None, description="Error of the step that failed the run")
    logs: List[ExecutionLogEntry] = Field(default_factory=list, description="Ordered log entries")
    node_outputs: Dict[str, Any] = Field(
        default_factory=dict, description="Output payload per executed node"
    )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_ms(self) -> Optional[int]:
        if self.completed_at is None:
            return None
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def _ensure_running(self, action: str) -> None:
        if self.is_terminal:
            raise ExecutionStateError(
                f"Cannot {action} on execution {self.id}: status is {self.status.value}"
            )

    def add_log(
        self,
        level: LogLevel,
        message: str,
        node_id: Optional[str] = None,
        data: Optional[Any] = None,
    ) -> ExecutionLogEntry:
        """Append a log entry and mirror it to the process logger."""
        self._ensure_running("add log")
        entry = ExecutionLogEntry(level=level, message=message, node_id=node_id, data=data)
        self.logs.append(entry)

        log_method = {
            LogLevel.INFO: logger.info,
            LogLevel.WARNING: logger.warning,
            LogLevel.ERROR: logger.error,
        }[level]
        log_method(message, execution_id=self.id, workflow_id=self.workflow_id, node_id=node_id)
        return entry

    def set_node_output(self, node_id: str, output: Any) -> None:
        self._ensure_running("record output")
        self.node_outputs[node_id] = output

    def finish(self, status: ExecutionStatus, error: Optional[str] = None) -> None:
        """Move the record into a terminal state."""
        self._ensure_running("finish")
        if not status.is_terminal:
            raise ExecutionStateError(f"{status.value} is not a terminal status")
        self.status = status
        self.error = error
        self.completed_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
