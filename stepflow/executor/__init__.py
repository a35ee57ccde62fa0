"""Workflow execution engine module."""

from .data import ExecutionLogEntry, ExecutionRecord, ExecutionStatus, LogLevel, StepResult
from .errors import (
    ExecutionCancelledError,
    ExecutionConflictError,
    ExecutionError,
    ExecutionStateError,
    InvalidStartNodeError,
    NodeExecutionError,
    WorkflowExecutionError,
)

__all__ = [
    "ExecutionCancelledError",
    "ExecutionConflictError",
    "ExecutionError",
    "ExecutionLogEntry",
    "ExecutionRecord",
    "ExecutionStateError",
    "ExecutionStatus",
    "InvalidStartNodeError",
    "LogLevel",
    "NodeExecutionError",
    "StepResult",
    "WorkflowExecutionError",
]
