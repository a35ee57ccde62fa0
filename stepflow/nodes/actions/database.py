"""Database action node for SQL operations."""

import re
import time
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from stepflow.config import settings
from stepflow.executor.data import StepResult
from stepflow.workflows.models import ActionType
from stepflow.nodes.base import ActionNode, NodeParameter, ParameterType


OPERATIONS = ["select", "insert", "update", "delete"]
BIND_PARAM = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")


class DatabaseNode(ActionNode):
    """Run one SQL statement through SQLAlchemy's async engine."""

    subtype = ActionType.DATABASE.value
    display_name = "Database Query"
    description = "Execute SQL queries against a database"
    icon = "database"
    color = "#5C7CFA"
    parameters = [
        NodeParameter(
            name="operation",
            display_name="Operation",
            type=ParameterType.STRING,
            required=True,
            default="select",
        ),
        NodeParameter(name="query", display_name="Query", type=ParameterType.STRING, default=""),
        NodeParameter(name="parameters", display_name="Parameters", type=ParameterType.JSON),
        NodeParameter(
            name="connectionString",
            display_name="Connection string",
            type=ParameterType.STRING,
            description="SQLAlchemy async URL, e.g. postgresql+asyncpg://...",
        ),
        NodeParameter(
            name="credentialId",
            display_name="Credential",
            type=ParameterType.STRING,
            description="Name of a connection configured in settings",
        ),
    ]

    @classmethod
    def validate_config(cls, config: Dict[str, Any]) -> List[str]:
        errors = super().validate_config(config)

        operation = config.get("operation")
        if operation and operation not in OPERATIONS:
            errors.append(f"Unsupported operation: {operation}")

        if not str(config.get("query") or "").strip():
            errors.append("SQL query is required")

        credential_id = config.get("credentialId")
        if not config.get("connectionString") and not credential_id:
            errors.append("Either connectionString or credentialId is required")
        elif credential_id and not config.get("connectionString") \
                and credential_id not in settings.database_connections:
            errors.append(f"Unknown credential: {credential_id}")
        return errors

    def resolve_url(self) -> Optional[str]:
        url = self.get_parameter("connectionString")
        if url:
            return url
        return settings.database_connections.get(self.get_parameter("credentialId"))

    def resolve_parameters(self, query: str) -> Dict[str, Any]:
        """Bind values named in the query, from config or from a dict input."""
        values = self.get_parameter("parameters")
        if values is None and isinstance(self.input_data, dict):
            values = self.input_data
        if not isinstance(values, dict):
            values = {}
        names = set(BIND_PARAM.findall(query))
        return {name: values.get(name) for name in names}

    async def execute(self) -> StepResult:
        operation = self.get_parameter("operation", "select")
        query = self.get_parameter("query")
        url = self.resolve_url()
        if not url:
            return StepResult.fail(f"Unknown credential: {self.get_parameter('credentialId')}")

        started = time.perf_counter()
        rows: List[Dict[str, Any]] = []
        affected = 0
        try:
            engine = create_async_engine(url)
            try:
                async with engine.begin() as conn:
                    result = await conn.execute(text(query), self.resolve_parameters(query))
                    if result.returns_rows:
                        rows = [dict(row._mapping) for row in result]
                    else:
                        affected = max(result.rowcount, 0)
            finally:
                await engine.dispose()
        except SQLAlchemyError as e:
            self.logger.error("Database query failed", operation=operation, error=str(e))
            return StepResult.fail(f"Database error: {e}")

        return StepResult.ok({
            "operation": operation,
            "rows": rows,
            "rowCount": len(rows),
            "affectedRows": affected,
            "duration": int((time.perf_counter() - started) * 1000),
        })
