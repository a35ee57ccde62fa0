"""Command line interface for stepflow."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import pydantic
import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stepflow.config import settings
from stepflow.exceptions import StepflowException
from stepflow.executor.data import ExecutionStatus, LogLevel
from stepflow.executor.engine import WorkflowExecutor
from stepflow.nodes.registry import get_node_registry
from stepflow.templates import build_workflow, list_templates
from stepflow.workflows.models import NodeCategory, Workflow
from stepflow.workflows.validation import validate_workflow

app = typer.Typer(
    name="stepflow",
    help="stepflow - run node based workflows from the command line",
    add_completion=False,
)

console = Console()

LEVEL_STYLES = {
    LogLevel.INFO: "green",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
}

STATUS_STYLES = {
    ExecutionStatus.COMPLETED: "green",
    ExecutionStatus.FAILED: "red",
    ExecutionStatus.CANCELLED: "yellow",
    ExecutionStatus.RUNNING: "blue",
}


def setup_logging(level: Optional[str] = None) -> None:
    """Setup structured logging."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=(level or settings.log_level).upper(),
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.is_production else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    setup_logging(log_level)


def fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=1)


def load_workflow(path: Path) -> Workflow:
    """Read a workflow JSON document, exiting with code 1 when it is unusable."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        fail(f"Workflow file not found: {path}")
    except ValueError as e:
        fail(f"Invalid JSON in {path}: {e}")

    try:
        return Workflow.model_validate(document)
    except pydantic.ValidationError as e:
        fail(f"Invalid workflow document: {e}")


def parse_input(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise typer.BadParameter(f"--input must be JSON: {e}") from None


@app.command("run")
def run_workflow(
    workflow_file: Path = typer.Argument(..., help="Workflow JSON file"),
    start_node: Optional[str] = typer.Option(None, "--start-node", "-s", help="Node to start from"),
    input_json: Optional[str] = typer.Option(None, "--input", "-i", help="Seed input as JSON"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw execution record"),
):
    """Execute a workflow once and show its log."""
    workflow = load_workflow(workflow_file)
    seed = parse_input(input_json)

    executor = WorkflowExecutor(workflow)
    try:
        record = asyncio.run(executor.execute(start_node_id=start_node, input_data=seed))
    except StepflowException as e:
        fail(e.message)
    except Exception as e:
        fail(f"Execution could not start: {e}")

    if as_json:
        console.print_json(json.dumps(record.to_dict()))
    else:
        log_table = Table(title=f"Execution {record.id}")
        log_table.add_column("Time", style="dim")
        log_table.add_column("Level")
        log_table.add_column("Node", style="cyan")
        log_table.add_column("Message")
        for entry in record.logs:
            style = LEVEL_STYLES[entry.level]
            log_table.add_row(
                entry.timestamp.strftime("%H:%M:%S.%f")[:-3],
                f"[{style}]{entry.level.value}[/{style}]",
                entry.node_id or "",
                entry.message,
            )
        console.print(log_table)

        for node_id, output in record.node_outputs.items():
            node = workflow.get_node(node_id)
            title = node.display_name if node else node_id
            console.print(Panel(json.dumps(output, indent=2, default=str), title=title, border_style="blue"))

        style = STATUS_STYLES[record.status]
        summary = f"Status: [{style}]{record.status.value}[/{style}]"
        if record.error:
            summary += f"\nError: {record.error}"
        if record.duration_ms is not None:
            summary += f"\nDuration: {record.duration_ms} ms"
        console.print(Panel(summary, title=workflow.name, border_style=style))

    if record.status != ExecutionStatus.COMPLETED:
        raise typer.Exit(code=1)


@app.command("validate")
def validate(
    workflow_file: Path = typer.Argument(..., help="Workflow JSON file"),
):
    """Check a workflow for structural problems."""
    workflow = load_workflow(workflow_file)
    errors = validate_workflow(workflow)
    if not errors:
        console.print(f"[green]Workflow '{workflow.name}' is valid[/green]")
        return

    console.print(f"[red]Workflow '{workflow.name}' has {len(errors)} problem(s):[/red]")
    for error in errors:
        console.print(f"  - {error}")
    raise typer.Exit(code=1)


@app.command("nodes")
def list_nodes(
    category: Optional[NodeCategory] = typer.Option(None, "--category", "-c", help="Only this category"),
):
    """List registered node types."""
    table = Table(title="Registered Nodes")
    table.add_column("Type", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Parameters")
    table.add_column("Description", style="dim")

    for definition in get_node_registry().list_definitions(category):
        table.add_row(
            definition.type_key,
            definition.name,
            ", ".join(p.name for p in definition.parameters),
            definition.description,
        )
    console.print(table)


@app.command("templates")
def show_templates():
    """List built-in workflow templates."""
    table = Table(title="Workflow Templates")
    table.add_column("Key", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Description", style="dim")
    for template in list_templates():
        table.add_row(template.key, template.label, template.description)
    console.print(table)


@app.command("template")
def create_from_template(
    key: str = typer.Argument(..., help="Template key"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the workflow here"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Workflow name"),
):
    """Build a workflow from a template."""
    try:
        workflow = build_workflow(key, name=name)
    except StepflowException as e:
        fail(e.message)

    document = json.dumps(workflow.model_dump(mode="json", by_alias=True), indent=2)
    if output is None:
        console.print_json(document)
        return

    output.write_text(document + "\n", encoding="utf-8")
    console.print(f"[green]Wrote workflow '{workflow.name}' to {output}[/green]")


@app.command("version")
def version():
    """Show version information."""
    version_info = f"""
{settings.app_name} v{settings.app_version}

Environment: {settings.environment}
Python: {sys.version}
"""
    console.print(
        Panel(
            version_info.strip(),
            title="Version Information",
            border_style="green",
        )
    )


@app.command("config")
def show_config():
    """Show current configuration."""
    config_table = Table(title="stepflow Configuration")

    config_table.add_column("Setting", style="cyan")
    config_table.add_column("Value", style="green")

    config_items = [
        ("App Name", settings.app_name),
        ("Version", settings.app_version),
        ("Environment", settings.environment),
        ("Debug", str(settings.debug)),
        ("Log Level", settings.log_level),
        ("Webhook Base URL", settings.webhook_base_url),
        ("HTTP Timeout", f"{settings.http_timeout_seconds}s"),
        ("SMTP Host", settings.smtp_host or "-"),
        ("Email From", settings.email_from),
        ("Database Connections", ", ".join(sorted(settings.database_connections)) or "-"),
        ("Max Delay", f"{settings.max_delay_seconds}s"),
        ("Default Timezone", settings.default_timezone),
    ]

    for setting, value in config_items:
        config_table.add_row(setting, value)

    console.print(config_table)


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
