"""Main CLI entry point for the orchestration engine.

This module provides the command-line interface for serving the HTTP API and
inspecting, validating and running workflows.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
import pydantic
import yaml
from tabulate import tabulate

from .. import __version__
from ..config import load_settings, load_workflow_config
from ..exceptions import OrchestratorError, WorkflowValidationError
from ..execution import Orchestrator, validate_workflow_graph
from ..models import ExecutionStatus
from ..utils import setup_logging


def _build_orchestrator(ctx: click.Context) -> Orchestrator:
    settings = load_settings(ctx.obj["config_dir"])
    return Orchestrator(settings)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Configuration directory (default: ~/.mcp-orchestrator)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--log-format", type=click.Choice(["text", "json"]), default="text", help="Log output format")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write JSON logs to this file")
@click.pass_context
def main(
    ctx: click.Context,
    config_dir: Optional[Path],
    verbose: bool,
    log_format: str,
    log_file: Optional[str],
) -> None:
    """MCP Orchestrator CLI.

    Run tool calls, DAG workflows and agent swarms across registered
    servers, behind an authenticated HTTP API.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir
    ctx.obj["verbose"] = verbose
    setup_logging(level="DEBUG" if verbose else "WARNING", format_type=log_format, log_file=log_file)


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", default=8080, show_default=True, type=int, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Serve the HTTP API."""
    from aiohttp import web

    from ..api import create_app

    if not ctx.obj["verbose"]:
        setup_logging(level="INFO")

    orchestrator = _build_orchestrator(ctx)
    web.run_app(create_app(orchestrator), host=host, port=port)


@main.command()
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table", help="Output format")
@click.pass_context
def servers(ctx: click.Context, output_format: str) -> None:
    """List registered servers."""
    orchestrator = _build_orchestrator(ctx)
    configs = [orchestrator.client.get_server_config(name) for name in orchestrator.client.list_servers()]

    if output_format == "json":
        click.echo(json.dumps([c.model_dump(mode="json", by_alias=True) for c in configs if c], indent=2))
        return

    rows = []
    for config in configs:
        if config is None:
            continue
        rate_limit = f"{config.rate_limit.requests}/{config.rate_limit.window:g}s" if config.rate_limit else "-"
        rows.append([config.name, config.url or "-", f"{config.timeout:g}s", config.retries, rate_limit])

    if rows:
        click.echo(tabulate(rows, headers=["Server", "URL", "Timeout", "Retries", "Rate Limit"], tablefmt="grid"))
    else:
        click.echo("No servers registered.")


@main.command()
@click.argument("name", required=False)
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table", help="Output format")
@click.pass_context
def workflows(ctx: click.Context, name: Optional[str], output_format: str) -> None:
    """List or show registered workflows.

    If NAME is provided, show that workflow's steps.
    Otherwise, list all registered workflows.
    """
    orchestrator = _build_orchestrator(ctx)
    engine = orchestrator.workflow_engine

    if name:
        workflow = engine.get_workflow(name)
        if workflow is None:
            click.echo(f"Workflow not found: {name}", err=True)
            sys.exit(1)

        if output_format == "json":
            click.echo(workflow.model_dump_json(indent=2, by_alias=True))
            return

        click.echo(f"Workflow: {workflow.name} ({workflow.id})")
        if workflow.description:
            click.echo(f"Description: {workflow.description}")
        click.echo(f"Timeout: {workflow.timeout:g}s  Max Concurrency: {workflow.max_concurrency}")
        click.echo(f"On Error: {workflow.on_error.value}\n")
        rows = [
            [
                step.id,
                f"{step.server}:{step.tool}",
                ", ".join(step.depends_on) or "-",
                workflow.effective_policy(step).value,
            ]
            for step in workflow.steps
        ]
        click.echo(tabulate(rows, headers=["Step", "Tool", "Depends On", "On Error"], tablefmt="grid"))
        return

    items = engine.list_workflows()
    if output_format == "json":
        click.echo(
            json.dumps(
                [{"id": w.id, "name": w.name, "steps": len(w.steps), "maxConcurrency": w.max_concurrency} for w in items],
                indent=2,
            )
        )
    elif items:
        rows = [[w.id, w.name, len(w.steps), w.max_concurrency, f"{w.timeout:g}s"] for w in items]
        click.echo(tabulate(rows, headers=["ID", "Name", "Steps", "Concurrency", "Timeout"], tablefmt="grid"))
    else:
        click.echo("No workflows registered.")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(file: Path) -> None:
    """Validate a workflow YAML or JSON file."""
    try:
        workflow = load_workflow_config(file)
        validate_workflow_graph(workflow)
    except pydantic.ValidationError as e:
        click.echo(f"✗ {file}: {e.error_count()} validation error(s)", err=True)
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            click.echo(f"  - {location}: {error['msg']}", err=True)
        sys.exit(1)
    except (WorkflowValidationError, ValueError, yaml.YAMLError) as e:
        click.echo(f"✗ {file}: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Workflow '{workflow.id}' is valid ({len(workflow.steps)} steps)")


@main.command()
@click.argument("workflow_id")
@click.option("--context", "context_json", default="{}", help="Execution context as a JSON object")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for the execution")
@click.pass_context
def run(ctx: click.Context, workflow_id: str, context_json: str, timeout: Optional[float]) -> None:
    """Execute a workflow in-process and print the final execution."""
    try:
        context = json.loads(context_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--context")
    if not isinstance(context, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--context")

    async def execute() -> dict[str, Any]:
        orchestrator = _build_orchestrator(ctx)
        try:
            execution_id = await orchestrator.execute_workflow(workflow_id, context)
            try:
                execution = await orchestrator.workflow_engine.wait_for_execution(execution_id, timeout)
            except asyncio.TimeoutError:
                orchestrator.cancel_workflow_execution(execution_id)
                execution = orchestrator.get_workflow_execution(execution_id)
            return execution.model_dump(mode="json", by_alias=True)
        finally:
            await orchestrator.close()

    try:
        result = asyncio.run(execute())
    except OrchestratorError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result, indent=2))
    if result["status"] != ExecutionStatus.COMPLETED.value:
        sys.exit(1)


if __name__ == "__main__":
    main()
