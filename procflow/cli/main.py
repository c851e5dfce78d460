"""CLI entry point.

Provides commands for:
- validate / publish / definitions: manage workflow definitions
- init-db: create the database tables
- start / show / assign / complete / trigger: drive workflow instances
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.panel import Panel
from rich.table import Table

from procflow.cli.utils import build_engine, console, parse_params, run
from procflow.exceptions import ProcflowError

app = typer.Typer(
    name="procflow",
    help="Persisted workflow execution engine",
    add_completion=False,
    no_args_is_help=True,
)

ParamOption = Annotated[
    Optional[list[str]],  # noqa: UP007
    typer.Option("--param", "-p", help="Process parameter as key=value (repeatable)"),
]


@app.callback()
def main(
    log_level: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    ] = None,
) -> None:
    """Persisted workflow execution engine."""
    from procflow.logging_config import configure_logging

    configure_logging(log_level.upper() if log_level else None)  # type: ignore[arg-type]


def _fail(error: Exception) -> typer.Exit:
    console.print(f"[red]Error: {error}[/red]")
    return typer.Exit(code=1)


def _resolve_path(path: Path | None) -> Path:
    if path is not None:
        return path
    from procflow.settings import get_settings

    configured = get_settings().definitions_path
    if configured is None:
        console.print("[red]No PATH given and DEFINITIONS_PATH is not set[/red]")
        raise typer.Exit(code=2)
    return configured


# =============================================================================
# DEFINITIONS
# =============================================================================


@app.command()
def validate(
    path: Annotated[
        Optional[Path],  # noqa: UP007
        typer.Argument(help="YAML definition file or directory"),
    ] = None,
) -> None:
    """Build workflow definitions from YAML and print a summary."""
    from procflow.definition import YamlDefinitionLoader

    try:
        definitions = run(YamlDefinitionLoader(_resolve_path(path)).load())
    except ProcflowError as e:
        raise _fail(e) from e

    table = Table(title=f"Workflow definitions ({len(definitions)})", show_header=True)
    table.add_column("Workflow", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Name")
    table.add_column("Effective")
    table.add_column("Tasks", justify="right")
    table.add_column("Gateways", justify="right")
    table.add_column("Boundary events", justify="right")

    for definition in definitions:
        table.add_row(
            definition.workflow_id,
            str(definition.version),
            definition.name,
            definition.effective_date.isoformat(),
            str(len(definition.tasks)),
            str(len(definition.gateways)),
            str(len(definition.boundary_events)),
        )
    console.print(table)
    console.print("[green]All definitions are valid[/green]")


@app.command(name="init-db")
def init_db() -> None:
    """Create the database tables (use Alembic for managed databases)."""
    from procflow.storage import create_schema

    run(create_schema())
    console.print("[green]Database schema created[/green]")


@app.command()
def publish(
    path: Annotated[
        Optional[Path],  # noqa: UP007
        typer.Argument(help="YAML definition file or directory"),
    ] = None,
) -> None:
    """Validate YAML definitions and store them in the database."""
    try:
        results = run(_publish(_resolve_path(path)))
    except ProcflowError as e:
        raise _fail(e) from e

    for workflow_id, version, created in results:
        action = "created" if created else "updated"
        console.print(f"  {workflow_id} v{version}: [green]{action}[/green]")
    console.print(f"[green]Published {len(results)} definition(s)[/green]")


async def _publish(path: Path) -> list[tuple[str, int, bool]]:
    import yaml

    from procflow.dal import DefinitionRepository
    from procflow.definition import YamlDefinitionLoader, build_definition, parse_document
    from procflow.storage import get_committing_session

    loader = YamlDefinitionLoader(path)
    documents = []
    for file in loader.files():
        document = parse_document(yaml.safe_load(file.read_text(encoding="utf-8")) or {})
        # Build once so broken graphs never reach the database
        build_definition(document)
        documents.append(document)

    results = []
    async with get_committing_session() as session:
        repo = DefinitionRepository(session)
        for document in documents:
            _, created = await repo.save(document)
            results.append((document.workflow_id, document.version, created))
    return results


@app.command()
def definitions(
    workflow_id: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--workflow", "-w", help="Filter by workflow id"),
    ] = None,
) -> None:
    """List definitions stored in the database."""
    rows = run(_list_definitions(workflow_id))

    if not rows:
        console.print("[yellow]No definitions found. Run 'procflow publish' first.[/yellow]")
        return

    table = Table(title=f"Stored definitions ({len(rows)})", show_header=True)
    table.add_column("Workflow", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Name")
    table.add_column("Effective")
    for row in rows:
        table.add_row(*row)
    console.print(table)


async def _list_definitions(workflow_id: str | None) -> list[tuple[str, str, str, str]]:
    from procflow.dal import DefinitionRepository
    from procflow.storage import get_session

    async with get_session() as session:
        entities = await DefinitionRepository(session).list_all(workflow_id)
        # Extract data while session is active
        return [
            (e.workflow_id, str(e.version), e.name, e.effective_date.isoformat())
            for e in entities
        ]


# =============================================================================
# INSTANCES
# =============================================================================


@app.command()
def start(
    workflow_id: Annotated[str, typer.Argument(help="Workflow id to start")],
    param: ParamOption = None,
) -> None:
    """Start a new instance of the current version of a workflow."""
    parameters = parse_params(param)

    async def _start():
        engine = await build_engine()
        instance = await engine.start(workflow_id, parameters)
        return instance.instance_id, instance.version, _position(instance)

    try:
        instance_id, version, position = run(_start())
    except ProcflowError as e:
        raise _fail(e) from e

    console.print(
        Panel(
            f"Instance: [bold]{instance_id}[/bold]\n"
            f"Workflow: {workflow_id} v{version}\n"
            f"Position: {position}",
            title="Started",
            border_style="green",
        )
    )


def _position(instance) -> str:
    if instance.is_completed():
        return "[green]completed[/green]"
    return instance.active_flow_node_id


@app.command()
def show(
    instance_id: Annotated[str, typer.Argument(help="Instance id")],
) -> None:
    """Show the state of a workflow instance."""

    async def _show():
        engine = await build_engine()
        instance = await engine.find(instance_id)
        if instance.is_completed():
            return None
        rows = []
        for task in instance.definition.tasks:
            users = await instance.get_assigned_users(task.id)
            groups = await instance.get_assigned_groups(task.id)
            rows.append(
                (
                    task.id,
                    task.name,
                    task.multi_instance_type.value,
                    "yes" if instance.is_active(task.id) else "",
                    ", ".join(users),
                    ", ".join(groups),
                )
            )
        return instance.workflow_id, instance.version, instance.active_flow_node_id, rows

    try:
        state = run(_show())
    except ProcflowError as e:
        raise _fail(e) from e

    if state is None:
        console.print(f"[green]Instance {instance_id} is completed[/green]")
        return

    workflow_id, version, active, rows = state
    table = Table(
        title=f"Instance {instance_id} ({workflow_id} v{version}, active: {active})",
        show_header=True,
    )
    table.add_column("Task", style="cyan")
    table.add_column("Name")
    table.add_column("Multi-instance")
    table.add_column("Active", justify="center")
    table.add_column("Users")
    table.add_column("Groups")
    for row in rows:
        table.add_row(*row)
    console.print(table)


@app.command()
def assign(
    instance_id: Annotated[str, typer.Argument(help="Instance id")],
    task_id: Annotated[str, typer.Argument(help="Task id")],
    members: Annotated[list[str], typer.Argument(help="User ids (group ids with --group)")],
    group: Annotated[
        bool,
        typer.Option("--group", "-g", help="Assign groups instead of users"),
    ] = False,
) -> None:
    """Replace the users (or groups) assigned to a task."""

    async def _assign():
        engine = await build_engine()
        instance = await engine.find(instance_id)
        if group:
            await instance.assign_groups(task_id, members)
        else:
            await instance.assign_users(task_id, members)

    try:
        run(_assign())
    except ProcflowError as e:
        raise _fail(e) from e

    kind = "groups" if group else "users"
    console.print(f"[green]Assigned {kind} {', '.join(members)} to {task_id}[/green]")


@app.command()
def complete(
    instance_id: Annotated[str, typer.Argument(help="Instance id")],
    user: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--user", "-u", help="Completing user"),
    ] = None,
    group: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--group", "-g", help="Completing group"),
    ] = None,
    param: ParamOption = None,
) -> None:
    """Complete the active task as a user or a group."""
    if (user is None) == (group is None):
        console.print("[red]Specify exactly one of --user or --group[/red]")
        raise typer.Exit(code=2)
    parameters = parse_params(param)

    async def _complete():
        engine = await build_engine()
        instance = await engine.find(instance_id)
        if group is not None:
            await instance.complete_group_task(group, parameters)
        else:
            await instance.complete_user_task(parameters, user=user)
        return _position(instance)

    try:
        position = run(_complete())
    except ProcflowError as e:
        raise _fail(e) from e

    console.print(f"Instance {instance_id}: {position}")


@app.command()
def trigger(
    instance_id: Annotated[str, typer.Argument(help="Instance id")],
    trigger_id: Annotated[str, typer.Argument(help="Boundary event trigger id")],
    param: ParamOption = None,
) -> None:
    """Fire a boundary event trigger on the active task."""
    parameters = parse_params(param)

    async def _trigger():
        engine = await build_engine()
        instance = await engine.find(instance_id)
        await instance.trigger_event(trigger_id, parameters)
        return _position(instance)

    try:
        position = run(_trigger())
    except ProcflowError as e:
        raise _fail(e) from e

    console.print(f"Instance {instance_id}: {position}")


if __name__ == "__main__":
    app()
