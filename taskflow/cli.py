"""[Layer: Presentation] Typer CLI Commands."""

import asyncio
from importlib.metadata import PackageNotFoundError, version as get_package_version
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from taskflow.core.app import TaskFlowCore
from taskflow.core.date_parser import format_date
from taskflow.errors import TaskflowError
from taskflow.models import Task

T = TypeVar("T")

LIST_VIEWS = ("inbox", "today", "tomorrow", "overdue", "completed", "all")


def _get_version() -> str:
    """Get version from package metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("taskflow-gtd")
    except PackageNotFoundError:
        return "0.0.0-dev"


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"taskflow {_get_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="taskflow",
    help="Local-first GTD task organizer with optional WebDAV/Nextcloud sync.",
    no_args_is_help=True,
)
project_app = typer.Typer(help="Manage projects.", no_args_is_help=True)
tag_app = typer.Typer(help="Manage tags.", no_args_is_help=True)
app.add_typer(project_app, name="project")
app.add_typer(tag_app, name="tag")


def _run(action: Callable[[TaskFlowCore], Awaitable[T]]) -> T:
    """Run ``action`` against a started core, mapping domain errors to exit code 1."""

    async def _main() -> T:
        core = TaskFlowCore()
        await core.start()
        try:
            return await action(core)
        finally:
            await core.close()

    try:
        return asyncio.run(_main())
    except TaskflowError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _format_task(task: Task) -> str:
    mark = "x" if task.completed else " "
    parts = [f"[{mark}] {task.title[:60]}{'...' if len(task.title) > 60 else ''}"]
    if task.due_date is not None:
        parts.append(f"(due {format_date(task.due_date)})")
    if task.status and task.status != "inbox":
        parts.append(f"@{task.status}")
    if task.priority:
        parts.append(f"!{task.priority}")
    parts.append(f"<{task.id}>")
    return " ".join(parts)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """TaskFlow command line."""


@app.command()
def add(
    title: str = typer.Argument(..., help="Task title; words like 'tomorrow' set the due date"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project id"),
    tags: Optional[str] = typer.Option(
        None, "--tags", "-t", help="Comma-separated tag names (created if missing)"
    ),
    priority: Optional[str] = typer.Option(None, "--priority", help="low, medium or high"),
) -> None:
    """Capture a task into the inbox."""

    async def _add(core: TaskFlowCore) -> Task:
        tag_ids = []
        if tags:
            for name in (n.strip() for n in tags.split(",")):
                if name:
                    tag_ids.append((await core.tags.get_or_create_by_name(name)).id)
        return await core.tasks.create_from_title(
            title, project_id=project, tag_ids=tag_ids, priority=priority
        )

    task = _run(_add)
    typer.echo(f"Captured: {_format_task(task)}")


@app.command(name="list")
def list_tasks(
    view: str = typer.Argument("inbox", help=f"One of: {', '.join(LIST_VIEWS)}"),
) -> None:
    """List tasks in a view (inbox by default)."""
    if view not in LIST_VIEWS:
        typer.echo(f"Unknown view '{view}'. Choose from: {', '.join(LIST_VIEWS)}", err=True)
        raise typer.Exit(2)

    async def _list(core: TaskFlowCore) -> list[Task]:
        return await getattr(core.tasks, view)()

    tasks = _run(_list)
    if not tasks:
        typer.echo(f"No tasks in {view}.")
        return
    typer.echo(f"\n{view.capitalize()} ({len(tasks)}):\n")
    for task in tasks:
        typer.echo(f"  {_format_task(task)}")


@app.command()
def done(task_id: str = typer.Argument(..., help="Task id")) -> None:
    """Mark a task as completed."""
    task = _run(lambda core: core.tasks.complete(task_id))
    typer.echo(f"Completed: {task.title}")


@app.command()
def undo(task_id: str = typer.Argument(..., help="Task id")) -> None:
    """Mark a completed task as open again."""
    task = _run(lambda core: core.tasks.uncomplete(task_id))
    typer.echo(f"Reopened: {task.title}")


@app.command()
def rm(task_id: str = typer.Argument(..., help="Task id")) -> None:
    """Delete a task."""
    _run(lambda core: core.tasks.delete(task_id))
    typer.echo(f"Deleted: {task_id}")


@app.command()
def archive(
    days: int = typer.Option(30, "--days", "-d", help="Age threshold in days"),
) -> None:
    """Remove completed tasks finished more than N days ago."""
    removed = _run(lambda core: core.tasks.archive_older_than(days))
    typer.echo(f"Archived {removed} completed tasks.")


@project_app.command("add")
def project_add(
    name: str = typer.Argument(..., help="Project name"),
    goal: Optional[str] = typer.Option(None, "--goal", "-g", help="Desired outcome"),
) -> None:
    """Create a project."""
    project = _run(lambda core: core.projects.create(name, goal=goal))
    typer.echo(f"Created project: {project.name} <{project.id}>")


@project_app.command("list")
def project_list(
    archived: bool = typer.Option(False, "--archived", help="Show archived projects"),
) -> None:
    """List projects with their open task counts."""

    async def _list(core: TaskFlowCore) -> list[tuple[str, str, int]]:
        projects = await (core.projects.archived() if archived else core.projects.all())
        return [(p.id, p.name, await core.projects.task_count(p.id)) for p in projects]

    rows = _run(_list)
    if not rows:
        typer.echo("No projects yet. Use 'taskflow project add <name>'.")
        return
    for project_id, name, count in rows:
        typer.echo(f"  {name} ({count} open) <{project_id}>")


@project_app.command("archive")
def project_archive(project_id: str = typer.Argument(..., help="Project id")) -> None:
    """Archive a project (its tasks stay as they are)."""
    project = _run(lambda core: core.projects.archive(project_id))
    typer.echo(f"Archived project: {project.name}")


@project_app.command("rm")
def project_rm(project_id: str = typer.Argument(..., help="Project id")) -> None:
    """Delete a project; its tasks are kept and detached."""
    _run(lambda core: core.projects.delete(project_id))
    typer.echo(f"Deleted project: {project_id}")


@tag_app.command("list")
def tag_list() -> None:
    """List tags with open task counts."""

    async def _list(core: TaskFlowCore) -> list[tuple[str, str, int]]:
        return [(t.id, t.name, await core.tags.task_count(t.id)) for t in await core.tags.all()]

    rows = _run(_list)
    if not rows:
        typer.echo("No tags yet. Add some with 'taskflow add <title> --tags a,b'.")
        return
    for tag_id, name, count in rows:
        typer.echo(f"  {name} ({count} open) <{tag_id}>")


@tag_app.command("rm")
def tag_rm(tag_id: str = typer.Argument(..., help="Tag id")) -> None:
    """Delete a tag and remove it from all tasks."""
    _run(lambda core: core.tags.delete(tag_id))
    typer.echo(f"Deleted tag: {tag_id}")


@app.command()
def export(
    out: Optional[Path] = typer.Option(
        None, "--out", "-o", help="Directory for the export file (default: settings.export_dir)"
    ),
) -> None:
    """Write a JSON snapshot of all data."""
    path = _run(lambda core: core.store.write_export_file(out or core.settings.export_dir))
    typer.echo(f"Exported to {path}")


@app.command(name="import")
def import_(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export file"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace all local data with the contents of an export file."""
    if not yes:
        typer.confirm("This replaces ALL local data. Continue?", abort=True)
    text = file.read_text(encoding="utf-8")
    _run(lambda core: core.store.import_from_text(text))
    typer.echo(f"Imported {file}")


@app.command()
def sync() -> None:
    """Synchronize with the configured WebDAV server."""
    result = _run(lambda core: core.sync.sync())
    typer.echo(result.message)
    if not result.success:
        raise typer.Exit(1)


@app.command(name="sync-setup")
def sync_setup(
    url: str = typer.Argument(..., help="Server URL, e.g. https://cloud.example.com"),
    username: str = typer.Argument(..., help="Account name"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Password or app token"
    ),
) -> None:
    """Validate and store WebDAV credentials."""
    _run(lambda core: core.sync.configure(url, username, password))
    typer.echo("WebDAV connection saved.")


@app.command(name="sync-status")
def sync_status() -> None:
    """Show the configured server and the last sync time."""

    async def _status(core: TaskFlowCore) -> tuple[Optional[dict[str, str]], int]:
        metadata = await core.store.get_sync_metadata()
        return core.sync.current_config(), metadata.last_sync_timestamp

    config, last_sync = _run(_status)
    if config is None:
        typer.echo("WebDAV sync is not configured. Run 'taskflow sync-setup'.")
        return
    typer.echo(f"Server: {config['url']}")
    typer.echo(f"User: {config['username']}")
    typer.echo(f"Last sync: {format_date(last_sync) if last_sync else 'never'}")


@app.command(name="sync-disconnect")
def sync_disconnect() -> None:
    """Forget the WebDAV server (local data is kept)."""
    _run(lambda core: core.sync.disconnect())
    typer.echo("WebDAV disconnected.")


@app.command()
def push() -> None:
    """Overwrite the server copy with local data."""
    _run(lambda core: core.sync.force_push())
    typer.echo("Local data pushed to server.")


@app.command()
def pull() -> None:
    """Overwrite local data with the server copy."""
    _run(lambda core: core.sync.force_pull())
    typer.echo("Server data pulled to this device.")


@app.command()
def version() -> None:
    """Show TaskFlow version."""
    typer.echo(f"taskflow {_get_version()}")
