# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Hive command line interface.

Every command except ``server`` works directly against the local SQLite
database, so no server needs to be running.
"""
import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, TypeVar

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from hive.build.checkpoint import CheckpointAction, CheckpointDecision, CheckpointReview
from hive.build.models import FileAction, FileChange, StepOutcome
from hive.build.rollback import RevertResult
from hive.build.service import BuildService
from hive.build.summary import PhaseSummary, TaskRef
from hive.config import HiveConfig, load_architecture, load_config
from hive.core.exceptions import ConfigurationError, HiveError
from hive.core.types import Architecture, Project
from hive.logging import configure_logging
from hive.server.cli import server_app
from hive.server.database import BuildPlanRepository, Database, ProjectRepository


T = TypeVar("T")

console = Console()

app = typer.Typer(help="Hive build plan orchestrator CLI")
app.add_typer(server_app, name="server")

project_app = typer.Typer(name="project", help="Project and architecture commands.")
app.add_typer(project_app, name="project")


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a Hive YAML config file."),
    ] = None,
) -> None:
    """
    Hive: build plan orchestration for agent-driven projects.
    """
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ConfigurationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    configure_logging(config.log_level)
    ctx.obj = config


@asynccontextmanager
async def _open(config: HiveConfig) -> AsyncIterator[tuple[BuildService, ProjectRepository]]:
    """Open the local database and wire the build service to it."""
    async with Database(config.database_path) as db:
        await db.ensure_schema()
        projects = ProjectRepository(db)
        service = BuildService(
            projects=projects,
            plans=BuildPlanRepository(db),
            checkpoint_every_phase=config.checkpoint_every_phase,
        )
        yield service, projects


def _run(
    ctx: typer.Context,
    operation: Callable[[BuildService, ProjectRepository], Awaitable[T]],
) -> T:
    """Run an async operation against the local database.

    Domain errors are printed and turned into exit code 1.

    Raises:
        typer.Exit: If the operation raises a Hive or validation error.
    """
    config: HiveConfig = ctx.obj

    async def _go() -> T:
        async with _open(config) as (service, projects):
            return await operation(service, projects)

    try:
        return asyncio.run(_go())
    except (HiveError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def _load_architecture_file(path: Path) -> Architecture:
    try:
        return load_architecture(path)
    except (FileNotFoundError, ConfigurationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def _print_phases(phases: list[PhaseSummary]) -> None:
    table = Table(title="Build Phases", show_header=True)
    table.add_column("Phase", style="cyan", no_wrap=True)
    table.add_column("Builds", style="magenta")
    table.add_column("Status", style="yellow")
    table.add_column("Tasks", style="green", justify="right")
    table.add_column("Checkpoint", style="blue")
    for phase in phases:
        table.add_row(
            phase.name,
            phase.description.removeprefix("Build: "),
            phase.status,
            f"{phase.tasks_completed}/{phase.tasks_total}",
            "yes" if phase.checkpoint else "no",
        )
    console.print(table)


def _print_task(task: TaskRef, label: str = "Task") -> None:
    console.print(f"  {label}: [bold]{task.id}[/bold] {task.name} ({task.status})")
    if task.depends_on:
        console.print(f"  Depends on: {', '.join(task.depends_on)}")
    if task.expected_files:
        console.print(f"  Files: {', '.join(task.expected_files)}")
    if task.error:
        console.print(f"  [red]Error:[/red] {task.error}")


def _print_project(project: Project) -> None:
    console.print(f"[bold]{project.name}[/bold] ({project.slug})")
    if project.description:
        console.print(f"  {project.description}")
    table = Table(title="Architecture", show_header=True)
    table.add_column("Component", style="cyan", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("Depends on", style="yellow")
    table.add_column("Files", style="green")
    for component in project.architecture.components:
        table.add_row(
            component.name,
            component.type,
            ", ".join(component.dependencies),
            ", ".join(component.files),
        )
    console.print(table)


@project_app.command("create")
def project_create(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Unique project handle (e.g., my-app)")],
    name: Annotated[str, typer.Option("--name", "-n", help="Human-readable name")],
    description: Annotated[str, typer.Option("--description", "-d", help="Short description")] = "",
    architecture_path: Annotated[
        Path | None,
        typer.Option("--architecture", "-a", help="YAML file with the architecture"),
    ] = None,
) -> None:
    """Register a project, optionally with its architecture."""
    architecture = _load_architecture_file(architecture_path) if architecture_path else None

    async def _create(service: BuildService, projects: ProjectRepository) -> Project:
        project = Project(slug=slug, name=name, description=description)
        if architecture is not None:
            project = project.model_copy(update={"architecture": architecture})
        return await projects.create(project)

    project = _run(ctx, _create)
    console.print(
        f"[green]✓[/green] Project created: [bold]{project.slug}[/bold] "
        f"({len(project.architecture.components)} components)"
    )


@project_app.command("show")
def project_show(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
) -> None:
    """Show a project and its architecture."""

    async def _show(service: BuildService, projects: ProjectRepository) -> Project | None:
        return await projects.get_by_slug(slug)

    project = _run(ctx, _show)
    if project is None:
        console.print(f"[red]Error:[/red] Project not found: {slug}")
        raise typer.Exit(1)
    _print_project(project)


@project_app.command("list")
def project_list(ctx: typer.Context) -> None:
    """List registered projects."""

    async def _list(service: BuildService, projects: ProjectRepository) -> list[Project]:
        return await projects.list_all()

    projects = _run(ctx, _list)
    if not projects:
        console.print("[dim]No projects registered.[/dim]")
        return

    table = Table(title="Projects", show_header=True)
    table.add_column("Slug", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Components", style="green", justify="right")
    table.add_column("Updated", style="blue")
    for project in projects:
        table.add_row(
            project.slug,
            project.name,
            str(len(project.architecture.components)),
            project.updated.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@project_app.command("architecture")
def project_architecture(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
    architecture_path: Annotated[Path, typer.Argument(help="YAML file with the architecture")],
) -> None:
    """Replace a project's architecture."""
    architecture = _load_architecture_file(architecture_path)

    async def _update(service: BuildService, projects: ProjectRepository) -> Project:
        return await projects.update_architecture(slug, architecture)

    project = _run(ctx, _update)
    console.print(
        f"[green]✓[/green] Architecture updated for [bold]{project.slug}[/bold] "
        f"({len(project.architecture.components)} components)"
    )


@app.command(name="plan")
def plan_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
    description: Annotated[str, typer.Argument(help="What is being built")] = "",
) -> None:
    """Create a build plan from the project's architecture."""
    created = _run(ctx, lambda service, _: service.plan_build(slug, description))

    console.print(f"[green]✓[/green] {created.message}")
    console.print(f"  Plan: [bold]{created.plan_id}[/bold]")
    for name in created.forced_placements:
        console.print(
            f"  [yellow]Warning:[/yellow] {name} was placed before its dependencies "
            "to break a dependency cycle"
        )
    _print_phases(created.phases)


@app.command(name="next")
def next_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
) -> None:
    """Claim the next actionable task."""
    result = _run(ctx, lambda service, _: service.next_step(slug))

    if result.task is None:
        console.print(result.message)
        for task in result.blocked_by:
            _print_task(task, label="Failed")
        return
    console.print(f"[green]✓[/green] {result.message}")
    _print_task(result.task)


def _collect_changes(
    created: list[str] | None,
    modified: list[str] | None,
    deleted: list[str] | None,
    changes_path: Path | None,
) -> list[FileChange]:
    """Build the file change list from the command line options.

    Raises:
        typer.Exit: If the changes file is missing or malformed.
    """
    changes = [FileChange(path=p, action=FileAction.CREATED) for p in created or []]
    changes += [FileChange(path=p, action=FileAction.MODIFIED) for p in modified or []]
    changes += [FileChange(path=p, action=FileAction.DELETED) for p in deleted or []]

    if changes_path is None:
        return changes

    try:
        data = yaml.safe_load(changes_path.read_text())
        if not isinstance(data, list):
            raise ValueError("expected a list of file changes")
        changes += [FileChange.model_validate(item) for item in data]
    except (OSError, yaml.YAMLError, ValueError) as e:
        console.print(f"[red]Error:[/red] Invalid changes file {changes_path}: {e}")
        raise typer.Exit(1) from None
    return changes


@app.command(name="step")
def step_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
    task_id: Annotated[str, typer.Argument(help="Task ID (e.g., p1t1)")],
    outcome: Annotated[
        StepOutcome,
        typer.Option("--outcome", "-o", help="Task outcome"),
    ] = StepOutcome.COMPLETED,
    created: Annotated[
        list[str] | None,
        typer.Option("--created", help="File created by the task (repeatable)"),
    ] = None,
    modified: Annotated[
        list[str] | None,
        typer.Option("--modified", help="File modified by the task (repeatable)"),
    ] = None,
    deleted: Annotated[
        list[str] | None,
        typer.Option("--deleted", help="File deleted by the task (repeatable)"),
    ] = None,
    changes_path: Annotated[
        Path | None,
        typer.Option(
            "--changes",
            help="YAML/JSON list of file changes, with previous_content for reversible edits",
        ),
    ] = None,
    error: Annotated[str | None, typer.Option("--error", "-e", help="Failure message")] = None,
    expected_version: Annotated[
        int | None,
        typer.Option("--expected-version", help="Reject if the plan changed since this version"),
    ] = None,
) -> None:
    """Report the outcome of a task."""
    changes = _collect_changes(created, modified, deleted, changes_path)

    report = _run(
        ctx,
        lambda service, _: service.execute_step(
            slug,
            task_id,
            outcome,
            file_changes=changes,
            error=error,
            expected_version=expected_version,
        ),
    )

    marker = "[green]✓[/green]" if outcome == StepOutcome.COMPLETED else "[red]✗[/red]"
    console.print(f"{marker} {report.message}")
    if report.checkpoint_reached:
        console.print(
            "\n[yellow]Checkpoint reached.[/yellow] "
            f"Review with: [bold]hive checkpoint {slug} review[/bold]"
        )
    elif report.next_task:
        _print_task(report.next_task, label="Next")


@app.command(name="retry")
def retry_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
    task_id: Annotated[str, typer.Argument(help="Rolled-back task to retry")],
) -> None:
    """Return a rolled-back task to pending."""
    task = _run(ctx, lambda service, _: service.retry_step(slug, task_id))
    console.print(f"[green]✓[/green] Task {task.id} is pending again")


@app.command(name="checkpoint")
def checkpoint_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
    action: Annotated[
        CheckpointAction,
        typer.Argument(help="review, approve or reject"),
    ] = CheckpointAction.REVIEW,
    reason: Annotated[
        str | None,
        typer.Option("--reason", "-r", help="Why the checkpoint is rejected"),
    ] = None,
) -> None:
    """Review, approve or reject the current checkpoint."""
    result = _run(ctx, lambda service, _: service.review_checkpoint(slug, action, reason=reason))

    if isinstance(result, CheckpointReview):
        console.print(
            f"[bold]{result.current_phase or 'No phase'}[/bold] "
            f"({result.status}) {result.progress.describe()}"
        )
        _print_phases(result.phases)
        for task in result.failed_tasks:
            _print_task(task, label="Failed")
        if result.file_changes:
            console.print(f"  {len(result.file_changes)} file changes recorded")
        console.print(f"\n{result.instructions}")
        return

    decision: CheckpointDecision = result
    if decision.action == CheckpointAction.APPROVE:
        console.print(f"[green]✓[/green] {decision.message}")
        if decision.next_phase:
            console.print(f"  Now on: [bold]{decision.next_phase.name}[/bold]")
    else:
        console.print(f"[yellow]{decision.message}[/yellow]")
        console.print(f"  Reason: {decision.reason}")
    console.print(f"\n{decision.instructions}")


@app.command(name="resume")
def resume_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
) -> None:
    """Resume an unfinished build in a new session."""
    report = _run(ctx, lambda service, _: service.resume_build(slug))

    console.print(f"[green]✓[/green] Build resumed ({report.progress.describe()})")
    console.print(f"  Session: {report.new_session}")
    if report.current_phase:
        console.print(f"  Phase: {report.current_phase.name} ({report.current_phase.status})")
    if report.next_task:
        _print_task(report.next_task, label="Next")
    for task in report.failed_tasks:
        _print_task(task, label="Failed")
    console.print(f"\n{report.instructions}")


@app.command(name="rollback")
def rollback_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
    task_id: Annotated[
        str | None,
        typer.Option("--task", "-t", help="Task to roll back (default: last completed or failed)"),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Project code root; without it no file is touched"),
    ] = None,
) -> None:
    """Roll back a completed or failed task."""
    if root is not None and not root.is_dir():
        console.print(f"[red]Error:[/red] Project root is not a directory: {root}")
        raise typer.Exit(1)

    report = _run(
        ctx,
        lambda service, _: service.rollback_step(slug, task_id=task_id, project_root_path=root),
    )

    console.print(f"[green]✓[/green] {report.message}")
    for outcome in report.files:
        style = "green" if outcome.result == RevertResult.REVERTED else "yellow"
        console.print(f"  [{style}]{outcome.result}[/{style}] {outcome.message}")
    if report.reset_dependents:
        console.print(f"  Reset to pending: {', '.join(report.reset_dependents)}")


@app.command(name="status")
def status_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Project handle")],
) -> None:
    """Show the project's latest build plan."""
    summary = _run(ctx, lambda service, _: service.build_status(slug))

    console.print(f"[bold]{summary.description or summary.plan_id}[/bold] ({summary.status})")
    console.print(f"  Progress: {summary.progress.describe()}")
    if summary.current_phase_name:
        console.print(f"  Current phase: {summary.current_phase_name}")
    if summary.at_checkpoint:
        console.print("  [yellow]Waiting at checkpoint[/yellow]")
    console.print(f"  Version: {summary.version}")
    _print_phases(summary.phases)
