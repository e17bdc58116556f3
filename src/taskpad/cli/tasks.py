"""Command-line interface for taskpad."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import ConfigModel, get_config, load_config, save_config
from ..export import (
    AppState,
    StateImportError,
    export_state,
    ics_filename,
    import_state,
    task_to_ics,
)
from ..parser import NaturalLanguageParser, SmartDateParser, TaskBuilder
from ..query_engine import QueryEngine
from ..recurring import RecurrenceParser
from ..schedule import reschedule_to_day, snooze as snooze_due, week_overview
from ..stats import completion_history, current_streak, points, today_completion
from ..storage import StoreError, TaskStore, YamlTaskStore
from ..task import Area, Priority, Task
from ..utils.datetime import now_local


logger = logging.getLogger(__name__)

PRIORITY_STYLES = {
    Priority.HIGH: "bold red",
    Priority.MEDIUM: "yellow",
    Priority.LOW: "green",
}

console = Console()


def get_console() -> Console:
    return console


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def fail(message: str):
    get_console().print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def short_id(task: Task) -> str:
    return (task.id or "")[:8]


def resolve_task(store: TaskStore, user: str, task_ref: str) -> Task:
    """Find a task by full id or unique id prefix."""
    matches = [task for task in store.list_tasks(user) if task.id and task.id.startswith(task_ref)]
    if not matches:
        fail(f"No task matches '{task_ref}'")
    if len(matches) > 1:
        fail(f"'{task_ref}' is ambiguous ({len(matches)} tasks)")
    return matches[0]


def format_due(task: Task, config: ConfigModel) -> str:
    if not task.due:
        return ""
    return task.due.strftime(f"{config.date_format} {config.time_format}")


def render_tasks(tasks: List[Task], config: ConfigModel, now: datetime, title: str = "Tasks"):
    """Print tasks grouped by project, open tasks first within each group."""
    if not tasks:
        get_console().print("[dim]No tasks[/dim]")
        return

    table = Table(title=title, show_lines=False)
    table.add_column("ID", style="dim")
    table.add_column("", width=2)
    table.add_column("Title")
    table.add_column("Due")
    table.add_column("Priority")
    table.add_column("Project")
    table.add_column("Tags", style="cyan")
    table.add_column("Repeat", style="magenta")

    groups = {}
    for task in tasks:
        groups.setdefault(task.project or config.default_project, []).append(task)

    for project_tasks in groups.values():
        for task in sorted(project_tasks, key=lambda t: t.completed):
            due = format_due(task, config)
            if task.is_overdue(now):
                due = f"[red]{due}[/red]"
            style = PRIORITY_STYLES[task.priority]
            table.add_row(
                short_id(task),
                "✓" if task.completed else "",
                f"[strike]{task.title}[/strike]" if task.completed else task.title,
                due,
                f"[{style}]{task.priority.value}[/{style}]",
                task.project,
                " ".join(f"#{tag}" for tag in task.tags),
                task.repeat.describe() if task.repeat else "",
            )

    get_console().print(table)


@click.group()
@click.option("--config", type=click.Path(), help="Path to config file")
@click.option("--user", "-u", help="Whose tasks to work on")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx, config, user, verbose):
    """taskpad - quick capture, weekly planning and recurring tasks."""
    ctx.ensure_object(dict)

    try:
        cfg = load_config(Path(config)) if config else get_config()
    except OSError as e:
        get_console().print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)

    setup_logging("DEBUG" if verbose else cfg.log_level)

    ctx.obj['config'] = cfg
    ctx.obj['config_path'] = Path(config) if config else None
    ctx.obj['user'] = user or cfg.default_user
    ctx.obj.setdefault('clock', now_local)
    ctx.obj.setdefault('store', YamlTaskStore(cfg))


def _context():
    obj = click.get_current_context().obj
    return obj['config'], obj['store'], obj['user'], obj['clock']()


@cli.command()
@click.argument("text", nargs=-1, required=True)
@click.option("--day", help="Day for tasks without a due date (default: today)")
@click.option("--area", type=click.Choice([a.value for a in Area], case_sensitive=False))
@click.option("--dry-run", is_flag=True, help="Parse without saving to see what would be created")
def add(text, day, area, dry_run):
    """Add a task with natural language parsing.

    Examples:
      taskpad add "Buy milk tomorrow 5pm #groceries p:Personal !! every monday"
      taskpad add "Standup notes daily p:Work"
    """
    config, store, user, now = _context()
    input_text = " ".join(text)

    parser = NaturalLanguageParser(config)
    draft = parser.parse(input_text, now)

    selected_day = now.date()
    if day:
        parsed_day = SmartDateParser().parse(day, now)
        if parsed_day is None:
            fail(f"Could not understand day '{day}'")
        selected_day = parsed_day.date()

    task = TaskBuilder(config).build(draft, selected_day, Area.parse(area) if area else None, now.tzinfo)

    known_tags = sorted({tag for t in store.list_tasks(user) for tag in t.tags})
    for suggestion in parser.suggest_corrections(input_text, config.projects, known_tags):
        get_console().print(f"[blue]💡 {suggestion}[/blue]")

    if dry_run:
        render_tasks([task], config, now, title="Preview")
        get_console().print("[yellow]Dry run - not saved[/yellow]")
        return

    try:
        task_id = store.create_task(user, task)
    except StoreError as e:
        fail(str(e))
    get_console().print(f"[green]Added[/green] {task_id[:8]} {task.title} "
                        f"[dim](due {format_due(task, config)})[/dim]")


@cli.command(name="list")
@click.argument("query", nargs=-1)
def list_tasks(query):
    """List tasks matching a search query.

    \b
    With no query, shows open tasks. Examples:
      taskpad list "tag:urgent AND due:today"
      taskpad list "project:Work OR priority:high"
    """
    config, store, user, now = _context()
    query_text = " ".join(query)
    results = QueryEngine(lambda: now).search(store.list_tasks(user), query_text)
    render_tasks(results, config, now, title=query_text or "Open tasks")


@cli.command()
@click.argument("task_ref")
def done(task_ref):
    """Toggle a task's completion."""
    config, store, user, now = _context()
    task = resolve_task(store, user, task_ref)
    try:
        successor_id = store.toggle_completion(user, task, now)
    except StoreError as e:
        fail(str(e))

    if task.completed:
        get_console().print(f"[yellow]Reopened[/yellow] {task.title}")
        return

    get_console().print(f"[green]✓ Completed[/green] {task.title}")
    if successor_id:
        successor = store.get_task(user, successor_id)
        get_console().print(f"[magenta]🔁 Next:[/magenta] {successor_id[:8]} due {format_due(successor, config)}")


@cli.command()
@click.argument("task_ref")
@click.option("--title")
@click.option("--notes")
@click.option("--project")
@click.option("--area", type=click.Choice([a.value for a in Area], case_sensitive=False))
@click.option("--priority", type=click.Choice([p.value for p in Priority], case_sensitive=False))
@click.option("--tags", help="Comma separated tags")
@click.option("--due", help="New due date, or 'none'")
@click.option("--reminder", type=int, help="Reminder minutes before due")
@click.option("--repeat", help="none, daily, weekly, monthly or 'every <weekday>'")
def edit(task_ref, title, notes, project, area, priority, tags, due, reminder, repeat):
    """Edit a task's fields."""
    config, store, user, now = _context()
    task = resolve_task(store, user, task_ref)

    patch = {}
    if title is not None:
        patch['title'] = title
    if notes is not None:
        patch['notes'] = notes.replace("\\n", "\n")
    if project is not None:
        patch['project'] = project
    if area is not None:
        patch['area'] = Area.parse(area)
    if priority is not None:
        patch['priority'] = Priority.parse(priority)
    if tags is not None:
        patch['tags'] = [tag.strip() for tag in tags.split(",") if tag.strip()]
    if due is not None:
        if due.lower() == "none":
            patch['due'] = None
        else:
            parsed_due = SmartDateParser().parse(due, now)
            if parsed_due is None:
                fail(f"Could not understand due date '{due}'")
            patch['due'] = parsed_due
    if reminder is not None:
        patch['reminder'] = reminder
    if repeat is not None:
        patch['repeat'] = RecurrenceParser.parse(repeat)

    if not patch:
        get_console().print("[dim]Nothing to change[/dim]")
        return

    try:
        store.update_task(user, task.id, patch)
    except StoreError as e:
        fail(str(e))
    get_console().print(f"[green]Updated[/green] {short_id(task)} ({', '.join(sorted(patch))})")


@cli.command()
@click.argument("task_ref")
def delete(task_ref):
    """Delete a task."""
    _, store, user, _ = _context()
    task = resolve_task(store, user, task_ref)
    try:
        store.delete_task(user, task.id)
    except StoreError as e:
        fail(str(e))
    get_console().print(f"[red]Deleted[/red] {task.title}")


@cli.command()
@click.argument("task_ref")
@click.argument("day", nargs=-1, required=True)
def move(task_ref, day):
    """Move a task to another day, keeping its time of day."""
    config, store, user, now = _context()
    task = resolve_task(store, user, task_ref)
    target = SmartDateParser().parse(" ".join(day), now)
    if target is None:
        fail(f"Could not understand day '{' '.join(day)}'")

    new_due = reschedule_to_day(task, target.date(), now.tzinfo)
    try:
        store.update_task(user, task.id, {'due': new_due})
    except StoreError as e:
        fail(str(e))
    get_console().print(f"[green]Moved[/green] {task.title} to {new_due.strftime(config.date_format + ' ' + config.time_format)}")


@cli.command()
@click.argument("task_ref")
@click.argument("minutes", type=int)
def snooze(task_ref, minutes):
    """Push a task's due time back by some minutes."""
    config, store, user, now = _context()
    task = resolve_task(store, user, task_ref)
    new_due = snooze_due(task, minutes, now)
    try:
        store.update_task(user, task.id, {'due': new_due})
    except StoreError as e:
        fail(str(e))
    get_console().print(f"[green]Snoozed[/green] {task.title} until {new_due.strftime(config.time_format)}")


@cli.command()
@click.option("--date", "anchor", help="Any day in the week to show (default: today)")
def week(anchor):
    """Show the week's tasks day by day."""
    config, store, user, now = _context()
    anchor_day = now.date()
    if anchor:
        parsed = SmartDateParser().parse(anchor, now)
        if parsed is None:
            fail(f"Could not understand date '{anchor}'")
        anchor_day = parsed.date()

    table = Table(title=f"Week of {anchor_day.isoformat()}")
    overview = week_overview(store.list_tasks(user), anchor_day, config.week_starts_on, now.tzinfo)
    for day, _ in overview:
        header = day.strftime("%a %d")
        table.add_column(f"[reverse]{header}[/reverse]" if day == now.date() else header)

    cells = []
    for _, tasks in overview:
        lines = []
        for task in tasks:
            line = f"{task.due.strftime(config.time_format)} {task.title}"
            lines.append(f"[strike dim]{line}[/strike dim]" if task.completed else line)
        cells.append("\n".join(lines))
    table.add_row(*cells)
    get_console().print(table)


@cli.command()
def stats():
    """Show today's progress, streak and points."""
    config, store, user, now = _context()
    tasks = store.list_tasks(user)

    today = today_completion(tasks, now)
    get_console().print(
        f"Today: [bold]{today.completed}/{today.total}[/bold] done ({today.percent}%)  "
        f"Streak: [bold]{current_streak(tasks, now)}[/bold] days  "
        f"Points: [bold]{points(tasks, config.points_weights)}[/bold]"
    )

    table = Table(title="Last 14 days")
    table.add_column("Day")
    table.add_column("Completed", justify="right")
    table.add_column("")
    for entry in completion_history(tasks, 14, now):
        table.add_row(entry.day.strftime("%b %d"), str(entry.completed), "█" * entry.completed)
    get_console().print(table)


@cli.group()
def subtask():
    """Manage a task's checklist."""


def _save_subtasks(store: TaskStore, user: str, task: Task):
    try:
        store.update_task(user, task.id, {'subtasks': task.subtasks})
    except StoreError as e:
        fail(str(e))


@subtask.command(name="add")
@click.argument("task_ref")
@click.argument("title", nargs=-1, required=True)
def subtask_add(task_ref, title):
    """Add a subtask."""
    _, store, user, _ = _context()
    task = resolve_task(store, user, task_ref)
    item = task.add_subtask(" ".join(title))
    _save_subtasks(store, user, task)
    get_console().print(f"[green]Added subtask[/green] {item.id[:8]} {item.title}")


@subtask.command(name="toggle")
@click.argument("task_ref")
@click.argument("subtask_id")
def subtask_toggle(task_ref, subtask_id):
    """Check or uncheck a subtask."""
    _, store, user, _ = _context()
    task = resolve_task(store, user, task_ref)
    matches = [s.id for s in task.subtasks if s.id.startswith(subtask_id)]
    if len(matches) != 1 or not task.toggle_subtask(matches[0]):
        fail(f"No single subtask matches '{subtask_id}'")
    _save_subtasks(store, user, task)
    get_console().print("[green]Subtask updated[/green]")


@subtask.command(name="remove")
@click.argument("task_ref")
@click.argument("subtask_id")
def subtask_remove(task_ref, subtask_id):
    """Remove a subtask."""
    _, store, user, _ = _context()
    task = resolve_task(store, user, task_ref)
    matches = [s.id for s in task.subtasks if s.id.startswith(subtask_id)]
    if len(matches) != 1 or not task.remove_subtask(matches[0]):
        fail(f"No single subtask matches '{subtask_id}'")
    _save_subtasks(store, user, task)
    get_console().print("[green]Subtask removed[/green]")


@cli.command(name="export")
@click.argument("path", type=click.Path(dir_okay=False))
def export_cmd(path):
    """Export all state to a JSON file."""
    config, store, user, now = _context()
    tasks = store.list_tasks(user)
    state = AppState(
        tasks=tasks,
        projects=list(config.projects),
        points=points(tasks, config.points_weights),
        history=[entry.to_dict() for entry in completion_history(tasks, 14, now)],
    )
    try:
        Path(path).write_text(export_state(state), encoding="utf-8")
    except OSError as e:
        fail(f"Failed to write {path}: {e}")
    get_console().print(f"[green]Exported {len(tasks)} tasks to {path}[/green]")


@cli.command(name="import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_cmd(path):
    """Replace the user's tasks with those from a JSON export.

    Projects in the file are added to the configured project list. Points and
    history are derived from the tasks, so they follow the imported tasks.
    """
    config, store, user, _ = _context()
    try:
        state = import_state(Path(path).read_text(encoding="utf-8"), AppState(projects=[]))
        store.replace_tasks(user, state.tasks)
    except (OSError, StateImportError, StoreError) as e:
        fail(str(e))

    known = AppState(projects=list(config.projects))
    added = [name for name in state.projects if known.add_project(name)]
    if added:
        config.projects = known.projects
        try:
            save_config(config, click.get_current_context().obj['config_path'])
        except OSError as e:
            fail(f"Failed to save projects: {e}")
        logger.info(f"Added projects from import: {', '.join(added)}")
    get_console().print(f"[green]Imported {len(state.tasks)} tasks from {path}[/green]")


@cli.command()
@click.argument("task_ref")
@click.argument("path", required=False, type=click.Path(dir_okay=False))
def ics(task_ref, path):
    """Write a task as an .ics calendar event."""
    _, store, user, now = _context()
    task = resolve_task(store, user, task_ref)
    target = Path(path) if path else Path(ics_filename(task))
    try:
        target.write_bytes(task_to_ics(task, now).encode("utf-8"))
    except OSError as e:
        fail(f"Failed to write {target}: {e}")
    get_console().print(f"[green]Wrote {target}[/green]")


def main(argv: Optional[List[str]] = None):
    """Run the CLI."""
    cli(args=argv, obj={})


if __name__ == "__main__":
    main()
