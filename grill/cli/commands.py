"""CLI commands for grill."""

from __future__ import annotations

from pathlib import Path

import typer
from loguru import logger
from rich.console import Console

from grill import __version__
from grill.errors import ConfigError, SpawnError, TaskError, TerminalModeError

EXIT_USAGE = 1
EXIT_CONFIG = 2
EXIT_SPAWN_FAILURE = 127

app = typer.Typer(
    name="grill",
    help="grill - task-scoped terminal proxy for interactive CLI agents",
    no_args_is_help=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"grill v{__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Start a session with default settings when no command is given."""
    del version
    from grill.logging_setup import setup_logging

    setup_logging(None)
    if ctx.invoked_subcommand is None:
        _run_session(task="", override=[], log_level="")


def _open_store(project_dir: Path, *, announce: bool = True):
    from grill.session.task_store import TaskStore

    store = TaskStore(project_dir)
    fresh = not store.exists()
    created = store.initialize()
    if announce and fresh:
        console.print(f"[green]OK[/green] Initialized grill environment in {store.grill_dir}")
    for path in created:
        logger.debug(f"[cli] Created {path}")
    return store


def _load_manager(store):
    from grill.session.task_manager import TaskManager

    try:
        config = store.load_config()
        return TaskManager(store, config)
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG)


def _run_session(task: str, override: list[str], log_level: str) -> None:
    from grill.logging_setup import setup_logging
    from grill.session.orchestrator import Session
    from grill.terminal.driver import TerminalDriver

    store = _open_store(Path.cwd())
    tasks = _load_manager(store)
    log_file = setup_logging(store.grill_dir, log_level or tasks.config.log_level)
    logger.info(f"[cli] grill v{__version__} starting in {store.project_dir}")

    if task:
        try:
            tasks.switch(task)
        except TaskError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(EXIT_USAGE)

    session = Session(tasks, TerminalDriver(), config=tasks.config, cli_override=override)
    try:
        code = session.run()
    except SpawnError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        console.print(f"[dim]Log: {log_file}[/dim]")
        raise typer.Exit(EXIT_SPAWN_FAILURE)
    except TerminalModeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG)
    console.print("Session ended.")
    raise typer.Exit(code)


@app.command()
def init() -> None:
    """Initialize a grill environment in the current directory."""
    from grill.session.task_store import TaskStore

    store = TaskStore(Path.cwd())
    console.print(f"Initializing grill environment in {store.grill_dir}...")
    created = store.initialize()
    tasks = _load_manager(store)
    for path in created:
        console.print(f"  [dim]Created {path.relative_to(store.project_dir)}[/dim]")
    console.print(f"[green]OK[/green] Grill environment ready. Active task: [cyan]{tasks.active}[/cyan]")


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def start(
    ctx: typer.Context,
    task: str = typer.Option("", "--task", "-t", help="Switch to this existing task before starting."),
    log_level: str = typer.Option("", "--log-level", help="Log level for .grill/grill.log."),
) -> None:
    """Start a session; trailing arguments override the inner CLI command."""
    _run_session(task=task, override=list(ctx.args), log_level=log_level)


@app.command()
def status() -> None:
    """Show the grill environment of the current directory."""
    from grill.session.task_store import TaskStore

    store = TaskStore(Path.cwd())
    if not store.exists():
        console.print(f"[yellow]No grill environment in {store.project_dir}.[/yellow] Run [cyan]grill init[/cyan].")
        raise typer.Exit(EXIT_USAGE)

    tasks = _load_manager(store)
    console.print("grill Status\n")
    console.print(f"Project: {store.project_dir}")
    console.print(f"Config: {store.config_path}")
    console.print(f"Active task: [cyan]{tasks.active}[/cyan]")
    try:
        spec = tasks.launch_spec()
        console.print(f"Inner CLI: [cyan]{spec.display}[/cyan] (cwd {spec.cwd})")
    except SpawnError as exc:
        console.print(f"[red]Inner CLI: {exc}[/red]")
    console.print("\nTasks:")
    for name in tasks.list():
        marker = "[green]*[/green]" if name == tasks.active else " "
        console.print(f"  {marker} {name}")


if __name__ == "__main__":
    app()
