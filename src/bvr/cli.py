"""bvr CLI - build, validate and roll back agent changes.

Main entry point for the bvr command.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys
from collections.abc import Iterable
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .agent import CommandChangeProducer
from .config import (
    LOG_LEVELS,
    format_config_for_display,
    get_config,
    get_config_path,
    list_config_keys,
    load_config,
    save_config,
)
from .exceptions import BVRError, WorkspaceError
from .ledger import AttemptLedger
from .models import Attempt, OrchestratorState, RunResult
from .orchestrator import Orchestrator, RunConfig
from .recovery import analyze_patterns
from .state import RunState, list_run_states
from .testing import CommandTestRunner
from .utils.errors import (
    error_config_invalid,
    error_run_not_found,
    error_workspace,
    format_error,
    handle_exception,
)
from .workspace import GitWorkspace

console = Console()

# States worth a line of progress output
_EVENT_STYLES = {
    OrchestratorState.ATTEMPTING: "cyan",
    OrchestratorState.CONTINUING: "yellow",
    OrchestratorState.ROLLING_BACK: "magenta",
}


def setup_logging(level: str) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=(level if level in LOG_LEVELS else "info").upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group(invoke_without_command=True)
@click.option("--version", "-v", is_flag=True, help="Show version and exit")
@click.option("--debug", "-d", is_flag=True, help="Enable debug mode with verbose error output")
@click.pass_context
def main(ctx: click.Context, version: bool, debug: bool) -> None:
    """bvr - build, validate and roll back agent-driven changes.

    Runs an agent against a git workspace, validates every attempt with
    your test command and rolls back to the last passing state when the
    agent stops making progress.

    Use --debug for verbose error output with stack traces.
    """
    if debug:
        from .utils.errors import set_debug_mode

        set_debug_mode(True)

    if version:
        console.print(f"bvr version {__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# =============================================================================
# run
# =============================================================================


@main.command("run")
@click.argument("task", nargs=-1, required=True)
@click.option("--agent-cmd", help="Agent command; the prompt is appended as the last argument")
@click.option("--test-cmd", help="Shell command that runs the test suite")
@click.option("--max-attempts", "-n", type=int, help="Maximum attempts before giving up")
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Git workspace (default: workspace.path from config)",
)
@click.option("--no-validate", is_flag=True, help="Run the agent once without tests")
@click.option("--verbose", is_flag=True, help="Show debug logging")
def run_cmd(
    task: tuple[str, ...],
    agent_cmd: str | None,
    test_cmd: str | None,
    max_attempts: int | None,
    path: Path | None,
    no_validate: bool,
    verbose: bool,
) -> None:
    """Run TASK with the agent until tests pass or the run fails.

    \b
    Examples:
        bvr run "Add input validation to the signup form" --test-cmd "pytest -x"
        bvr run Fix the flaky cache test -n 5 --agent-cmd "claude --print"
    """
    config = get_config()
    setup_logging("debug" if verbose else config.ui.log_level)

    task_text = " ".join(task)
    workspace_path = path or Path(config.workspace.path)
    state_dir = workspace_path / config.workspace.state_dir

    workspace = GitWorkspace(workspace_path, ignore=[config.workspace.state_dir])
    try:
        head = workspace.current_commit()
    except WorkspaceError as e:
        handle_exception(console, e, "workspace check")
        return
    if head is None:
        format_error(
            error_workspace(f"{workspace_path} is not a git repository with at least one commit"),
            console,
        )
        sys.exit(1)

    producer = CommandChangeProducer(
        command=shlex.split(agent_cmd) if agent_cmd else config.agent.command,
        cwd=workspace_path,
        timeout=config.agent.timeout,
    )
    test_runner = CommandTestRunner(
        command=test_cmd if test_cmd is not None else config.testing.command,
        cwd=workspace_path,
        timeout=config.testing.timeout,
    )
    run_config = RunConfig(
        max_attempts=max_attempts or config.retry.max_attempts,
        rollback_threshold=config.retry.rollback_threshold,
        validate=config.testing.enabled and not no_validate,
    )

    try:
        orchestrator = Orchestrator(
            producer,
            test_runner,
            workspace,
            run_config,
            on_event=_print_event,
        )
    except ValueError as e:
        handle_exception(console, e, "run configuration")
        return

    console.print(f"[bold]Task:[/bold] {escape(task_text)}")
    console.print(f"[dim]Workspace: {workspace_path.resolve()} @ {head[:8]}[/dim]")
    console.print()

    try:
        result = asyncio.run(orchestrator.run(task_text))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except BVRError as e:
        handle_exception(console, e, "run")
        return

    state = RunState.from_result(task_text, result)
    state.save(state_dir)

    console.print()
    console.print(_attempt_table(result.attempts))
    _print_result(result, state.run_id)

    sys.exit(0 if result.succeeded else 1)


def _print_event(state: OrchestratorState, message: str) -> None:
    style = _EVENT_STYLES.get(state)
    if style and message:
        console.print(f"[{style}]{state.value}[/{style}] {message}")


def _print_result(result: RunResult, run_id: str) -> None:
    console.print()
    if result.succeeded:
        console.print(f"[green]✓ {escape(result.summary())}[/green]")
    else:
        console.print(f"[red]✗ {escape(result.summary())}[/red]")
        if result.alternative_approach:
            console.print()
            console.print("[yellow]Suggested next steps:[/yellow]")
            console.print(escape(result.alternative_approach))
    if result.final_snapshot_id:
        console.print(f"[dim]Final snapshot: {result.final_snapshot_id[:12]}[/dim]")
    console.print(f"[dim]Run id: {run_id} (bvr show {run_id})[/dim]")


def _attempt_table(attempts: Iterable[Attempt]) -> Table:
    table = Table(title="Attempts")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Agent")
    table.add_column("Tests")
    table.add_column("Errors", justify="right")
    table.add_column("First error", style="dim", max_width=60)

    for attempt in attempts:
        agent = "[green]ok[/green]" if attempt.agent_outcome.succeeded else "[red]failed[/red]"
        if attempt.test_outcome is None:
            tests = "[dim]skipped[/dim]"
        elif attempt.test_outcome.passed:
            tests = "[green]passed[/green]"
        else:
            tests = "[red]failed[/red]"

        errors = attempt.error_messages
        first_error = errors[0] if errors else (attempt.agent_outcome.error_message or "")
        table.add_row(
            str(attempt.index),
            agent,
            tests,
            str(len(errors)),
            escape(first_error.splitlines()[0]) if first_error else "",
        )

    return table


# =============================================================================
# history / show
# =============================================================================


def _state_dir(path: Path | None) -> Path:
    config = get_config()
    return (path or Path(config.workspace.path)) / config.workspace.state_dir


@main.command("history")
@click.option("--limit", "-l", type=int, default=20, help="Number of runs to show")
@click.option("--path", "-p", type=click.Path(file_okay=False, path_type=Path), help="Workspace path")
def history_cmd(limit: int, path: Path | None) -> None:
    """List recorded runs, most recent first."""
    states = list_run_states(limit=limit, state_dir=_state_dir(path))

    if not states:
        console.print("[dim]No runs recorded yet[/dim]")
        return

    table = Table(title="Run history")
    table.add_column("Run", style="cyan")
    table.add_column("Outcome")
    table.add_column("Attempts", justify="right")
    table.add_column("Updated", style="dim")
    table.add_column("Task", max_width=50)

    for state in states:
        outcome = "[green]succeeded[/green]" if state.succeeded else f"[red]{state.outcome}[/red]"
        if state.rolled_back:
            outcome += " [magenta](rolled back)[/magenta]"
        table.add_row(
            state.run_id,
            outcome,
            str(len(state.attempts)),
            state.updated_at[:19].replace("T", " "),
            escape(state.task),
        )

    console.print(table)


@main.command("show")
@click.argument("run_id")
@click.option("--path", "-p", type=click.Path(file_okay=False, path_type=Path), help="Workspace path")
def show_cmd(run_id: str, path: Path | None) -> None:
    """Show attempts, snapshots and failure patterns for RUN_ID."""
    state = RunState.load(run_id, _state_dir(path))
    if state is None:
        format_error(error_run_not_found(run_id), console)
        sys.exit(1)

    console.print(f"[bold]Run {state.run_id}[/bold]: {escape(state.task)}")
    console.print(f"[dim]Outcome: {state.outcome}  Created: {state.created_at[:19]}[/dim]")
    if state.error:
        console.print(f"[red]Error:[/red] {escape(state.error)}")
    console.print()

    attempts = state.to_attempts()
    console.print(_attempt_table(attempts))

    if state.snapshots:
        table = Table(title="Snapshots")
        table.add_column("Id", style="cyan")
        table.add_column("Attempt", justify="right")
        table.add_column("Stable")
        for snapshot in state.snapshots:
            marker = " ←" if snapshot.id == state.final_snapshot_id else ""
            table.add_row(
                snapshot.id[:12] + marker,
                str(snapshot.attempt_index),
                "[green]yes[/green]" if snapshot.is_stable else "[red]no[/red]",
            )
        console.print(table)

    ledger = AttemptLedger()
    for attempt in attempts:
        ledger.record(attempt)
    analysis = analyze_patterns(ledger)

    console.print()
    console.print("[bold]Patterns[/bold]")
    if analysis.signals:
        for signal in analysis.signals:
            console.print(f"  • {signal.label()}: {escape(signal.description)}")
    else:
        console.print("  [dim]none detected[/dim]")
    console.print(f"[bold]Verdict:[/bold] {analysis.verdict.decision.value} ({analysis.verdict.reasoning})")

    if state.alternative_approach:
        console.print()
        console.print("[yellow]Suggested next steps:[/yellow]")
        console.print(escape(state.alternative_approach))


# =============================================================================
# config
# =============================================================================


@main.group("config")
def config_group() -> None:
    """View and edit ~/.bvr/config.toml."""


@config_group.command("show")
def config_show() -> None:
    """Show the effective configuration."""
    console.print(format_config_for_display(get_config()), markup=False, highlight=False)


@config_group.command("path")
def config_path() -> None:
    """Print the configuration file path."""
    click.echo(str(get_config_path()))


@config_group.command("keys")
def config_keys() -> None:
    """List all configuration keys."""
    for key in list_config_keys():
        click.echo(key)


@config_group.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set KEY to VALUE and save the file."""
    path = get_config_path()
    config = load_config(path)

    try:
        known = config.set(key, value)
    except ValueError as e:
        format_error(error_config_invalid(key, value, str(e)), console)
        sys.exit(1)

    if not known:
        format_error(error_config_invalid(key), console)
        sys.exit(1)

    if key == "ui.log_level" and config.ui.log_level not in LOG_LEVELS:
        format_error(error_config_invalid(key, value, " / ".join(LOG_LEVELS)), console)
        sys.exit(1)

    if not save_config(config, path):
        console.print(f"[red]Could not write {path}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] {key} = {config.get(key)}")


if __name__ == "__main__":
    main()
