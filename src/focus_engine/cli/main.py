"""CLI commands for Focus Engine using Typer."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from focus_engine import __version__
from focus_engine.analytics.usage import format_duration, productivity_score
from focus_engine.core.config import Config, get_config
from focus_engine.core.errors import FocusEngineError
from focus_engine.models import Session, SessionType, TaskMeta

# Initialize Typer app
app = typer.Typer(
    name="focus-engine",
    help="Pomodoro focus timer with foreground application tracking.",
    add_completion=False,
)

console = Console()


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def _print_session(session: Session) -> None:
    status = "[green]completed[/green]" if session.completed else f"[yellow]{session.end_reason.value}[/yellow]"
    console.print(
        f"\n[bold]{session.session_type.value}[/bold] {status} "
        f"after {format_duration(session.actual_duration_seconds)}"
    )

    if not session.application_usage:
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Application")
    table.add_column("Time", justify="right")
    for record in session.application_usage[:10]:
        table.add_row(record.display_name, format_duration(record.time_spent_seconds))
    console.print(table)

    score, _ = productivity_score(session.application_usage)
    console.print(f"  Productivity score: {score}")


@app.command()
def run(
    session_type: SessionType = typer.Option(
        SessionType.WORK,
        "--type",
        "-t",
        help="Session type to start with",
    ),
    task: str = typer.Option(
        None,
        "--task",
        help="Task name recorded on work sessions",
    ),
    rounds: int = typer.Option(
        1,
        "--rounds",
        "-r",
        min=1,
        help="Work sessions to complete before exiting",
    ),
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Run sessions in the foreground until the focus period ends.

    Examples:
        focus-engine run --task "Write report" --rounds 4
        focus-engine run --type short_break
    """
    config = get_config()
    setup_logging(log_level or config.log_level, config.log_dir / "engine.log")

    # Deferred so PyObjC only loads when a session actually runs
    from focus_engine.core.engine import FocusEngine

    if FocusEngine.get_engine_pid(config):
        console.print("[yellow]Another engine is already running[/yellow]")
        raise typer.Exit(1)

    meta = TaskMeta(name=task) if task else None

    async def run_engine() -> list[Session]:
        engine = FocusEngine(config)
        await engine.start()

        def show_tick(state) -> None:
            sys.stdout.write(
                f"\r{state.current_session.session_type.value if state.current_session else '--'} "
                f"{state.time_remaining_display} ({state.progress_percent:.0f}%)    "
            )
            sys.stdout.flush()

        engine.timer.on_tick = show_tick

        try:
            return await engine.run_focus_period(rounds, meta, first=session_type)
        except asyncio.CancelledError:
            stopped = await engine.end_session()
            return [stopped] if stopped else []
        finally:
            await engine.stop()

    console.print(f"[green]Starting {session_type.value}[/green] ({rounds} round(s))")
    console.print("Press Ctrl+C to stop\n")

    try:
        finished = asyncio.run(run_engine())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
        return
    except FocusEngineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    for session in finished:
        _print_session(session)


@app.command()
def stats() -> None:
    """Show aggregate session statistics."""
    config = get_config()

    async def load_stats():
        from focus_engine.focus.history import SessionHistory
        from focus_engine.storage.database import Database

        db = Database(config.db_path)
        await db.connect()
        try:
            history = SessionHistory(db)
            await history.load()
            return history.stats, history.average_work_session_minutes()
        finally:
            await db.close()

    timer_stats, average_minutes = asyncio.run(load_stats())

    table = Table(title="Focus Statistics", show_header=True, header_style="bold cyan")
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Total sessions", str(timer_stats.total_sessions))
    table.add_row("Completed", str(timer_stats.completed_sessions))
    table.add_row("Completion rate", f"{timer_stats.completion_rate:.0f}%")
    table.add_row("Work time", format_duration(timer_stats.total_work_time))
    table.add_row("Break time", format_duration(timer_stats.total_break_time))
    table.add_row("Average work session", f"{average_minutes:.1f} min")
    table.add_row("Today", str(timer_stats.todays_sessions))
    table.add_row("This week", str(timer_stats.week_sessions))
    table.add_row("This month", str(timer_stats.month_sessions))
    table.add_row("Streak", f"{timer_stats.streak_count} day(s)")

    console.print(table)


@app.command()
def history(
    limit: int = typer.Option(
        10,
        "--limit",
        "-n",
        min=1,
        help="Number of sessions to show",
    ),
) -> None:
    """List the most recent sessions."""
    config = get_config()

    async def load_recent() -> list[Session]:
        from focus_engine.focus.history import SessionHistory
        from focus_engine.storage.database import Database

        db = Database(config.db_path)
        await db.connect()
        try:
            session_history = SessionHistory(db)
            await session_history.load()
            return session_history.recent(limit)
        finally:
            await db.close()

    sessions = asyncio.run(load_recent())
    if not sessions:
        console.print("[dim]No sessions recorded yet[/dim]")
        return

    table = Table(title="Recent Sessions", show_header=True, header_style="bold cyan")
    table.add_column("Started")
    table.add_column("Type")
    table.add_column("Planned", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Result")
    table.add_column("Task")

    for session in sessions:
        result = "completed" if session.completed else (session.end_reason.value if session.end_reason else "-")
        table.add_row(
            session.start_time.strftime("%Y-%m-%d %H:%M"),
            session.session_type.value,
            format_duration(session.planned_duration),
            format_duration(session.actual_duration_seconds),
            result,
            session.task.name if session.task else "",
        )

    console.print(table)


@app.command(name="config")
def config_show() -> None:
    """Show current configuration."""
    config = get_config()
    _print_config(config)


def _print_config(config: Config) -> None:
    table = Table(title="Focus Engine Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    # Paths
    table.add_row("[bold]Paths[/bold]", "")
    table.add_row("  Data Directory", str(config.data_dir))
    table.add_row("  Log Directory", str(config.log_dir))
    table.add_row("  Config Directory", str(config.config_dir))
    table.add_row("  Database", str(config.db_path))

    # Timer
    table.add_row("[bold]Timer[/bold]", "")
    table.add_row("  Work", f"{config.timer.work_minutes} min")
    table.add_row("  Short Break", f"{config.timer.short_break_minutes} min")
    table.add_row("  Long Break", f"{config.timer.long_break_minutes} min")
    table.add_row("  Long Break Every", f"{config.timer.long_break_interval} rounds")
    table.add_row("  Auto-start Breaks", str(config.timer.auto_start_breaks))
    table.add_row("  Auto-start Work", str(config.timer.auto_start_work))
    table.add_row("  Notifications", str(config.timer.enable_notifications))

    # Tracking
    table.add_row("[bold]Tracking[/bold]", "")
    table.add_row("  Enabled", str(config.tracking.enabled))
    table.add_row("  Interval", f"{config.tracking.interval_seconds}s")
    table.add_row("  Max Errors", str(config.tracking.max_error_count))
    table.add_row("  Error Reset", f"{config.tracking.error_reset_seconds}s")
    table.add_row("  Resume Window", f"{config.tracking.max_resume_hours}h")

    # History
    table.add_row("[bold]History[/bold]", "")
    table.add_row("  Minimum Session", f"{config.history.min_session_seconds}s")

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Focus Engine v{__version__}")


@app.callback()
def main_callback() -> None:
    """Focus Engine - Pomodoro focus timer with application tracking."""
    pass


if __name__ == "__main__":
    app()
