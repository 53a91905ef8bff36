"""
Typer CLI for vidlingo.

Commands:
    vidlingo db init                    - Create database tables
    vidlingo progress show USER         - XP, level and streak
    vidlingo progress review USER       - Vocabulary due for review
    vidlingo progress video USER VIDEO  - Learning status and stats for one video
    vidlingo version                    - Show version information

Usage:
    vidlingo --help
    vidlingo progress review alice
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from vidlingo import __version__
from vidlingo.logging_setup import configure_logging
from vidlingo.progress.engine import ProgressEngine

console = Console()

T = TypeVar("T")

app = typer.Typer(
    help="vidlingo CLI: learning progress for video-based language study",
    no_args_is_help=True,
)

db_app = typer.Typer(help="Database management")
progress_app = typer.Typer(help="Inspect learner progress", no_args_is_help=True)
app.add_typer(db_app, name="db")
app.add_typer(progress_app, name="progress")


@app.callback()
def main_callback(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs")) -> None:
    configure_logging(get_settings(), level="DEBUG" if verbose else "ERROR")


def _get_engine() -> ProgressEngine:
    """Lazy load the engine so --help works without a database driver."""
    from vidlingo.api.dependencies import get_progress_engine

    return get_progress_engine()


def _run(work: Coroutine[Any, Any, T]) -> T:
    """Run one command's coroutine, then close pooled database connections."""

    async def _wrapped() -> T:
        from vidlingo.db import database

        try:
            return await work
        finally:
            await database.dispose_engine()

    return asyncio.run(_wrapped())


def _format_progress_bar(percent: float, width: int = 20) -> str:
    filled = max(0, min(width, int(percent / 100 * width)))
    return "#" * filled + "-" * (width - filled)


# ========================================
# Database
# ========================================


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from vidlingo.db.database import init_db

    logger.info("Initializing database tables...")
    _run(init_db())
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Progress
# ========================================


@progress_app.command("show")
def progress_show(user_id: str = typer.Argument(..., help="User identifier")) -> None:
    """Show XP, level and streak for a user."""
    progress = _run(_get_engine().get_user_progress(user_id))

    table = Table(title=f"Progress: {user_id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("Level", str(progress.level))
    table.add_row("Total XP", str(progress.total_xp))
    table.add_row("Streak", f"{progress.current_streak} days")
    table.add_row("Last activity", progress.last_activity.isoformat() if progress.last_activity else "-")
    console.print(table)


@progress_app.command("review")
def progress_review(
    user_id: str = typer.Argument(..., help="User identifier"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum rows to show"),
) -> None:
    """List vocabulary due for review, never-reviewed words first."""
    due = _run(_get_engine().get_due_vocabulary(user_id))

    if not due:
        rprint("[green]All caught up![/green] Nothing due for review.")
        return

    table = Table(title=f"Review queue: {user_id} ({len(due)} due)")
    table.add_column("Word", style="bold")
    table.add_column("Translation")
    table.add_column("Video", justify="right")
    table.add_column("Mastery", justify="right")
    table.add_column("Due", style="dim")

    for entry in due[:limit]:
        table.add_row(
            entry.word.word_de if entry.word else str(entry.word_id),
            entry.word.word_fr if entry.word else "",
            str(entry.video_id),
            f"{entry.mastery_level}/5",
            entry.next_review.strftime("%Y-%m-%d %H:%M") if entry.next_review else "new",
        )
    console.print(table)


@progress_app.command("video")
def progress_video(
    user_id: str = typer.Argument(..., help="User identifier"),
    video_id: int = typer.Argument(..., help="Video ID"),
) -> None:
    """Show learning status and statistics for one video."""

    async def _load():
        engine = _get_engine()
        status = await engine.get_video_learning_status(user_id, video_id)
        stats = await engine.get_video_stats_summary(user_id, video_id)
        return status, stats

    status, stats = _run(_load())

    watching = stats.watching_progress
    exercises = stats.exercise_progress
    vocab = stats.vocabulary_progress

    rprint(f"[bold]Video {video_id}[/bold] for {user_id}")
    rprint(f"  Progress   {_format_progress_bar(status.progress)} {status.progress}%")
    rprint(f"  Segments   {status.total_segments}")
    rprint(
        f"  Watched    {watching.watched_seconds}s"
        + (" [green](completed)[/green]" if watching.is_completed else "")
    )
    rprint(
        f"  Exercises  {exercises.total_exercises} done, {exercises.correct_exercises} correct, "
        f"avg score {exercises.average_score:.1f}"
    )
    rprint(
        f"  Words      {vocab.mastered_words} mastered / {vocab.in_progress_words} learning / "
        f"{vocab.new_words} new"
    )
    if status.last_activity:
        rprint(f"  Last activity {status.last_activity.isoformat()}")


@app.command()
def version() -> None:
    """Show version information."""
    rprint(f"[bold]vidlingo[/bold] v{__version__}")
    rprint("  Learning progress & mastery tracking")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
