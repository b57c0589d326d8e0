"""CLI entry point for autowrite.

Usage:
  autowrite new -t "Title" -g fantasy -w 20000 -c "Chapter 1" -c "Chapter 2"
  autowrite run -p 1 [--checkpoint]
  autowrite approve -p 1
  autowrite regenerate -p 1 -c 3
  autowrite restart-failed -p 1
  autowrite status -p 1
  autowrite export -p 1 -o book.md
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click
from rich.panel import Panel

from cli.theme import (
    get_console,
    app_header,
    command_panel,
    success_panel,
    run_status_text,
    chapter_table,
)
from config.exceptions import AutoWriteError, WorkflowStateError
from config.settings import Settings
from config.logging_config import setup_logging
from models.chapter import Chapter
from models.database import Database
from models.enums import RunStatus, UnitStatus
from models.project import Project
from workflow.callbacks import RichProgressCallback
from workflow.orchestrator import Orchestrator, build_orchestrator
from workflow.recovery import RecoveryHintStore

logger = logging.getLogger(__name__)

console = get_console()


def _init_logging(verbose: bool):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    settings = Settings()
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=False)


def _load_project(db: Database, project_id: int) -> Project:
    project = db.get_project(project_id)
    if not project:
        console.print(f"[error]No project with ID {project_id}[/]")
        sys.exit(1)
    return project


async def _drive(orchestrator: Orchestrator, action):
    """Run an orchestrator operation with Ctrl+C mapped to pause()."""
    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.pause)
        handler_installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        logger.debug("SIGINT handler unavailable; Ctrl+C will abort instead of pausing")
    try:
        snapshot = await action()
        # Let background chapter summaries finish before the loop closes.
        await orchestrator.tracker.drain()
        return snapshot
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _execute(project_id: int, operation: str, checkpoint: bool = False, chapter_id: int = 0):
    """Build an orchestrator for the project and run one lifecycle operation."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)
    project = _load_project(db, project_id)
    chapters = db.get_chapters(project_id)

    console.print(app_header())
    console.print()
    console.print(command_panel(operation.replace("_", " ").capitalize(), {
        "Project": f"{project.title} ({project.genre or '-'})",
        "Chapters": str(len(chapters)),
        "Target": f"{project.target_word_count:,} words",
        "Checkpoint": "on" if checkpoint else "off",
    }))
    console.print()

    cb = RichProgressCallback(
        console=console, total_units=sum(len(ch.units) for ch in chapters),
    )
    orchestrator = build_orchestrator(
        db, project_id, settings=settings, callback=cb, checkpoint_mode=checkpoint,
    )
    orchestrator.restore_pending_approval()

    actions = {
        "run": orchestrator.start,
        "approve": orchestrator.approve,
        "regenerate": lambda: orchestrator.regenerate_chapter(chapter_id),
        "restart_failed": orchestrator.restart_failed_units,
    }

    try:
        cb.start()
        try:
            snapshot = asyncio.run(_drive(orchestrator, actions[operation]))
        finally:
            cb.stop()
    except WorkflowStateError as e:
        console.print(f"[error]{e}[/]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted[/]")
        sys.exit(130)

    _print_outcome(project_id, snapshot)
    if snapshot.status == RunStatus.ERROR:
        sys.exit(1)


def _print_outcome(project_id: int, snapshot):
    console.print()
    body = (
        f"  Status: {run_status_text(snapshot.status)}\n"
        f"  Units: [stat.value]{snapshot.completed_units}[/] done, "
        f"[stat.value]{snapshot.failed_units}[/] failed, "
        f"[stat.value]{snapshot.skipped_units}[/] skipped of {snapshot.total_units}\n"
        f"  Words: [stat.value]{snapshot.total_words:,}[/] / {snapshot.target_words:,}"
    )
    if snapshot.status == RunStatus.COMPLETED:
        console.print(success_panel("Generation complete", body))
        console.print(f"\nNext: [info]autowrite export -p {project_id}[/]")
    elif snapshot.status == RunStatus.AWAITING_APPROVAL and snapshot.pending_approval:
        pending = snapshot.pending_approval
        console.print(Panel(body, title="[bold]Awaiting approval[/]", border_style="blue", padding=(0, 2)))
        console.print(
            f"\n'{pending.chapter_title}' is ready ({pending.word_count:,} words). "
            f"[info]autowrite approve -p {project_id}[/] or "
            f"[info]autowrite regenerate -p {project_id} -c {pending.chapter_id}[/]"
        )
    elif snapshot.status == RunStatus.ERROR:
        console.print(Panel(body, title="[error]Run stopped[/]", border_style="red", padding=(0, 2)))
        console.print(f"\n[error]Error: {snapshot.error}[/]")
    else:
        console.print(Panel(body, title="[bold]Paused[/]", border_style="dim", padding=(0, 2)))
        console.print(f"\nResume with [info]autowrite run -p {project_id}[/]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """autowrite: orchestrated long-form document generation.

    \b
      autowrite new -t "My Book" -c "Opening" -c "Middle" -c "End"
      autowrite run -p 1 --checkpoint
      autowrite status -p 1
    """
    _init_logging(verbose)


# ---------------------------------------------------------------------------
# new command
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--title", "-t", required=True, help="Project title")
@click.option("--genre", "-g", default="", help="Genre or document kind (e.g. fantasy, technical guide)")
@click.option("--target-words", "-w", default=None, type=int, help="Target word count")
@click.option("--chapter", "-c", "chapter_titles", multiple=True, required=True,
              help="Chapter title; repeat for each chapter in order")
def new(title, genre, target_words, chapter_titles):
    """Create a project and its chapters. Outlines are generated on the first run."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)
    target = target_words or settings.default_target_words
    if target < 1:
        console.print("[error]--target-words must be positive[/]")
        sys.exit(1)

    project_id = db.create_project(Project(title=title, genre=genre, target_word_count=target))
    for order, chapter_title in enumerate(chapter_titles):
        db.create_chapter(Chapter(project_id=project_id, title=chapter_title, sort_order=order))
    logger.info("Created project %d with %d chapter(s)", project_id, len(chapter_titles))

    console.print(app_header())
    console.print()
    console.print(success_panel("Project created", (
        f"  ID: [stat.value]{project_id}[/]\n"
        f"  Title: [stat.value]{title}[/]\n"
        f"  Chapters: [stat.value]{len(chapter_titles)}[/]\n"
        f"  Target: [stat.value]{target:,}[/] words"
    )))
    console.print(f"\nNext: [info]autowrite run -p {project_id}[/]")


# ---------------------------------------------------------------------------
# run lifecycle commands
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--project-id", "-p", required=True, type=int, help="Project ID")
@click.option("--checkpoint", is_flag=True, help="Stop for approval after each chapter")
def run(project_id, checkpoint):
    """Start or resume generation. Ctrl+C pauses; run again to resume.

    A chapter held for approval stays held across restarts until it is
    approved or regenerated.
    """
    _execute(project_id, "run", checkpoint=checkpoint)


@cli.command()
@click.option("--project-id", "-p", required=True, type=int, help="Project ID")
@click.option("--checkpoint/--no-checkpoint", default=True, help="Keep stopping after each chapter")
def approve(project_id, checkpoint):
    """Approve the chapter under review and continue."""
    _execute(project_id, "approve", checkpoint=checkpoint)


@cli.command()
@click.option("--project-id", "-p", required=True, type=int, help="Project ID")
@click.option("--chapter-id", "-c", required=True, type=int, help="Chapter ID to rewrite")
@click.option("--checkpoint/--no-checkpoint", default=True, help="Keep stopping after each chapter")
def regenerate(project_id, chapter_id, checkpoint):
    """Discard a chapter's text and write it again."""
    _execute(project_id, "regenerate", checkpoint=checkpoint, chapter_id=chapter_id)


@cli.command(name="restart-failed")
@click.option("--project-id", "-p", required=True, type=int, help="Project ID")
@click.option("--checkpoint", is_flag=True, help="Stop for approval after each chapter")
def restart_failed(project_id, checkpoint):
    """Reset failed and skipped units to pending and resume."""
    _execute(project_id, "restart_failed", checkpoint=checkpoint)


# ---------------------------------------------------------------------------
# status / export
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--project-id", "-p", default=None, type=int, help="Project ID (omit to list all)")
def status(project_id):
    """Show project progress."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)

    console.print(app_header())
    console.print()

    if project_id is None:
        projects = db.list_projects()
        if not projects:
            console.print("[warning]No projects yet. Create one with [info]autowrite new[/].[/]")
            return
        for p in projects:
            console.print(f"  [chapter.num]{p.id}[/] {p.title} [muted]({p.genre or '-'}, {p.target_word_count:,} words)[/]")
        return

    project = _load_project(db, project_id)
    chapters = db.get_chapters(project_id)
    units = [u for ch in chapters for u in ch.units]
    total_words = sum(ch.word_count for ch in chapters)

    console.print(Panel(
        f"  [stat.label]Genre:[/] [genre]{project.genre or '-'}[/]  "
        f"[muted]|[/]  [stat.label]Words:[/] [stat.value]{total_words:,}[/] / {project.target_word_count:,}\n"
        f"  [stat.label]Units:[/] "
        f"[success]{sum(1 for u in units if u.status == UnitStatus.DONE)} done[/], "
        f"[error]{sum(1 for u in units if u.status == UnitStatus.FAILED)} failed[/], "
        f"[accent]{sum(1 for u in units if u.status == UnitStatus.SKIPPED)} skipped[/], "
        f"{sum(1 for u in units if u.status == UnitStatus.PENDING)} pending",
        title=f"[bold]{project.title}[/] [muted](ID: {project.id})[/]",
        border_style="dim",
        padding=(0, 2),
    ))
    console.print()
    if chapters:
        console.print(chapter_table(chapters))

    hints = RecoveryHintStore(settings.recovery_hint_path, settings.recovery_hint_ttl_hours)
    hint = hints.get(project_id)
    if hint and hint.get("status") != RunStatus.COMPLETED.value:
        console.print(
            f"\n[warning]Unfinished run ({hint.get('status')}); "
            f"resume with [info]autowrite run -p {project_id}[/][/]"
        )


@cli.command()
@click.option("--project-id", "-p", required=True, type=int, help="Project ID")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Output file (default: stdout)")
def export(project_id, output):
    """Write the generated text, chapter by chapter, as Markdown."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)
    project = _load_project(db, project_id)

    sections = [f"# {project.title}"]
    for chapter in db.get_chapters(project_id):
        text = db.get_chapter_text(chapter.id)
        sections.append(f"## {chapter.title}\n\n{text}" if text else f"## {chapter.title}")
    document = "\n\n".join(sections) + "\n"

    if output is None:
        click.echo(document, nl=False)
        return
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(document, encoding="utf-8")
    except OSError as e:
        console.print(f"[error]Export failed: {e}[/]")
        sys.exit(1)
    console.print(f"[success]Exported to {output}[/]")


def main():
    """Entry point."""
    try:
        cli()
    except AutoWriteError as e:
        console.print(f"[error]{e}[/]")
        sys.exit(1)


if __name__ == "__main__":
    main()
