#!/usr/bin/env python3
"""
versereel: narrated vertical scripture videos, one chapter per run.

Usage:
    versereel                        # Process the next chapter (same as `run`)
    versereel run                    # Render, narrate, mux, upload, advance
    versereel preview                # Paginate the next chapter, no API calls
    versereel preview --render       # ...and write slide PNGs to the tmp dir
    versereel status                 # Show the progress cursor
    versereel quota-status           # Remaining characters per ElevenLabs key
    versereel test-connections       # Check storage and narration access
    versereel reset-credentials      # Start again from the first API key

Also runnable as ``python -m versereel.main``.
"""

import json
import sys
from datetime import datetime
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from versereel.errors import (
    CredentialsExhausted,
    EndOfSource,
    SourceLoadFailure,
    StorePersistFailure,
    VerseReelError,
)

load_dotenv()

console = Console()


def _log_run(log_dir: Path, action: str, results: dict):
    """Append run results to the daily JSON-lines log."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"
    entry = {
        "timestamp": datetime.now().isoformat(),
        "action": action,
        "results": results,
    }
    with open(log_file, "a") as f:
        f.write(json.dumps(entry) + "\n")


def _fail(config: dict, action: str, message: str, error: Exception):
    console.print(f"[bold red]{message}:[/] {error}")
    _log_run(config["paths"]["log_dir"], action, {
        "status": "failed",
        "error_type": type(error).__name__,
        "error": str(error),
    })
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Path to config.yaml (default: project root or $VERSEREEL_CONFIG)")
@click.pass_context
def cli(ctx, config_path):
    """Narrated vertical scripture videos, one chapter per run"""
    from versereel.session import load_config

    ctx.obj = load_config(config_path)
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.pass_obj
def run(config):
    """Process the next chapter: render, narrate, mux, upload, advance"""
    from versereel.pipeline import run_chapter
    from versereel.session import Session

    console.print(Panel.fit(
        "[bold cyan]versereel[/bold cyan]\n"
        f"Chapter run | {datetime.now().strftime('%A, %B %d %Y %H:%M')}",
        border_style="cyan",
    ))

    try:
        session = Session.create(config)
        result = run_chapter(session)
    except EndOfSource as e:
        console.print(f"[bold green]Source finished:[/] {e}. Nothing left to process.")
        _log_run(config["paths"]["log_dir"], "run", {"status": "end_of_source"})
        return
    except SourceLoadFailure as e:
        _fail(config, "run", "Could not load source text", e)
    except CredentialsExhausted as e:
        _fail(config, "run", "No narration credential left", e)
    except (VerseReelError, EnvironmentError) as e:
        _fail(config, "run", "Run failed, progress not advanced", e)

    _log_run(config["paths"]["log_dir"], "run", {
        "status": "ok",
        "chapter": result.unit.title,
        "slides": result.slide_count,
        "duration": round(result.duration, 2),
        "video": str(result.video_path),
        "uri": result.uri,
        "next": result.next_state.to_dict(),
    })


@cli.command()
@click.option("--render", "render_images", is_flag=True, help="Also write slide images to the tmp dir")
@click.pass_obj
def preview(config, render_images):
    """Paginate the next chapter without calling any API"""
    from versereel.pipeline import clean_dir, plan_chapter
    from versereel.session import Session
    from versereel.video.narration import narration_text
    from versereel.video.render import SlideRenderer

    try:
        session = Session.create(config, with_narration=False)
        renderer = SlideRenderer(config["layout"])
        unit, slides = plan_chapter(session, renderer)
    except EndOfSource as e:
        console.print(f"[green]Source finished:[/green] {e}")
        return
    except (SourceLoadFailure, EnvironmentError) as e:
        _fail(config, "preview", "Preview failed", e)

    table = Table(title=f"{unit.title}: {len(unit.verses)} verses, {len(slides)} slides")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Narration chars", justify="right")
    table.add_column("Text", overflow="ellipsis", no_wrap=True, max_width=60)

    for i, slide in enumerate(slides):
        table.add_row(
            str(i + 1),
            str(len(narration_text(slide, i))),
            slide.display_text,
        )
        if render_images:
            if i == 0:
                clean_dir(session.tmp_dir)
            path = renderer.render(slide, session.tmp_dir / f"slide_{i}.png")
            console.print(f"[dim]  wrote {path}[/dim]")

    console.print(table)
    total = sum(len(narration_text(s, i)) for i, s in enumerate(slides))
    console.print(f"[bold]Narration total:[/] {total:,} characters")


@cli.command()
@click.pass_obj
def status(config):
    """Show the progress cursor and the next chapter"""
    from versereel.progress import completed_chapters, next_chapter
    from versereel.session import Session

    try:
        session = Session.create(config, with_narration=False)
    except (SourceLoadFailure, EnvironmentError) as e:
        _fail(config, "status", "Status failed", e)

    state = session.state
    done = completed_chapters(state, session.source)
    total = session.source.total_chapters

    table = Table(title="Progress")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Book index", str(state.book))
    table.add_row("Chapter index", str(state.chapter))
    table.add_row("API key index", str(state.credential_index))
    table.add_row("Completed", f"{done}/{total} chapters ({done / max(total, 1) * 100:.1f}%)")
    try:
        table.add_row("Next", next_chapter(state, session.source).title)
    except EndOfSource:
        table.add_row("Next", "[green]finished[/green]")
    console.print(table)


@cli.command(name="quota-status")
@click.pass_obj
def quota_status(config):
    """Remaining characters on each ElevenLabs key"""
    from versereel.credentials import CredentialRotator, discover_credentials

    keys = discover_credentials()
    if not keys:
        _fail(config, "quota-status", "No API keys", CredentialsExhausted("no ELEVENLABS_API_KEY set"))

    rotator = CredentialRotator(keys)
    table = Table(title="ElevenLabs Quota")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Key")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Remaining", justify="right")

    for entry in rotator.quota_report():
        if entry["status"] != "ok":
            table.add_row(str(entry["index"]), entry["key"], "-", "-", f"[red]{entry['error'][:40]}[/red]")
            continue
        remaining = entry["remaining"]
        color = "green" if remaining > 5000 else "yellow" if remaining > 0 else "red"
        table.add_row(
            str(entry["index"]),
            entry["key"],
            f"{entry['used']:,}",
            f"{entry['limit']:,}",
            f"[{color}]{remaining:,}[/{color}]",
        )
    console.print(table)


@cli.command(name="test-connections")
@click.pass_obj
def test_connections(config):
    """Check access to the object store and the first narration key"""
    from versereel.credentials import discover_credentials
    from versereel.storage import ObjectStore
    from versereel.video.voiceover import SpeechClient

    table = Table(title="Connection Status")
    table.add_column("Service", style="bold")
    table.add_column("Status")

    try:
        ObjectStore.from_env(config["storage"]).test_connection()
        table.add_row("storage", "[green]Connected ✓[/green]")
    except Exception as e:
        table.add_row("storage", f"[red]Failed: {e}[/red]")

    keys = discover_credentials()
    if not keys:
        table.add_row("elevenlabs", "[red]No API key set[/red]")
    else:
        try:
            remaining = SpeechClient(keys[0]).remaining_quota()
            table.add_row("elevenlabs", f"[green]Connected ✓[/green] ({remaining:,} chars left on key #0)")
        except Exception as e:
            table.add_row("elevenlabs", f"[red]Failed: {e}[/red]")

    console.print(table)


@cli.command(name="reset-credentials")
@click.pass_obj
def reset_credentials(config):
    """Set the stored API key index back to #0 (e.g. after quotas renew)"""
    from versereel.session import Session

    try:
        session = Session.create(config, with_narration=False)
        session.progress.save(session.state.with_credential(0), strict=True)
    except (SourceLoadFailure, StorePersistFailure, EnvironmentError) as e:
        _fail(config, "reset-credentials", "Reset failed", e)

    console.print("[green]API key index reset to #0[/green]")
    _log_run(config["paths"]["log_dir"], "reset-credentials", {"status": "ok"})


if __name__ == "__main__":
    cli()
