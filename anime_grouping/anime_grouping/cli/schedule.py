"""
Schedule command.

Runs the decay job in the background until interrupted.
"""
import click
import logging
import time
from typing import Optional

from .base import console, load_engine, fail
from ..scheduler import DecayScheduler
from ..config import get_learning_config, get_storage_config
from ..logging import log_step

logger = logging.getLogger(__name__)


@click.command()
@click.option("--interval", type=float, default=None, help="Seconds between runs (default: LEARNING_DECAY_INTERVAL_SECONDS).")
@click.option("--days", type=int, default=None, help="Days unused before a pattern decays.")
@click.option("--once", is_flag=True, help="Run a single pass under the scheduler lock and exit.")
def schedule(interval: Optional[float], days: Optional[int], once: bool) -> None:
    """Runs the pattern decay job on a fixed period."""
    learning = get_learning_config()
    engine = load_engine()
    scheduler = DecayScheduler(
        engine.feedback_loop,
        interval_seconds=interval if interval is not None else learning.decay_interval_seconds,
        days_threshold=days if days is not None else learning.decay_threshold_days,
        lock_path=get_storage_config().scheduler_lock_file,
        run_immediately=True,
    )

    if once:
        if not scheduler.acquire_lock():
            fail(f"Another decay scheduler holds {scheduler.lock_path}")
        try:
            report = scheduler.run_once()
        finally:
            scheduler.release_lock()
        status = scheduler.status()
        if not status["last_run_ok"]:
            fail(f"Decay pass failed: {status['last_error']}")
        console.print(f"[green]Decay pass done:[/green] {report.decayed_count} of {report.examined} patterns decayed.")
        return

    log_step("Starting decay scheduler")
    if not scheduler.start():
        fail(f"Another decay scheduler holds {scheduler.lock_path}")

    console.print(f"[green]Decay scheduler running every {scheduler.interval_seconds:g}s.[/green] Press Ctrl+C to stop.")
    try:
        while scheduler.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping...[/yellow]")
    finally:
        if not scheduler.stop():
            console.print("[yellow]A decay pass is still finishing; the lock is released when it ends.[/yellow]")
        status = scheduler.status()
        console.print(f"[dim]Runs: {status['runs']}, last run: {status['last_run_at'] or '-'}[/dim]")
