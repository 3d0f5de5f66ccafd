"""Command-line interface for jobmanager.

CONCEPTS:
---------
- JOB:      An object exposing ``run() -> int`` scheduled to run once
            (unique) or on a calendar interval (repeatable).

- SNAPSHOT: The JSON file holding every job's schedule. A job
            re-registered after a restart resumes from it.

- JOURNAL:  The size-bounded log of every tick, execution and failure.
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import NoReturn

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from jobmanager import __version__
from jobmanager.config import settings
from jobmanager.engine import (
    JobManagerError,
    JsonSnapshotBackend,
    Scheduler,
    load_definitions,
    time_until,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    fmt = "%(name)s: %(message)s" if verbose else "%(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[RichHandler(rich_tracebacks=True, console=console, show_path=verbose)],
    )


def _format_delta(seconds: float) -> str:
    """Format a duration like ``in 2h 5m`` or ``overdue 30s``."""
    prefix = "in" if seconds >= 0 else "overdue"
    remaining = int(abs(seconds))
    hours, remaining = divmod(remaining, 3600)
    minutes, secs = divmod(remaining, 60)
    if hours:
        return f"{prefix} {hours}h {minutes}m"
    if minutes:
        return f"{prefix} {minutes}m {secs}s"
    return f"{prefix} {secs}s"


def cmd_start(args: argparse.Namespace) -> None:
    """Run the scheduler in the foreground with the definitions file."""
    jobs_file = Path(args.jobs) if args.jobs else settings.get_jobs_file()

    try:
        definitions = load_definitions(jobs_file)
    except JobManagerError as e:
        console.print(f"[red]Invalid definitions:[/red] {e}")
        sys.exit(1)

    if not definitions:
        console.print(f"[yellow]No jobs defined in[/yellow] {jobs_file}")
        sys.exit(0)

    scheduler = Scheduler(
        settings.get_snapshot_path(),
        settings.get_log_path(),
        args.tick_ms or settings.tick_interval_ms,
        first_tick_delay_ms=settings.first_tick_delay_ms,
        log_max_bytes=settings.log_max_bytes,
        log_backup_count=settings.log_backup_count,
    )

    console.print(f"[bold]Starting scheduler[/bold] ({len(definitions)} jobs)\n")
    for definition in definitions:
        try:
            job = scheduler.add_job(definition.build())
        except JobManagerError as e:
            console.print(f"[red]Cannot register '{definition.id}':[/red] {e}")
            scheduler.close()
            sys.exit(1)

        console.print(
            f"  [cyan]{job.id}[/cyan] ({job.kind.value}) "
            f"next run {job.next_run_at.isoformat()}"
        )

    console.print(f"\n  Snapshot: {scheduler.table.path}")
    console.print(f"  Journal: {scheduler.journal.path}")
    console.print("[dim]Press Ctrl+C to stop.[/dim]\n")

    stop_requested = threading.Event()

    def handle_signal(signum, frame):
        stop_requested.set()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    scheduler.start()
    try:
        while not stop_requested.wait(1):
            pass
    finally:
        scheduler.close()
        console.print("\n[dim]Scheduler stopped.[/dim]")


def cmd_list(args: argparse.Namespace) -> None:
    """List the jobs stored in the snapshot."""
    backend = JsonSnapshotBackend()
    try:
        records = backend.load(settings.get_snapshot_path())
    except JobManagerError as e:
        console.print(f"[red]Cannot read snapshot:[/red] {e}")
        sys.exit(1)

    if not records:
        console.print("[yellow]No scheduled jobs.[/yellow]")
        return

    table = Table(title="Scheduled Jobs")
    table.add_column("ID", style="cyan")
    table.add_column("Kind", style="white")
    table.add_column("Interval", style="yellow")
    table.add_column("Next Run", style="blue")
    table.add_column("Runs", style="magenta")
    table.add_column("Errors", style="red")

    for record in records:
        due = _format_delta(time_until(record.next_run_at).total_seconds())
        table.add_row(
            record.id,
            record.kind.value,
            record.interval.describe() if record.is_repeatable else "-",
            f"{record.next_run_at.isoformat()} ({due})",
            str(record.state.run_count),
            str(record.state.error_count),
        )

    console.print(table)


def cmd_remove(args: argparse.Namespace) -> None:
    """Remove a job record from the snapshot."""
    backend = JsonSnapshotBackend()
    if backend.remove_record(settings.get_snapshot_path(), args.job_id):
        console.print(f"[green]Removed:[/green] {args.job_id}")
    else:
        console.print(f"[red]Job not found:[/red] {args.job_id}")
        sys.exit(1)


def cmd_log(args: argparse.Namespace) -> None:
    """Show the end of the scheduler journal."""
    log_path = settings.get_log_path()
    if not log_path.exists():
        console.print("[yellow]No journal found[/yellow]")
        return

    if args.lines < 1:
        return

    lines = log_path.read_text(encoding="utf-8").strip().split("\n")
    for line in lines[-args.lines:]:
        console.print(line, markup=False)


def cmd_version(args: argparse.Namespace) -> None:
    """Show version and configuration information."""
    console.print(f"[bold]jobmanager[/bold] v{__version__}")
    console.print(f"Snapshot: {settings.get_snapshot_path()}")
    console.print(f"Journal: {settings.get_log_path()}")
    console.print(f"Tick interval: {settings.tick_interval_ms}ms")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobmanager",
        description="Run and inspect in-process scheduled jobs.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Show debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # start
    start_parser = subparsers.add_parser(
        "start",
        help="Run the scheduler in the foreground",
        description="Register the jobs of a definitions file and run them "
                    "until interrupted.",
        epilog="""YAML file format:
  jobs:
    - id: nightly-backup
      target: myapp.jobs:Backup
      first_run: "2026-01-01T02:00:00+00:00"
      interval: {days: 1}
      kind: repeatable"""
    )
    start_parser.add_argument("--jobs", help="Path to the YAML definitions file")
    start_parser.add_argument("--tick-ms", type=int, help="Milliseconds between ticks")
    start_parser.set_defaults(func=cmd_start)

    # list
    list_parser = subparsers.add_parser("list", help="List jobs in the snapshot")
    list_parser.set_defaults(func=cmd_list)

    # remove
    remove_parser = subparsers.add_parser("remove", help="Remove a job from the snapshot")
    remove_parser.add_argument("job_id", help="Job ID")
    remove_parser.set_defaults(func=cmd_remove)

    # log
    log_parser = subparsers.add_parser("log", help="Show the scheduler journal")
    log_parser.add_argument(
        "-n", "--lines", type=int, default=40,
        help="Number of lines to show (default: 40)"
    )
    log_parser.set_defaults(func=cmd_log)

    # version
    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main() -> NoReturn:
    """Main entry point for the jobmanager CLI."""
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    args.func(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
