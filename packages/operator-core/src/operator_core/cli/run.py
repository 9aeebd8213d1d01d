"""Controller daemon CLI command.

This module provides the CLI command for running the controller:
- run: Reconcile every manifest in a directory until interrupted

Options fall back to OperatorSettings, which reads REDIS_OPERATOR_*
environment variables.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from operator_core.cli.subject_factory import AVAILABLE_SUBJECTS, create_reconciler
from operator_core.config import OperatorSettings
from operator_core.controller import ControllerLoop

console = Console()


def run_controller(
    manifests_dir: Path = typer.Option(
        None, "--manifests", "-m", help="Directory of RedisCluster manifests"
    ),
    subject: str = typer.Option(
        "redis-cluster",
        "--subject",
        "-s",
        help=f"Subject to reconcile ({', '.join(AVAILABLE_SUBJECTS)})",
    ),
    workers: int = typer.Option(None, "--workers", "-w", help="Concurrent reconcile workers"),
    resync: float = typer.Option(None, "--resync", help="Seconds between full re-lists"),
) -> None:
    """
    Run the controller daemon.

    Reconciles every manifest in the directory, re-listing it periodically.
    Runs until interrupted with Ctrl+C.

    Environment variables:
        REDIS_OPERATOR_MANIFESTS_DIR: Manifest directory
        REDIS_OPERATOR_REDIS_PASSWORD: Redis password for nodes and admin calls
        REDIS_OPERATOR_WORKERS: Worker count
        REDIS_OPERATOR_FAILOVER_FLUSH_DATA: FLUSHALL nodes before the failover reset
    """
    overrides = {
        "manifests_dir": manifests_dir,
        "workers": workers,
        "resync_seconds": resync,
    }
    settings = OperatorSettings(**{k: v for k, v in overrides.items() if v is not None})

    try:
        reconciler, store = create_reconciler(subject, settings)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not settings.manifests_dir.is_dir():
        console.print(f"[red]Error:[/red] {settings.manifests_dir} is not a directory")
        raise typer.Exit(1)

    console.print(f"Starting controller for subject: [bold]{subject}[/bold]")
    console.print(f"  Manifests: {settings.manifests_dir}")
    console.print(f"  Workers: {settings.workers}")
    console.print(f"  Resync: {settings.resync_seconds}s")
    console.print()
    console.print("Press Ctrl+C to stop")
    console.print()

    loop = ControllerLoop(
        reconciler=reconciler,
        store=store,
        workers=settings.workers,
        resync_seconds=settings.resync_seconds,
        pass_timeout_seconds=settings.pass_timeout_seconds,
        error_requeue_seconds=settings.error_requeue_seconds,
    )
    asyncio.run(loop.run())
