"""Operator CLI - reconciles Redis Clusters toward their declared topology."""

import logging

import typer
from rich.logging import RichHandler

from operator_core.cli.cluster import delete_cluster, show_topology, validate_manifest
from operator_core.cli.run import run_controller
from operator_core.config import OperatorSettings

app = typer.Typer(
    name="redis-operator",
    help="Operator that forms, scales and heals Redis Clusters",
    no_args_is_help=True,
)

app.command("run")(run_controller)
app.command("topology")(show_topology)
app.command("validate")(validate_manifest)
app.command("delete")(delete_cluster)


def configure_logging(level: str) -> None:
    """Route library logging through a rich handler."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", "-l", help="Log level (default: REDIS_OPERATOR_LOG_LEVEL or INFO)"
    ),
) -> None:
    configure_logging(log_level or OperatorSettings().log_level)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
