"""Cluster inspection and manifest CLI commands.

This module provides CLI commands for working with clusters directly:
- topology: Probe a live node and show the cluster as it sees it
- validate: Parse a manifest and show the topology it declares
- delete: Request deletion of a managed cluster

asyncio.run() executes the async probe and store calls inside the sync
commands. Rich tables for humans, JSON for automation.
"""

import asyncio
import json
from dataclasses import asdict
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from operator_core.config import OperatorSettings
from operator_protocols import Role

console = Console()


def show_topology(
    endpoint: str = typer.Argument(..., help="Node address (host:port)"),
    password: str = typer.Option(
        None, "--password", "-p", envvar="REDIS_OPERATOR_REDIS_PASSWORD", help="Redis password"
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show the cluster nodes as seen by ENDPOINT."""
    from operator_redis import (
        ProbeUnreachableError,
        RedisConnector,
        TopologyParseError,
        TopologyProbe,
    )
    from operator_redis.topology import HASH_SLOTS

    settings = OperatorSettings()
    probe = TopologyProbe(
        RedisConnector(
            password=password or settings.redis_password,
            socket_timeout=settings.redis_socket_timeout,
        )
    )
    try:
        topology = asyncio.run(probe.observe([endpoint], require_reachable=True))
    except (ProbeUnreachableError, TopologyParseError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    nodes = sorted(topology.nodes.values(), key=lambda n: (n.role != Role.LEADER, n.address))

    if json_output:
        data = [asdict(n) for n in nodes]
        print(json.dumps(data, indent=2, default=_jsonable))
        return

    table = Table(title=f"Cluster nodes via {endpoint}")
    table.add_column("ID", style="cyan")
    table.add_column("Address")
    table.add_column("Role")
    table.add_column("Link")
    table.add_column("Flags")
    table.add_column("Leader")
    table.add_column("Slots", justify="right")

    for node in nodes:
        link_style = "red" if node.is_unhealthy else "green"
        table.add_row(
            node.id[:8],
            node.address or "-",
            node.role.value if node.role else "-",
            f"[{link_style}]{node.link_state.value}[/{link_style}]",
            ",".join(sorted(node.flags)) or "-",
            node.master_id[:8] if node.master_id else "-",
            str(node.slot_count),
        )

    console.print(table)

    covered = sum(n.slot_count for n in nodes)
    unhealthy = topology.unhealthy()
    status = "[green]healthy[/green]" if unhealthy == 0 else f"[red]{unhealthy} unhealthy[/red]"
    console.print(
        f"{topology.total} nodes "
        f"({topology.count(Role.LEADER)} leaders, {topology.count(Role.FOLLOWER)} followers), "
        f"{status}, slots covered {covered}/{HASH_SLOTS}"
    )


def validate_manifest(
    manifest: Path = typer.Argument(..., help="RedisCluster manifest (YAML)"),
) -> None:
    """Parse a manifest and print the topology it declares."""
    from operator_redis import ManifestError, load_manifest

    try:
        cluster = load_manifest(manifest)
    except (ManifestError, OSError) as e:
        console.print(f"[red]Invalid:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    spec = cluster.spec
    console.print(f"[green]Valid[/green] RedisCluster [bold]{cluster.name}[/bold]")
    console.print(f"  Leaders: {spec.leader_count}")
    console.print(f"  Followers: {spec.follower_count}")
    console.print(f"  Total replicas: {spec.total_replicas}")
    if spec.kubernetes_config.image:
        console.print(f"  Image: {spec.kubernetes_config.image}")
    if cluster.skip_reconcile:
        console.print("  [yellow]Reconcile is paused (skip-reconcile annotation)[/yellow]")
    if spec.leader_count == 0:
        console.print("  [yellow]No leaders: the cluster will never be formed[/yellow]")


def delete_cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    manifests_dir: Path = typer.Option(
        None, "--manifests", "-m", help="Directory of RedisCluster manifests"
    ),
) -> None:
    """
    Request deletion of a cluster.

    A running controller releases the cluster's resources on its next
    pass and then removes the manifest.
    """
    from operator_redis import ManifestError, ManifestStore

    directory = manifests_dir or OperatorSettings().manifests_dir
    store = ManifestStore(directory)
    try:
        existed = asyncio.run(store.request_deletion(name))
    except ManifestError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not existed:
        console.print(f"[red]Error:[/red] no cluster named {name} in {directory}")
        raise typer.Exit(1)
    if store.path_for(name).exists():
        console.print(f"Deletion of {name} requested")
    else:
        console.print(f"Deleted {name}")


def _jsonable(value: object) -> object:
    if isinstance(value, frozenset):
        return sorted(value)
    return str(value)
