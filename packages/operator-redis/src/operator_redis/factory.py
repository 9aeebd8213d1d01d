"""
Factory function for creating the Redis Cluster reconciler.

This module provides a factory for CLI integration, allowing operator-core
to wire up a reconciler and its store without importing the individual
executors.
"""

from pathlib import Path

from operator_protocols import ResourceProvisionerProtocol
from operator_redis.failover import FailoverExecutor
from operator_redis.formation import FormationExecutor
from operator_redis.probe import TopologyProbe
from operator_redis.provisioner import DockerProvisioner
from operator_redis.reconciler import RedisClusterReconciler, RequeueIntervals
from operator_redis.redis_client import RedisConnector
from operator_redis.replication import ReplicationExecutor
from operator_redis.store import ManifestStore
from operator_redis.types import DEFAULT_REDIS_IMAGE, DEFAULT_REDIS_PORT


def create_redis_reconciler(
    manifests_dir: Path,
    redis_password: str | None = None,
    redis_port: int = DEFAULT_REDIS_PORT,
    socket_timeout: float = 5.0,
    redis_image: str = DEFAULT_REDIS_IMAGE,
    failover_flush_data: bool = False,
    failover_hard_reset: bool = False,
    provisioner: ResourceProvisionerProtocol | None = None,
    intervals: RequeueIntervals | None = None,
) -> tuple[RedisClusterReconciler, ManifestStore]:
    """
    Create a Redis Cluster reconciler and the store it reads from.

    Args:
        manifests_dir: Directory holding RedisCluster manifests.
        redis_password: Password for Redis admin connections and new nodes.
        redis_port: Redis client port of the nodes.
        socket_timeout: Per-connection timeout for admin commands (seconds).
        redis_image: Image for nodes whose manifest names none.
        failover_flush_data: FLUSHALL nodes before the failover reset.
        failover_hard_reset: Use CLUSTER RESET HARD (new node ids) on failover.
        provisioner: Optional provisioner. If None, a DockerProvisioner
            is created.
        intervals: Optional requeue delays.

    Returns:
        Tuple of (RedisClusterReconciler, ManifestStore).

    Example:
        reconciler, store = create_redis_reconciler(Path("manifests"))
        loop = ControllerLoop(reconciler=reconciler, store=store)
    """
    connector = RedisConnector(password=redis_password, socket_timeout=socket_timeout)
    store = ManifestStore(manifests_dir)
    if provisioner is None:
        provisioner = DockerProvisioner(
            password=redis_password, port=redis_port, image=redis_image
        )

    formation = FormationExecutor(connector)
    reconciler = RedisClusterReconciler(
        store=store,
        provisioner=provisioner,
        probe=TopologyProbe(connector),
        formation=formation,
        replication=ReplicationExecutor(connector),
        failover=FailoverExecutor(
            connector,
            formation,
            flush_data=failover_flush_data,
            hard_reset=failover_hard_reset,
        ),
        intervals=intervals,
    )
    return reconciler, store
