"""Docker resource provisioner for local Redis Clusters.

Implements ResourceProvisionerProtocol on a local Docker engine through
python-on-whales. Each role's workload is a set of ordinal-named containers
(`<name>-leader-0`, `<name>-leader-1`, ...) on a per-instance network.
All blocking Docker calls run in the default executor.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any, TypeVar

from python_on_whales import Container, docker
from python_on_whales.exceptions import DockerException

from operator_protocols import Role
from operator_redis.exceptions import ProvisioningError, WorkloadNotFoundError
from operator_redis.types import DEFAULT_REDIS_IMAGE, DEFAULT_REDIS_PORT, RedisCluster

logger = logging.getLogger(__name__)

LABEL_INSTANCE = "redis.opstreelabs.in/instance"
LABEL_ROLE = "redis.opstreelabs.in/role"
LABEL_ORDINAL = "redis.opstreelabs.in/ordinal"

T = TypeVar("T")


def container_name(cluster: RedisCluster, role: Role, ordinal: int) -> str:
    return f"{cluster.name}-{role.value}-{ordinal}"


def network_name(cluster: RedisCluster) -> str:
    return f"{cluster.name}-redis"


class DockerProvisioner:
    """Provisions Redis Cluster workloads as Docker containers.

    Idempotent: missing ordinals are created, stopped ones started, and
    ordinals beyond the desired count removed. Docker errors are wrapped
    into ProvisioningError.

    Attributes:
        password: Redis password passed as requirepass/masterauth, or None.
        port: Redis client port inside the containers.
        image: Image used when the manifest does not name one.
    """

    def __init__(
        self,
        password: str | None = None,
        port: int = DEFAULT_REDIS_PORT,
        image: str = DEFAULT_REDIS_IMAGE,
    ):
        self._docker = docker
        self.password = password
        self.port = port
        self.image = image

    # -------------------------------------------------------------------------
    # Workloads
    # -------------------------------------------------------------------------

    async def ensure_leader_workload(self, cluster: RedisCluster) -> int:
        return await self._ensure_workload(cluster, Role.LEADER)

    async def ensure_follower_workload(self, cluster: RedisCluster) -> int:
        return await self._ensure_workload(cluster, Role.FOLLOWER)

    async def ready_replicas(self, cluster: RedisCluster, role: Role) -> int:
        """Ready containers of an existing workload.

        Raises:
            WorkloadNotFoundError: If no container of the role exists.
        """

        def _blocking_ready() -> int:
            containers = self._containers(cluster, role)
            if not containers:
                raise WorkloadNotFoundError(f"{cluster.name} {role.value} workload")
            return sum(1 for c in containers.values() if is_ready(c))

        return await self._run(f"{cluster.name} {role.value} workload", _blocking_ready)

    async def _ensure_workload(self, cluster: RedisCluster, role: Role) -> int:
        desired = cluster.spec.replica_count(role)
        net = network_name(cluster)

        def _blocking_ensure() -> int:
            self._ensure_network(cluster)
            existing = self._containers(cluster, role)

            for ordinal, container in existing.items():
                if ordinal >= desired:
                    logger.info("Removing surplus container %s", container.name)
                    self._docker.container.remove(container, force=True, volumes=True)

            ready = 0
            for ordinal in range(desired):
                container = existing.get(ordinal)
                if container is None:
                    container = self._docker.run(
                        cluster.spec.kubernetes_config.image or self.image,
                        self._server_command(cluster, role),
                        name=container_name(cluster, role, ordinal),
                        detach=True,
                        networks=[net],
                        labels={
                            LABEL_INSTANCE: cluster.name,
                            LABEL_ROLE: role.value,
                            LABEL_ORDINAL: str(ordinal),
                        },
                        health_cmd=self._health_command(),
                        health_interval=timedelta(seconds=5),
                        health_retries=3,
                    )
                    logger.info("Created container %s", container.name)
                elif not container.state.running:
                    self._docker.container.start(container)
                    logger.info("Started container %s", container.name)
                    container = self._docker.container.inspect(container.name)
                if is_ready(container):
                    ready += 1
            return ready

        return await self._run(f"{cluster.name} {role.value} workload", _blocking_ensure)

    def _server_command(self, cluster: RedisCluster, role: Role) -> list[str]:
        command = [
            "redis-server",
            "--port", str(self.port),
            "--cluster-enabled", "yes",
            "--cluster-config-file", "nodes.conf",
            "--cluster-node-timeout", "5000",
            "--appendonly", "yes",
        ]
        if self.password:
            command += ["--requirepass", self.password, "--masterauth", self.password]
        for key, value in cluster.spec.template(role).redis_config.items():
            command += [f"--{key}", value]
        return command

    def _health_command(self) -> str:
        auth = f"-a {self.password} --no-auth-warning " if self.password else ""
        return f"redis-cli {auth}-p {self.port} ping"

    # -------------------------------------------------------------------------
    # Services and disruption budgets
    # -------------------------------------------------------------------------

    async def ensure_service(self, role: Role, cluster: RedisCluster) -> None:
        """Both roles share the per-instance network."""
        await self._run(
            f"{cluster.name} {role.value} service",
            lambda: self._ensure_network(cluster),
        )

    async def ensure_disruption_budget(self, role: Role, cluster: RedisCluster) -> None:
        budget = cluster.spec.template(role).pod_disruption_budget
        if budget is not None and budget.enabled:
            logger.debug(
                "Docker has no disruption budgets; ignoring %s %s budget",
                cluster.name,
                role.value,
            )

    def _ensure_network(self, cluster: RedisCluster) -> None:
        net = network_name(cluster)
        if not self._docker.network.exists(net):
            self._docker.network.create(net, labels={LABEL_INSTANCE: cluster.name})
            logger.info("Created network %s", net)

    # -------------------------------------------------------------------------
    # Endpoints and release
    # -------------------------------------------------------------------------

    async def endpoints(self, cluster: RedisCluster, role: Role) -> list[str]:
        """Container addresses on the instance network, by ordinal.

        Containers without an address yet are left out.
        """
        net = network_name(cluster)

        def _blocking_endpoints() -> list[str]:
            addresses = []
            for _, container in sorted(self._containers(cluster, role).items()):
                networks = container.network_settings.networks or {}
                attachment = networks.get(net)
                if attachment is not None and attachment.ip_address:
                    addresses.append(f"{attachment.ip_address}:{self.port}")
            return addresses

        return await self._run(f"{cluster.name} {role.value} endpoints", _blocking_endpoints)

    async def release_all(self, cluster: RedisCluster) -> None:
        net = network_name(cluster)

        def _blocking_release() -> None:
            containers = self._docker.container.list(
                all=True, filters={"label": f"{LABEL_INSTANCE}={cluster.name}"}
            )
            if containers:
                self._docker.container.remove(containers, force=True, volumes=True)
            if self._docker.network.exists(net):
                self._docker.network.remove(net)
            logger.info("Released %d container(s) of %s", len(containers), cluster.name)

        await self._run(f"{cluster.name} resources", _blocking_release)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _containers(self, cluster: RedisCluster, role: Role) -> dict[int, Container]:
        """Existing containers of one role keyed by ordinal."""
        containers = self._docker.container.list(
            all=True, filters={"label": f"{LABEL_INSTANCE}={cluster.name}"}
        )
        by_ordinal: dict[int, Container] = {}
        for container in containers:
            labels = container.config.labels or {}
            if labels.get(LABEL_ROLE) != role.value:
                continue
            by_ordinal[int(labels.get(LABEL_ORDINAL, "0"))] = container
        return by_ordinal

    async def _run(self, resource: str, fn: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except DockerException as e:
            raise ProvisioningError(resource, str(e)) from e


def is_ready(container: Any) -> bool:
    """Running, and healthy when a healthcheck is defined."""
    if not container.state.running:
        return False
    health = container.state.health
    return health is None or health.status == "healthy"
