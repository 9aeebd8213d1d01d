"""
Redis Cluster desired-state models and live topology types.

This module provides:
- Pydantic models for the RedisCluster desired-state object, parsed from
  manifests (camelCase keys, like the custom resource they mirror)
- Endpoint: a parsed "host:port" address
- ClusterNodeView: one live node as reported by CLUSTER NODES

Desired-state models are pydantic because they validate external input.
Live topology types are dataclasses built by our own parser.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from operator_protocols import Role

SKIP_RECONCILE_ANNOTATION = "rediscluster.opstreelabs.in/skip-reconcile"
"""Presence of this annotation pauses reconciliation for one pass."""

FINALIZER = "redisClusterFinalizer"
"""Finalizer that holds deletion until platform resources are released."""

DEFAULT_REDIS_PORT = 6379
DEFAULT_REDIS_IMAGE = "redis:7.2"


# =============================================================================
# Desired state
# =============================================================================


class _Model(BaseModel):
    """Base for manifest models: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class DisruptionBudget(_Model):
    """
    Disruption budget template for one role.

    At most one of min_available / max_unavailable is meaningful; the
    provisioner decides how to express it on its platform.
    """

    enabled: bool = False
    min_available: int | None = None
    max_unavailable: int | None = None


class RoleTemplate(_Model):
    """
    Per-role resource template.

    Attributes:
        replicas: Replica count for the role. None falls back to the
            cluster_size of the parent spec.
        redis_config: Extra redis-server arguments, e.g.
            {"maxmemory": "256mb"} becomes "--maxmemory 256mb".
        pod_disruption_budget: Optional disruption budget template.
    """

    replicas: int | None = Field(default=None, ge=0)
    redis_config: dict[str, str] = Field(default_factory=dict)
    pod_disruption_budget: DisruptionBudget | None = None


class KubernetesConfig(_Model):
    """Container settings shared by both roles."""

    image: str | None = None
    image_pull_policy: str = "IfNotPresent"
    redis_secret: str | None = None


class RedisClusterSpec(_Model):
    """
    Desired topology of a Redis Cluster.

    Attributes:
        cluster_size: Default replica count for each role.
        redis_leader: Leader template.
        redis_follower: Follower template.
        kubernetes_config: Container image and credentials.
    """

    cluster_size: int = Field(default=3, ge=0)
    redis_leader: RoleTemplate = Field(default_factory=RoleTemplate)
    redis_follower: RoleTemplate = Field(default_factory=RoleTemplate)
    kubernetes_config: KubernetesConfig = Field(default_factory=KubernetesConfig)

    def template(self, role: Role) -> RoleTemplate:
        if role is Role.LEADER:
            return self.redis_leader
        return self.redis_follower

    def replica_count(self, role: Role) -> int:
        """Role's own replicas when set, else cluster_size."""
        replicas = self.template(role).replicas
        return self.cluster_size if replicas is None else replicas

    @property
    def leader_count(self) -> int:
        return self.replica_count(Role.LEADER)

    @property
    def follower_count(self) -> int:
        return self.replica_count(Role.FOLLOWER)

    @property
    def total_replicas(self) -> int:
        return self.leader_count + self.follower_count


class ObjectMeta(_Model):
    """Identity and lifecycle markers of a desired-state object."""

    name: str = Field(min_length=1)
    namespace: str = "default"
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: datetime | None = None


class RedisCluster(_Model):
    """
    Desired-state object for one Redis Cluster instance.

    Example manifest:
        apiVersion: redis.redis.opstreelabs.in/v1beta1
        kind: RedisCluster
        metadata:
          name: cache
        spec:
          clusterSize: 3
          redisFollower:
            replicas: 3
    """

    api_version: str = "redis.redis.opstreelabs.in/v1beta1"
    kind: str = "RedisCluster"
    metadata: ObjectMeta
    spec: RedisClusterSpec = Field(default_factory=RedisClusterSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def skip_reconcile(self) -> bool:
        return SKIP_RECONCILE_ANNOTATION in self.metadata.annotations

    @property
    def is_being_deleted(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    @property
    def has_finalizer(self) -> bool:
        return FINALIZER in self.metadata.finalizers


# =============================================================================
# Live topology
# =============================================================================


@dataclass(frozen=True)
class Endpoint:
    """
    Network address of one Redis node.

    Example:
        Endpoint.parse("10.0.0.5:6379")  # Endpoint(host="10.0.0.5", port=6379)
    """

    host: str
    port: int = DEFAULT_REDIS_PORT

    @classmethod
    def parse(cls, address: str) -> "Endpoint":
        """
        Parse "host:port" (IPv6 hosts may be bracketed).

        Raises:
            ValueError: If the port is not an integer.
        """
        host, sep, port = address.rpartition(":")
        if not sep:
            return cls(host=address)
        return cls(host=host.strip("[]"), port=int(port))

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class LinkState(str, Enum):
    """Cluster bus link state towards a node."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


FAILURE_FLAGS = frozenset({"fail", "fail?"})


@dataclass(frozen=True)
class ClusterNodeView:
    """
    One live Redis node as seen by the node that answered CLUSTER NODES.

    Recomputed on every probe; never cached across passes. The role is
    Redis's own bookkeeping and may lag the desired role during bootstrap.

    Attributes:
        id: Opaque 40-character node id.
        address: "ip:port" of the client port (empty for noaddr nodes).
        role: LEADER for "master", FOLLOWER for "slave", None for nodes
            still in handshake without a role flag.
        link_state: Cluster bus link state.
        flags: Raw flags ("myself", "master", "fail?", ...).
        master_id: Leader id a follower replicates, None otherwise.
        config_epoch: Node's config epoch.
        slots: Owned hash slots as inclusive (start, end) ranges.
    """

    id: str
    address: str
    role: Role | None
    link_state: LinkState
    flags: frozenset[str] = field(default_factory=frozenset)
    master_id: str | None = None
    config_epoch: int = 0
    slots: tuple[tuple[int, int], ...] = ()

    @property
    def is_myself(self) -> bool:
        return "myself" in self.flags

    @property
    def is_failed(self) -> bool:
        return bool(self.flags & FAILURE_FLAGS)

    @property
    def is_unhealthy(self) -> bool:
        """Failure flag set or cluster bus link down."""
        return self.is_failed or self.link_state is LinkState.DISCONNECTED

    @property
    def slot_count(self) -> int:
        return sum(end - start + 1 for start, end in self.slots)
