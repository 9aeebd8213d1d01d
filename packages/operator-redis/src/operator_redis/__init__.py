"""
Redis Cluster subject for the operator.

This package turns a declarative RedisCluster object into a running,
self-correcting Redis Cluster. It includes:

- RedisClusterReconciler: the reconciliation state machine
- TopologyProbe: live node counts and health from CLUSTER NODES
- FormationExecutor / ReplicationExecutor / FailoverExecutor: the
  cluster-topology commands the reconciler drives
- DockerProvisioner: local platform resources via Docker
- ManifestStore: desired-state objects from a directory of YAML manifests
"""

from operator_redis.exceptions import (
    ClusterCommandError,
    FailoverError,
    FormationError,
    ManifestError,
    ProbeUnreachableError,
    ProvisioningError,
    RedisOperatorError,
    ReplicationError,
    TopologyError,
    TopologyParseError,
    WorkloadNotFoundError,
)
from operator_redis.factory import create_redis_reconciler
from operator_redis.failover import FailoverExecutor, should_failover
from operator_redis.formation import FormationExecutor
from operator_redis.probe import TopologyProbe
from operator_redis.provisioner import DockerProvisioner
from operator_redis.reconciler import (
    ReconcilePass,
    ReconcileState,
    RedisClusterReconciler,
    RequeueIntervals,
)
from operator_redis.redis_client import RedisConnector, RedisNodeClient
from operator_redis.replication import ReplicationExecutor, pick_leader
from operator_redis.store import ManifestStore, load_manifest
from operator_redis.topology import (
    ClusterTopology,
    parse_cluster_nodes,
    plan_slot_ranges,
)
from operator_redis.types import (
    FINALIZER,
    SKIP_RECONCILE_ANNOTATION,
    ClusterNodeView,
    Endpoint,
    LinkState,
    RedisCluster,
    RedisClusterSpec,
    RoleTemplate,
)

__all__ = [
    # Reconciler
    "RedisClusterReconciler",
    "ReconcilePass",
    "ReconcileState",
    "RequeueIntervals",
    "create_redis_reconciler",
    # Probe and executors
    "TopologyProbe",
    "FormationExecutor",
    "ReplicationExecutor",
    "FailoverExecutor",
    "should_failover",
    "pick_leader",
    # Clients, platform and store
    "RedisConnector",
    "RedisNodeClient",
    "DockerProvisioner",
    "ManifestStore",
    "load_manifest",
    # Topology
    "ClusterTopology",
    "parse_cluster_nodes",
    "plan_slot_ranges",
    # Types
    "RedisCluster",
    "RedisClusterSpec",
    "RoleTemplate",
    "ClusterNodeView",
    "Endpoint",
    "LinkState",
    "FINALIZER",
    "SKIP_RECONCILE_ANNOTATION",
    # Errors
    "RedisOperatorError",
    "ProvisioningError",
    "WorkloadNotFoundError",
    "TopologyError",
    "TopologyParseError",
    "ProbeUnreachableError",
    "ClusterCommandError",
    "FormationError",
    "ReplicationError",
    "FailoverError",
    "ManifestError",
]
