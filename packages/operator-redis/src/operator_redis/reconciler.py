"""
RedisClusterReconciler - the Redis Cluster reconciliation state machine.

One pass observes the two live sources (platform readiness through the
resource provisioner, cluster topology through the probe), takes at most
one corrective step and decides when to run again. Nothing is remembered
between passes: every state below is derived fresh from observations.

States, in order:
- FETCH: read the desired-state object; absent -> done, skip marker ->
  requeue, deletion requested -> PENDING_DELETION
- PENDING_DELETION: release platform resources, drop the finalizer, done
- LEADERS_PROVISIONING: ensure leader workload/service/budget
- FOLLOWERS_PROVISIONING: same for followers, only once every leader is ready
- AWAITING_READINESS: block on zero leaders, wait while both roles lag
- TOPOLOGY_CONVERGING: a leader-designate is not a live leader -> form the
  cluster; otherwise a follower-designate is not attached -> attach followers
- STEADY: every node serves its designated role; rebuild only on
  near-total failure

Ordering guarantees:
- Followers are never provisioned, attached or health-checked before the
  leader workload is fully ready.
- Formation commands are never issued before the leader ready count matches
  the desired leader count (the bootstrap handshake needs every leader
  reachable at once).
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from operator_protocols import (
    DesiredStateStoreProtocol,
    ReconcileOutcome,
    ResourceProvisionerProtocol,
    Role,
)
from operator_redis.exceptions import (
    ClusterCommandError,
    ProvisioningError,
    TopologyError,
)
from operator_redis.failover import FailoverExecutor, should_failover
from operator_redis.formation import FormationExecutor
from operator_redis.probe import TopologyProbe
from operator_redis.redis_client import COMMAND_ERRORS
from operator_redis.replication import ReplicationExecutor
from operator_redis.topology import ClusterTopology
from operator_redis.types import RedisCluster

logger = logging.getLogger(__name__)

# Errors an executor or the probe may raise against live Redis nodes
_REDIS_ERRORS = (ClusterCommandError, TopologyError, *COMMAND_ERRORS)


@dataclass(frozen=True)
class RequeueIntervals:
    """
    Requeue delays in seconds, per situation.

    Attributes:
        converging: Topology changes in flight, or a Redis command failed.
        provisioning_error: A platform resource could not be ensured.
        waiting: Waiting on platform scheduling, blocked, or steady state.
        skip: Reconciliation paused by the skip marker.
    """

    converging: float = 10.0
    provisioning_error: float = 60.0
    waiting: float = 120.0
    skip: float = 10.0


class ReconcileState(str, Enum):
    """Pass states, derived from observations on every pass."""

    FETCH = "fetch"
    PENDING_DELETION = "pending_deletion"
    LEADERS_PROVISIONING = "leaders_provisioning"
    FOLLOWERS_PROVISIONING = "followers_provisioning"
    AWAITING_READINESS = "awaiting_readiness"
    TOPOLOGY_CONVERGING = "topology_converging"
    STEADY = "steady"


@dataclass
class ReconcilePass:
    """
    Observations gathered during one pass.

    Attributes:
        name: Desired-state object name.
        cluster: The object, once fetched.
        leader_ready: Ready leader replicas reported by the provisioner.
        follower_ready: Ready follower replicas reported by the provisioner.
        leader_endpoints: Leader addresses, by ordinal.
        follower_endpoints: Follower addresses, by ordinal.
        topology: Live topology, once probed.
        visited: States entered, in order.
        outcome: Final outcome, once decided.
    """

    name: str
    cluster: RedisCluster | None = None
    leader_ready: int | None = None
    follower_ready: int | None = None
    leader_endpoints: list[str] = field(default_factory=list)
    follower_endpoints: list[str] = field(default_factory=list)
    topology: ClusterTopology | None = None
    visited: list[ReconcileState] = field(default_factory=list)
    outcome: ReconcileOutcome | None = None


Transition = ReconcileState | ReconcileOutcome


class RedisClusterReconciler:
    """
    Drives one RedisCluster object towards its desired topology.

    Safe to run concurrently for different objects; the caller guarantees at
    most one in-flight pass per object.

    Example:
        reconciler = RedisClusterReconciler(
            store=ManifestStore(Path("manifests")),
            provisioner=DockerProvisioner(),
            probe=TopologyProbe(connector),
            formation=FormationExecutor(connector),
            replication=ReplicationExecutor(connector),
            failover=FailoverExecutor(connector, FormationExecutor(connector)),
        )
        outcome = await reconciler.reconcile("cache")
    """

    def __init__(
        self,
        store: DesiredStateStoreProtocol,
        provisioner: ResourceProvisionerProtocol,
        probe: TopologyProbe,
        formation: FormationExecutor,
        replication: ReplicationExecutor,
        failover: FailoverExecutor,
        intervals: RequeueIntervals | None = None,
    ) -> None:
        self.store = store
        self.provisioner = provisioner
        self.probe = probe
        self.formation = formation
        self.replication = replication
        self.failover = failover
        self.intervals = intervals or RequeueIntervals()

        self._handlers: dict[
            ReconcileState, Callable[[ReconcilePass], Awaitable[Transition]]
        ] = {
            ReconcileState.FETCH: self.fetch,
            ReconcileState.PENDING_DELETION: self.pending_deletion,
            ReconcileState.LEADERS_PROVISIONING: self.provision_leaders,
            ReconcileState.FOLLOWERS_PROVISIONING: self.provision_followers,
            ReconcileState.AWAITING_READINESS: self.await_readiness,
            ReconcileState.TOPOLOGY_CONVERGING: self.converge_topology,
            ReconcileState.STEADY: self.check_health,
        }

    async def reconcile(self, name: str) -> ReconcileOutcome:
        """Run one pass and return its outcome."""
        return await self._drive(ReconcilePass(name=name))

    async def run_pass(self, name: str) -> ReconcilePass:
        """Run one pass and return everything it observed."""
        current = ReconcilePass(name=name)
        current.outcome = await self._drive(current)
        return current

    async def _drive(self, current: ReconcilePass) -> ReconcileOutcome:
        state: Transition = ReconcileState.FETCH
        while isinstance(state, ReconcileState):
            current.visited.append(state)
            state = await self._handlers[state](current)
        return state

    # -------------------------------------------------------------------------
    # State handlers
    # -------------------------------------------------------------------------

    async def fetch(self, current: ReconcilePass) -> Transition:
        logger.info("Reconciling redis cluster %s", current.name)
        try:
            cluster = await self.store.get(current.name)
        except Exception as e:
            return ReconcileOutcome.requeue(self.intervals.provisioning_error, e)

        if cluster is None:
            logger.info("Redis cluster %s not found, nothing to do", current.name)
            return ReconcileOutcome.done()
        current.cluster = cluster

        if cluster.skip_reconcile:
            logger.info("Redis cluster %s has the skip-reconcile annotation, skipping", current.name)
            return ReconcileOutcome.requeue(self.intervals.skip)

        if cluster.is_being_deleted:
            return ReconcileState.PENDING_DELETION

        if not cluster.has_finalizer:
            try:
                await self.store.add_finalizer(current.name)
            except Exception as e:
                return ReconcileOutcome.requeue(self.intervals.provisioning_error, e)
        return ReconcileState.LEADERS_PROVISIONING

    async def pending_deletion(self, current: ReconcilePass) -> Transition:
        cluster = self._cluster(current)
        if not cluster.has_finalizer:
            return ReconcileOutcome.done()
        logger.info("Redis cluster %s marked for deletion, releasing resources", current.name)
        try:
            await self.provisioner.release_all(cluster)
            await self.store.remove_finalizer(current.name)
        except Exception as e:
            return ReconcileOutcome.requeue(self.intervals.provisioning_error, e)
        return ReconcileOutcome.done()

    async def provision_leaders(self, current: ReconcilePass) -> Transition:
        cluster = self._cluster(current)
        try:
            current.leader_ready = await self.provisioner.ensure_leader_workload(cluster)
            if cluster.spec.leader_count != 0:
                await self.provisioner.ensure_service(Role.LEADER, cluster)
            await self.provisioner.ensure_disruption_budget(Role.LEADER, cluster)
        except Exception as e:
            logger.error("Provisioning leaders of %s failed: %s", current.name, e)
            return ReconcileOutcome.requeue(self.intervals.provisioning_error, e)

        if current.leader_ready == cluster.spec.leader_count:
            return ReconcileState.FOLLOWERS_PROVISIONING
        return ReconcileState.AWAITING_READINESS

    async def provision_followers(self, current: ReconcilePass) -> Transition:
        cluster = self._cluster(current)
        try:
            current.follower_ready = await self.provisioner.ensure_follower_workload(cluster)
            if cluster.spec.follower_count != 0:
                await self.provisioner.ensure_service(Role.FOLLOWER, cluster)
            await self.provisioner.ensure_disruption_budget(Role.FOLLOWER, cluster)
        except Exception as e:
            logger.error("Provisioning followers of %s failed: %s", current.name, e)
            return ReconcileOutcome.requeue(self.intervals.provisioning_error, e)
        return ReconcileState.AWAITING_READINESS

    async def await_readiness(self, current: ReconcilePass) -> Transition:
        cluster = self._cluster(current)
        spec = cluster.spec

        if current.follower_ready is None:
            try:
                current.follower_ready = await self.provisioner.ready_replicas(
                    cluster, Role.FOLLOWER
                )
            except Exception as e:
                return ReconcileOutcome.requeue(self.intervals.provisioning_error, e)

        if spec.leader_count == 0:
            logger.info(
                "Redis cluster %s: leaders cannot be 0 (ready=%s, expected=%d)",
                current.name,
                current.leader_ready,
                spec.leader_count,
            )
            return ReconcileOutcome.requeue(self.intervals.waiting)

        # Both sides must lag to wait; one ready side lets the pass through
        if (
            current.leader_ready != spec.leader_count
            and current.follower_ready != spec.follower_count
        ):
            logger.info(
                "Redis cluster %s: leader and follower nodes not ready yet "
                "(leaders %s/%d, followers %s/%d)",
                current.name,
                current.leader_ready,
                spec.leader_count,
                current.follower_ready,
                spec.follower_count,
            )
            return ReconcileOutcome.requeue(self.intervals.waiting)
        return ReconcileState.TOPOLOGY_CONVERGING

    async def converge_topology(self, current: ReconcilePass) -> Transition:
        cluster = self._cluster(current)
        spec = cluster.spec

        try:
            current.leader_endpoints = await self.provisioner.endpoints(cluster, Role.LEADER)
            current.follower_endpoints = await self.provisioner.endpoints(
                cluster, Role.FOLLOWER
            )
        except Exception as e:
            return ReconcileOutcome.requeue(self.intervals.provisioning_error, e)

        try:
            current.topology = await self.probe.observe(
                [*current.leader_endpoints, *current.follower_endpoints]
            )
        except _REDIS_ERRORS as e:
            return ReconcileOutcome.requeue(self.intervals.converging, e)

        topology = current.topology
        leader_endpoints = current.leader_endpoints[: spec.leader_count]
        follower_endpoints = current.follower_endpoints[: spec.follower_count]
        # Nodes count only in their designated role: a follower that was met
        # but never replicated is a slotless master and counts as neither.
        leader_ids = {node.id for node in topology.leaders_at(leader_endpoints)}
        live_leaders = len(leader_ids)
        attached = len(topology.followers_of(leader_ids, follower_endpoints))
        if live_leaders + attached == spec.total_replicas:
            return ReconcileState.STEADY

        try:
            if live_leaders != spec.leader_count:
                logger.info(
                    "Redis cluster %s: not all leaders are part of the cluster "
                    "(live=%d, desired=%d), forming",
                    current.name,
                    live_leaders,
                    spec.leader_count,
                )
                if len(leader_endpoints) < spec.leader_count:
                    raise ProvisioningError(
                        f"{current.name} leader endpoints",
                        f"{len(leader_endpoints)} of {spec.leader_count} available",
                    )
                await self.formation.form_cluster(leader_endpoints)
            else:
                logger.info(
                    "Redis cluster %s: all leaders joined (%d), attaching followers "
                    "(attached=%d, desired=%d)",
                    current.name,
                    live_leaders,
                    attached,
                    spec.follower_count,
                )
                await self.replication.attach_replicas(leader_endpoints, follower_endpoints)
        except (*_REDIS_ERRORS, ProvisioningError) as e:
            logger.error("Redis cluster %s: convergence step failed: %s", current.name, e)
            return ReconcileOutcome.requeue(self.intervals.converging, e)

        return ReconcileOutcome.requeue(self.intervals.converging)

    async def check_health(self, current: ReconcilePass) -> Transition:
        cluster = self._cluster(current)
        spec = cluster.spec
        topology = current.topology or ClusterTopology.unreachable()

        unhealthy = topology.unhealthy()
        logger.info(
            "Redis cluster %s has the desired node count (%d), %d unhealthy",
            current.name,
            topology.total,
            unhealthy,
        )
        if not should_failover(unhealthy, spec.total_replicas):
            return ReconcileOutcome.requeue(self.intervals.waiting)

        logger.warning(
            "Redis cluster %s: %d of %d nodes unhealthy, executing failover",
            current.name,
            unhealthy,
            spec.total_replicas,
        )
        try:
            await self.failover.failover(
                current.name,
                current.leader_endpoints[: spec.leader_count],
                current.follower_endpoints[: spec.follower_count],
            )
        except _REDIS_ERRORS as e:
            logger.error("Redis cluster %s: failover failed: %s", current.name, e)
            return ReconcileOutcome.requeue(self.intervals.converging, e)
        return ReconcileOutcome.requeue(self.intervals.converging)

    @staticmethod
    def _cluster(current: ReconcilePass) -> RedisCluster:
        if current.cluster is None:
            raise RuntimeError(f"pass for {current.name} has no fetched object")
        return current.cluster
