"""
Formation executor: merge independent leaders into one cluster.

Formation is the Redis Cluster bootstrap handshake:
1. Every leader meets the seed (the first leader endpoint)
2. Every leader claims its planned share of the 16384 hash slots

Both steps skip work already done, so running formation against a formed
or half-formed cluster only fills the gap: a node that already knows the
seed is not introduced again, a node that owns slots claims nothing, and a
planned range that overlaps slots somebody already owns is left alone.
"""

import logging

from operator_redis.exceptions import FormationError, TopologyParseError
from operator_redis.redis_client import COMMAND_ERRORS, RedisConnector
from operator_redis.topology import ClusterTopology, plan_slot_ranges, ranges_overlap
from operator_redis.types import Endpoint

logger = logging.getLogger(__name__)


class FormationExecutor:
    """
    Bootstraps a cluster over the leader-designate endpoints.

    Example:
        formation = FormationExecutor(RedisConnector())
        await formation.form_cluster(["10.0.0.1:6379", "10.0.0.2:6379"])
    """

    def __init__(self, connector: RedisConnector) -> None:
        self.connector = connector

    async def form_cluster(self, leader_endpoints: list[str]) -> None:
        """
        Run the bootstrap handshake across all leader endpoints.

        Every endpoint is attempted even when an earlier one fails.

        Args:
            leader_endpoints: Leader addresses in ordinal order. The first
                is the seed; the slot plan follows this order.

        Raises:
            ValueError: If no leader endpoint is given.
            FormationError: With the per-endpoint failures, if any.
        """
        if not leader_endpoints:
            raise ValueError("formation requires at least one leader endpoint")

        seed = leader_endpoints[0]
        failures: dict[str, BaseException] = {}

        try:
            async with self.connector.connect(seed) as client:
                seed_id = await client.myid()
        except COMMAND_ERRORS as e:
            # Nothing can join a seed we cannot identify
            raise FormationError({seed: e}) from e

        views: dict[str, ClusterTopology] = {}
        for endpoint in leader_endpoints:
            try:
                views[endpoint] = await self._join(endpoint, seed, seed_id)
            except (*COMMAND_ERRORS, TopologyParseError) as e:
                logger.warning("Leader %s failed to join the cluster: %s", endpoint, e)
                failures[endpoint] = e

        known = ClusterTopology.from_nodes(
            [node for view in views.values() for node in view.nodes.values()]
        )
        owned = known.owned_slots()

        for endpoint, planned in zip(leader_endpoints, plan_slot_ranges(len(leader_endpoints))):
            if endpoint not in views:
                continue
            me = views[endpoint].myself()
            if me is not None and me.slots:
                continue
            if any(ranges_overlap(planned, r) for r in owned):
                logger.warning(
                    "Slots %d-%d planned for %s are already owned; not reassigning",
                    planned[0],
                    planned[1],
                    endpoint,
                )
                continue
            try:
                async with self.connector.connect(endpoint) as client:
                    await client.add_slots_range(*planned)
                logger.info("Assigned slots %d-%d to %s", planned[0], planned[1], endpoint)
            except COMMAND_ERRORS as e:
                failures[endpoint] = e

        if failures:
            raise FormationError(failures)

    async def _join(self, endpoint: str, seed: str, seed_id: str) -> ClusterTopology:
        """Meet the seed unless already known; return the node's view."""
        async with self.connector.connect(endpoint) as client:
            view = await client.cluster_nodes()
            if endpoint != seed and not view.knows(seed_id):
                await client.meet(Endpoint.parse(seed))
                logger.info("Leader %s meeting seed %s", endpoint, seed)
            return view
