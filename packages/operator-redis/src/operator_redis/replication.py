"""
Replication executor: attach followers to leaders.

Each follower-designate node without a leader is bound to the leader with
the fewest followers (lowest ordinal on ties) and told to replicate it.
Followers already replicating one of the leaders are left alone, so running
the executor repeatedly converges instead of re-attaching.
"""

import logging

from operator_protocols import Role
from operator_redis.exceptions import ReplicationError, TopologyParseError
from operator_redis.redis_client import COMMAND_ERRORS, RedisConnector
from operator_redis.topology import ClusterTopology
from operator_redis.types import Endpoint

logger = logging.getLogger(__name__)


def pick_leader(replica_counts: dict[str, int], leader_order: list[str]) -> str:
    """
    Choose the leader with the fewest followers.

    Args:
        replica_counts: Current follower count per leader id.
        leader_order: Leader ids in ordinal order; breaks ties.

    Returns:
        The chosen leader id.
    """
    return min(leader_order, key=lambda lid: (replica_counts[lid], leader_order.index(lid)))


class ReplicationExecutor:
    """
    Assigns unattached followers to leaders.

    Example:
        replication = ReplicationExecutor(RedisConnector())
        await replication.attach_replicas(leader_endpoints, follower_endpoints)
    """

    def __init__(self, connector: RedisConnector) -> None:
        self.connector = connector

    async def attach_replicas(
        self, leader_endpoints: list[str], follower_endpoints: list[str]
    ) -> list[str]:
        """
        Attach every unassigned follower to a leader.

        A replicate issued right after the follower met its leader can be
        refused until gossip propagates; that failure is reported and the
        next pass finishes the job (the meet is not repeated).

        Args:
            leader_endpoints: Leader addresses in ordinal order.
            follower_endpoints: Follower addresses in ordinal order.

        Returns:
            Follower endpoints a replicate was issued for in this call.

        Raises:
            ReplicationError: With the per-endpoint failures, if any.
        """
        failures: dict[str, BaseException] = {}

        leader_ids: list[str] = []
        leader_addresses: dict[str, Endpoint] = {}
        for endpoint in leader_endpoints:
            try:
                async with self.connector.connect(endpoint) as client:
                    leader_id = await client.myid()
            except COMMAND_ERRORS as e:
                failures[endpoint] = e
                continue
            leader_ids.append(leader_id)
            leader_addresses[leader_id] = Endpoint.parse(endpoint)

        if not leader_ids:
            raise ReplicationError(failures)

        counts = await self._replica_counts(leader_endpoints, leader_ids)

        attached: list[str] = []
        for endpoint in follower_endpoints:
            try:
                async with self.connector.connect(endpoint) as client:
                    view = await client.cluster_nodes()
                    me = view.myself()
                    if me is None:
                        raise TopologyParseError(endpoint, "reply has no myself entry")

                    if me.role is Role.FOLLOWER and me.master_id in counts:
                        continue
                    if me.slots:
                        logger.warning(
                            "Follower %s is a leader owning %d slots; not attaching",
                            endpoint,
                            me.slot_count,
                        )
                        continue

                    leader_id = pick_leader(counts, leader_ids)
                    if not view.knows(leader_id):
                        await client.meet(leader_addresses[leader_id])
                    # Count the assignment even if replicate fails below,
                    # so later followers keep spreading across leaders.
                    counts[leader_id] += 1
                    logger.info(
                        "Attaching follower %s to leader %s (%s)",
                        endpoint,
                        leader_addresses[leader_id],
                        leader_id,
                    )
                    await client.replicate(leader_id)
                    attached.append(endpoint)
            except (*COMMAND_ERRORS, TopologyParseError) as e:
                logger.warning("Follower %s not attached: %s", endpoint, e)
                failures[endpoint] = e

        if failures:
            raise ReplicationError(failures)
        return attached

    async def _replica_counts(
        self, leader_endpoints: list[str], leader_ids: list[str]
    ) -> dict[str, int]:
        """Followers per leader, from the first leader that answers."""
        for endpoint in leader_endpoints:
            try:
                async with self.connector.connect(endpoint) as client:
                    view = await client.cluster_nodes()
            except (*COMMAND_ERRORS, TopologyParseError) as e:
                logger.debug("Leader %s gave no replica counts: %s", endpoint, e)
                continue
            return view.replica_counts(leader_ids)
        return ClusterTopology().replica_counts(leader_ids)
