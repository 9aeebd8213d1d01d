"""
Topology probe for live Redis Cluster shape.

The probe asks the first reachable endpoint for CLUSTER NODES and reports
node counts and health. When no endpoint answers, the cluster is treated as
not formed yet: the probe returns an empty topology instead of raising.
"""

import logging

from operator_protocols import Role
from operator_redis.exceptions import ProbeUnreachableError, TopologyParseError
from operator_redis.redis_client import UNREACHABLE_ERRORS, RedisConnector
from operator_redis.topology import ClusterTopology

logger = logging.getLogger(__name__)


class TopologyProbe:
    """
    Reads the live cluster topology from any reachable node.

    Endpoints are tried in order; the first one that answers with a
    parseable reply wins. Unreachable endpoints and malformed replies move
    on to the next endpoint.

    Example:
        probe = TopologyProbe(RedisConnector(password="secret"))
        leaders, total = await probe.count_nodes(endpoints, Role.LEADER)
    """

    def __init__(self, connector: RedisConnector) -> None:
        self.connector = connector

    async def observe(
        self, endpoints: list[str], require_reachable: bool = False
    ) -> ClusterTopology:
        """
        Probe endpoints in order and return the first topology read.

        Args:
            endpoints: Addresses to try, in order.
            require_reachable: Raise instead of returning an empty topology
                when nobody answers.

        Returns:
            The topology as seen by the first answering node, or an empty
            unreachable topology when nobody answered.

        Raises:
            TopologyParseError: If every answering node sent a malformed
                reply (no usable view exists, but the cluster is up).
            ProbeUnreachableError: If nobody answered and require_reachable
                is set.
        """
        parse_error: TopologyParseError | None = None
        for endpoint in endpoints:
            try:
                async with self.connector.connect(endpoint) as client:
                    return await client.cluster_nodes()
            except UNREACHABLE_ERRORS as e:
                logger.debug("Probe endpoint %s unreachable: %s", endpoint, e)
            except TopologyParseError as e:
                logger.warning("Probe endpoint %s sent malformed topology: %s", endpoint, e)
                parse_error = e

        if parse_error is not None:
            raise parse_error
        if require_reachable:
            raise ProbeUnreachableError(endpoints)

        logger.info("No cluster endpoint reachable (%d tried)", len(endpoints))
        return ClusterTopology.unreachable()

    async def count_nodes(
        self, endpoints: list[str], role: Role | None = None
    ) -> tuple[int, int]:
        """
        Count live nodes.

        Returns:
            (nodes matching role, all nodes). (0, 0) when unreachable.
        """
        topology = await self.observe(endpoints)
        return topology.count(role), topology.total

    async def count_unhealthy(
        self, endpoints: list[str], role: Role | None = None
    ) -> int:
        """Count failed or disconnected nodes. 0 when unreachable."""
        topology = await self.observe(endpoints)
        return topology.unhealthy(role)
