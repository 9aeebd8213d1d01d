"""
Failover executor: rebuild a cluster that has all but collapsed.

This is the one destructive path in the operator. It runs only when at most
one node of the whole cluster is still healthy, on the assumption that
Redis Cluster's own replica promotion absorbs anything smaller. Every
reachable node forgets its cluster state, then formation runs again over
the leaders.
"""

import logging

from operator_redis.exceptions import FailoverError, FormationError
from operator_redis.formation import FormationExecutor
from operator_redis.redis_client import COMMAND_ERRORS, RedisConnector

logger = logging.getLogger(__name__)


def should_failover(unhealthy: int, total_replicas: int) -> bool:
    """
    Decide whether the cluster is broken enough to rebuild.

    True when at most one node of the desired cluster is still healthy.
    Not a majority rule.
    """
    return unhealthy >= total_replicas - 1


class FailoverExecutor:
    """
    Tears down cluster membership and re-triggers formation.

    Attributes:
        flush_data: FLUSHALL before CLUSTER RESET. Redis refuses to reset a
            leader holding keys, so without it a leader with data makes the
            failover fail loudly instead of losing the data.
        hard_reset: Use CLUSTER RESET HARD (new node ids).

    Example:
        failover = FailoverExecutor(connector, FormationExecutor(connector))
        await failover.failover("cache", leader_endpoints, follower_endpoints)
    """

    def __init__(
        self,
        connector: RedisConnector,
        formation: FormationExecutor,
        flush_data: bool = False,
        hard_reset: bool = False,
    ) -> None:
        self.connector = connector
        self.formation = formation
        self.flush_data = flush_data
        self.hard_reset = hard_reset

    async def failover(
        self,
        instance: str,
        leader_endpoints: list[str],
        follower_endpoints: list[str],
    ) -> None:
        """
        Reset every node of the instance and form the cluster again.

        Leaders are reset before followers. Every endpoint is attempted;
        formation is only re-triggered when all leaders were reset.

        Raises:
            FailoverError: With the per-endpoint failures, if any.
        """
        logger.warning(
            "Failover for %s: resetting %d leader(s) and %d follower(s)",
            instance,
            len(leader_endpoints),
            len(follower_endpoints),
        )

        failures: dict[str, BaseException] = {}
        for endpoint in [*leader_endpoints, *follower_endpoints]:
            try:
                async with self.connector.connect(endpoint) as client:
                    if self.flush_data:
                        await client.flushall()
                    await client.reset(hard=self.hard_reset)
            except COMMAND_ERRORS as e:
                logger.error("Failover for %s: reset of %s failed: %s", instance, endpoint, e)
                failures[endpoint] = e

        if not any(ep in failures for ep in leader_endpoints) and leader_endpoints:
            try:
                await self.formation.form_cluster(leader_endpoints)
            except FormationError as e:
                failures.update(e.failures)

        if failures:
            raise FailoverError(failures)

        logger.warning("Failover for %s: cluster state reset and re-formed", instance)
