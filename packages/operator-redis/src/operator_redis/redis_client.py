"""Redis client for cluster administration commands."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import redis.asyncio as redis

from operator_redis.topology import ClusterTopology
from operator_redis.types import Endpoint

# Errors meaning "this endpoint did not answer", as opposed to a command
# being rejected by a reachable node.
UNREACHABLE_ERRORS = (
    redis.ConnectionError,
    redis.TimeoutError,
    OSError,
)

# Any failure of an admin command against one endpoint
COMMAND_ERRORS = (redis.RedisError, OSError)


@dataclass
class RedisNodeClient:
    """
    Redis client for one cluster node.

    Issues the fixed administrative vocabulary the reconciler needs.
    Commands are sent as raw CLUSTER subcommands so replies reach our own
    parser untouched.

    Attributes:
        redis: Pre-configured redis.asyncio.Redis client for one node.
        endpoint: Address of the node, used in logs and errors.

    Example:
        import redis.asyncio as redis

        async with redis.Redis(host="10.0.0.5", port=6379) as r:
            client = RedisNodeClient(redis=r, endpoint="10.0.0.5:6379")
            topology = await client.cluster_nodes()
    """

    redis: redis.Redis
    endpoint: str

    async def cluster_nodes(self) -> ClusterTopology:
        """
        Read and parse this node's view of the cluster.

        Raises:
            redis.RedisError: On connection or command errors.
            TopologyParseError: On a malformed reply.
        """
        reply = await self.redis.execute_command("CLUSTER", "NODES")
        return ClusterTopology.from_reply(reply, source=self.endpoint)

    async def myid(self) -> str:
        """Return this node's cluster node id."""
        reply = await self.redis.execute_command("CLUSTER", "MYID")
        if isinstance(reply, bytes):
            reply = reply.decode()
        return str(reply)

    async def meet(self, other: Endpoint) -> None:
        """Introduce another node to this node's cluster."""
        await self.redis.execute_command("CLUSTER", "MEET", other.host, other.port)

    async def add_slots_range(self, start: int, end: int) -> None:
        """Claim the inclusive slot range for this node."""
        await self.redis.execute_command("CLUSTER", "ADDSLOTSRANGE", start, end)

    async def replicate(self, leader_id: str) -> None:
        """Turn this node into a replica of the given leader."""
        await self.redis.execute_command("CLUSTER", "REPLICATE", leader_id)

    async def reset(self, hard: bool = False) -> None:
        """Forget all cluster state (SOFT keeps the node id, HARD does not)."""
        await self.redis.execute_command("CLUSTER", "RESET", "HARD" if hard else "SOFT")

    async def flushall(self) -> None:
        await self.redis.flushall()


@dataclass
class RedisConnector:
    """
    Opens short-lived admin connections to cluster nodes.

    Every probe or executor call opens its own connection per endpoint and
    closes it when done; nothing is pooled across calls.

    Attributes:
        password: AUTH password, or None.
        socket_timeout: Connect and command timeout in seconds.
    """

    password: str | None = None
    socket_timeout: float = 5.0

    @asynccontextmanager
    async def connect(self, endpoint: str) -> AsyncIterator[RedisNodeClient]:
        """
        Connect to "host:port".

        Raises:
            ValueError: If the endpoint is not "host:port".
        """
        address = Endpoint.parse(endpoint)
        client = redis.Redis(
            host=address.host,
            port=address.port,
            password=self.password,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
            decode_responses=True,
        )
        try:
            yield RedisNodeClient(redis=client, endpoint=str(address))
        finally:
            await client.aclose()
