"""
Shared fixtures for operator-redis tests.

FakeRedisCluster stands in for a set of Redis nodes: it answers the admin
vocabulary RedisNodeClient exposes (CLUSTER NODES/MYID/MEET/ADDSLOTSRANGE/
REPLICATE/RESET, FLUSHALL) and keeps just enough state for formation,
replication and failover to be exercised without a server. Gossip is
instant: a MEET merges both nodes' known sets across the whole group.
One-shot errors (FakeNode.fail_once) stand in for commands a real node
refuses transiently, such as REPLICATE before the MEET handshake settles.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import pytest
import redis.asyncio as redis

from operator_protocols import Role
from operator_redis.topology import ClusterTopology, ranges_overlap
from operator_redis.types import ClusterNodeView, Endpoint, LinkState


class FakeNode:
    """State of one fake Redis node."""

    def __init__(self, endpoint: str, node_id: str) -> None:
        self.endpoint = endpoint
        self.id = node_id
        self.known: set[str] = {node_id}
        self.slots: list[tuple[int, int]] = []
        self.master_id: str | None = None
        self.reachable = True
        self.failed = False
        self.calls: list[tuple] = []
        # Command name -> exception raised instead of running it
        self.errors: dict[str, Exception] = {}
        # Command name -> exception raised on the next call only
        self.fail_once: dict[str, Exception] = {}

    def check(self, command: str, *args) -> None:
        self.calls.append((command, *args))
        if command in self.fail_once:
            raise self.fail_once.pop(command)
        if command in self.errors:
            raise self.errors[command]

    def commands(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeNodeClient:
    """Async client bound to one FakeNode, mirroring RedisNodeClient."""

    def __init__(self, node: FakeNode, cluster: "FakeRedisCluster") -> None:
        self.node = node
        self.cluster = cluster
        self.endpoint = node.endpoint

    async def cluster_nodes(self) -> ClusterTopology:
        self.node.check("nodes")
        views = [
            self.cluster.view_of(self.node, other)
            for other in self.cluster.by_ids(self.node.known)
        ]
        return ClusterTopology.from_nodes(views, source=self.node.endpoint)

    async def myid(self) -> str:
        self.node.check("myid")
        return self.node.id

    async def meet(self, other: Endpoint) -> None:
        self.node.check("meet", str(other))
        target = self.cluster.nodes.get(str(other))
        if target is None or not target.reachable:
            raise redis.ResponseError(f"Invalid node address specified: {other}")
        merged = self.node.known | target.known
        for node in self.cluster.by_ids(merged):
            node.known = set(merged)

    async def add_slots_range(self, start: int, end: int) -> None:
        self.node.check("addslotsrange", start, end)
        for other in self.cluster.by_ids(self.node.known):
            if any(ranges_overlap((start, end), r) for r in other.slots):
                raise redis.ResponseError(f"Slot {start} is already busy")
        self.node.slots.append((start, end))

    async def replicate(self, leader_id: str) -> None:
        self.node.check("replicate", leader_id)
        if leader_id not in self.node.known:
            raise redis.ResponseError(f"Unknown node {leader_id}")
        if self.node.slots:
            raise redis.ResponseError("To set a master the node must be empty")
        self.node.master_id = leader_id

    async def reset(self, hard: bool = False) -> None:
        self.node.check("reset", hard)
        for other in self.cluster.by_ids(self.node.known - {self.node.id}):
            other.known.discard(self.node.id)
        self.node.known = {self.node.id}
        self.node.slots = []
        self.node.master_id = None
        self.node.failed = False

    async def flushall(self) -> None:
        self.node.check("flushall")


class FakeRedisCluster:
    """
    Group of fake nodes reachable through connect(), like RedisConnector.

    Example:
        cluster = FakeRedisCluster()
        cluster.add_nodes(["10.0.0.1:6379", "10.0.0.2:6379"])
        async with cluster.connect("10.0.0.1:6379") as client:
            await client.myid()
    """

    def __init__(self) -> None:
        self.nodes: dict[str, FakeNode] = {}
        self.connects: list[str] = []

    def add_node(self, endpoint: str) -> FakeNode:
        node = FakeNode(endpoint, f"{len(self.nodes) + 1:040x}")
        self.nodes[endpoint] = node
        return node

    def add_nodes(self, endpoints: list[str]) -> list[FakeNode]:
        return [self.add_node(ep) for ep in endpoints]

    def by_ids(self, ids: set[str]) -> list[FakeNode]:
        return [n for n in self.nodes.values() if n.id in ids]

    def by_id(self, node_id: str) -> FakeNode:
        return next(n for n in self.nodes.values() if n.id == node_id)

    def view_of(self, viewer: FakeNode, node: FakeNode) -> ClusterNodeView:
        flags = {"master" if node.master_id is None else "slave"}
        if node is viewer:
            flags.add("myself")
        if node.failed:
            flags.add("fail")
        return ClusterNodeView(
            id=node.id,
            address=node.endpoint,
            role=Role.LEADER if node.master_id is None else Role.FOLLOWER,
            link_state=LinkState.DISCONNECTED if node.failed else LinkState.CONNECTED,
            flags=frozenset(flags),
            master_id=node.master_id,
            slots=tuple(node.slots),
        )

    @asynccontextmanager
    async def connect(self, endpoint: str) -> AsyncIterator[FakeNodeClient]:
        self.connects.append(endpoint)
        node = self.nodes.get(endpoint)
        if node is None or not node.reachable:
            raise redis.ConnectionError(f"Error connecting to {endpoint}")
        yield FakeNodeClient(node, self)


LEADERS = ["10.0.0.1:6379", "10.0.0.2:6379", "10.0.0.3:6379"]
FOLLOWERS = ["10.0.1.1:6379", "10.0.1.2:6379", "10.0.1.3:6379"]


@pytest.fixture
def fake_cluster() -> FakeRedisCluster:
    """Six unconnected nodes: three leader-designates, three followers."""
    cluster = FakeRedisCluster()
    cluster.add_nodes(LEADERS + FOLLOWERS)
    return cluster


@pytest.fixture
def leader_endpoints() -> list[str]:
    return list(LEADERS)


@pytest.fixture
def follower_endpoints() -> list[str]:
    return list(FOLLOWERS)
