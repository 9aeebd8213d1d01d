"""
CLUSTER NODES reply parser.

Turns the text reply of CLUSTER NODES into ClusterNodeView objects and
aggregates them into a ClusterTopology that answers the questions the
reconciler asks: how many nodes (per role), how many are unhealthy, which
leaders own slots and how many followers each leader has.

Reply format, one node per line:

    <id> <ip:port@cport[,hostname]> <flags> <master> <ping-sent>
    <pong-recv> <config-epoch> <link-state> <slot> <slot> ... <slot>

Slots are "N" or "N-M"; migrating/importing markers are bracketed
("[93-<-id]") and ignored. Malformed lines raise TopologyParseError; the
parse never guesses.
"""

from dataclasses import dataclass, field

from operator_protocols import Role
from operator_redis.exceptions import TopologyParseError
from operator_redis.types import ClusterNodeView, LinkState

HASH_SLOTS = 16384

# Number of fixed fields before the slot list
_FIXED_FIELDS = 8

_ROLE_FLAGS = {"master": Role.LEADER, "slave": Role.FOLLOWER}


def parse_cluster_nodes(reply: str | bytes) -> list[ClusterNodeView]:
    """
    Parse a full CLUSTER NODES reply.

    Args:
        reply: Raw reply, as str or undecoded bytes.

    Returns:
        One ClusterNodeView per non-empty line, in reply order.

    Raises:
        TopologyParseError: If the reply is not text or any line is malformed.
    """
    if isinstance(reply, bytes):
        reply = reply.decode("utf-8", errors="replace")
    if not isinstance(reply, str):
        raise TopologyParseError(repr(reply)[:80], "reply is not text")

    return [parse_node_line(line) for line in reply.splitlines() if line.strip()]


def parse_node_line(line: str) -> ClusterNodeView:
    """
    Parse one CLUSTER NODES line.

    Raises:
        TopologyParseError: On missing fields, unknown link state, or
            non-numeric epoch/slot values.
    """
    parts = line.split()
    if len(parts) < _FIXED_FIELDS:
        raise TopologyParseError(line, f"expected at least {_FIXED_FIELDS} fields")

    node_id, address, flag_field, master, _ping, _pong, epoch, link = parts[
        :_FIXED_FIELDS
    ]

    flags = frozenset(f for f in flag_field.split(",") if f and f != "noflags")
    role = next((_ROLE_FLAGS[f] for f in _ROLE_FLAGS if f in flags), None)

    try:
        link_state = LinkState(link)
    except ValueError:
        raise TopologyParseError(line, f"unknown link state {link!r}") from None

    try:
        config_epoch = int(epoch)
    except ValueError:
        raise TopologyParseError(line, f"non-numeric config epoch {epoch!r}") from None

    return ClusterNodeView(
        id=node_id,
        address=_client_address(address),
        role=role,
        link_state=link_state,
        flags=flags,
        master_id=None if master == "-" else master,
        config_epoch=config_epoch,
        slots=tuple(_parse_slots(line, parts[_FIXED_FIELDS:])),
    )


def _client_address(raw: str) -> str:
    """Strip the cluster bus port and hostname: "ip:port@cport,host" -> "ip:port"."""
    address = raw.split(",", 1)[0].split("@", 1)[0]
    # noaddr nodes report ":0"
    if address.startswith(":"):
        return ""
    return address


def _parse_slots(line: str, tokens: list[str]) -> list[tuple[int, int]]:
    ranges: list[tuple[int, int]] = []
    for token in tokens:
        if token.startswith("["):
            continue
        start, _, end = token.partition("-")
        try:
            first = int(start)
            last = int(end) if end else first
        except ValueError:
            raise TopologyParseError(line, f"bad slot token {token!r}") from None
        if not 0 <= first <= last < HASH_SLOTS:
            raise TopologyParseError(line, f"slot range out of bounds {token!r}")
        ranges.append((first, last))
    return ranges


@dataclass
class ClusterTopology:
    """
    Live cluster shape as reported by one node.

    Nodes are keyed by node id: a node reported twice (stale gossip) is
    counted once, the later entry winning. No other de-duplication is done.

    Attributes:
        nodes: Node views keyed by node id.
        source: Endpoint that answered, or None for an unreachable cluster.

    Example:
        topology = ClusterTopology.from_reply(reply, source="10.0.0.5:6379")
        if topology.count(Role.LEADER) < 3:
            ...
    """

    nodes: dict[str, ClusterNodeView] = field(default_factory=dict)
    source: str | None = None

    @classmethod
    def from_nodes(
        cls, nodes: list[ClusterNodeView], source: str | None = None
    ) -> "ClusterTopology":
        return cls(nodes={node.id: node for node in nodes}, source=source)

    @classmethod
    def from_reply(cls, reply: str | bytes, source: str | None = None) -> "ClusterTopology":
        return cls.from_nodes(parse_cluster_nodes(reply), source=source)

    @classmethod
    def unreachable(cls) -> "ClusterTopology":
        """Empty topology standing for "cluster not formed yet"."""
        return cls()

    @property
    def reachable(self) -> bool:
        return self.source is not None

    @property
    def total(self) -> int:
        return len(self.nodes)

    def count(self, role: Role | None = None) -> int:
        """Number of nodes with the given role (all nodes for None)."""
        if role is None:
            return self.total
        return sum(1 for node in self.nodes.values() if node.role is role)

    def unhealthy(self, role: Role | None = None) -> int:
        """Number of failed or disconnected nodes with the given role."""
        return sum(
            1
            for node in self.nodes.values()
            if node.is_unhealthy and (role is None or node.role is role)
        )

    def myself(self) -> ClusterNodeView | None:
        return next((n for n in self.nodes.values() if n.is_myself), None)

    def knows(self, node_id: str) -> bool:
        return node_id in self.nodes

    def address_of(self, node: ClusterNodeView) -> str:
        """
        Client address of a node.

        A node that has met nobody reports no address for itself; the
        endpoint that answered stands in for it.
        """
        if not node.address and node.is_myself and self.source is not None:
            return self.source
        return node.address

    def leaders_at(self, endpoints: list[str]) -> list[ClusterNodeView]:
        """Leader nodes whose address is one of `endpoints`."""
        wanted = set(endpoints)
        return [
            node
            for node in self.nodes.values()
            if node.role is Role.LEADER and self.address_of(node) in wanted
        ]

    def followers_of(
        self, leader_ids: set[str], endpoints: list[str]
    ) -> list[ClusterNodeView]:
        """Follower nodes at one of `endpoints` replicating one of `leader_ids`."""
        wanted = set(endpoints)
        return [
            node
            for node in self.nodes.values()
            if node.role is Role.FOLLOWER
            and node.master_id in leader_ids
            and self.address_of(node) in wanted
        ]

    def owned_slots(self) -> list[tuple[int, int]]:
        """All slot ranges owned by any known node."""
        return [r for node in self.nodes.values() for r in node.slots]

    def replica_counts(self, leader_ids: list[str]) -> dict[str, int]:
        """
        Followers currently attached to each of the given leaders.

        Followers of leaders outside `leader_ids` are ignored.
        """
        counts = {leader_id: 0 for leader_id in leader_ids}
        for node in self.nodes.values():
            if node.role is Role.FOLLOWER and node.master_id in counts:
                counts[node.master_id] += 1
        return counts


def plan_slot_ranges(leader_count: int) -> list[tuple[int, int]]:
    """
    Split the hash slots over leaders the way redis-cli --cluster create does.

    Args:
        leader_count: Number of leaders, between 1 and 16384.

    Returns:
        One inclusive (start, end) range per leader, contiguous, covering
        all 16384 slots.

    Raises:
        ValueError: If leader_count is outside 1..16384.
    """
    if leader_count < 1:
        raise ValueError("at least one leader is required to assign slots")
    if leader_count > HASH_SLOTS:
        raise ValueError(f"{leader_count} leaders cannot each own one of {HASH_SLOTS} slots")

    per_node = HASH_SLOTS / leader_count
    ranges: list[tuple[int, int]] = []
    first = 0
    cursor = 0.0
    for index in range(leader_count):
        last = round(cursor + per_node - 1)
        if last > HASH_SLOTS - 1 or index == leader_count - 1:
            last = HASH_SLOTS - 1
        if last < first:
            last = first
        ranges.append((first, last))
        first = last + 1
        cursor += per_node
    return ranges


def ranges_overlap(a: tuple[int, int], b: tuple[int, int]) -> bool:
    return a[0] <= b[1] and b[0] <= a[1]
