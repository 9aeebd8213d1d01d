"""
Resource provisioner protocol definition.

The ResourceProvisionerProtocol is the boundary between the reconciler and
the platform that runs the cluster's processes. Implementations create and
update the platform resources (workloads, network endpoints, disruption
budgets) for a desired-state object and report how many replicas are ready.

Every ensure_* call must be idempotent: the reconciler calls them on every
pass with an unchanged desired state.
"""

from typing import Any, Protocol, runtime_checkable

from operator_protocols.types import Role


@runtime_checkable
class ResourceProvisionerProtocol(Protocol):
    """
    Protocol for platform resource provisioners.

    The `cluster` argument is the subject's desired-state object. Its shape
    is implementation-specific; provisioners document what they read.

    Errors are raised, never swallowed. The reconciler maps any raised
    exception to a slow requeue without touching the live topology.
    """

    async def ensure_leader_workload(self, cluster: Any) -> int:
        """
        Ensure the leader workload exists with the desired replica count.

        Returns:
            Number of leader replicas currently ready.
        """
        ...

    async def ensure_follower_workload(self, cluster: Any) -> int:
        """
        Ensure the follower workload exists with the desired replica count.

        Returns:
            Number of follower replicas currently ready.
        """
        ...

    async def ensure_service(self, role: Role, cluster: Any) -> None:
        """Ensure the network endpoint for a role's workload exists."""
        ...

    async def ensure_disruption_budget(self, role: Role, cluster: Any) -> None:
        """Ensure the disruption budget for a role matches the template."""
        ...

    async def ready_replicas(self, cluster: Any, role: Role) -> int:
        """
        Read the ready replica count of an existing workload.

        Raises:
            Exception: When the workload does not exist yet.
        """
        ...

    async def endpoints(self, cluster: Any, role: Role) -> list[str]:
        """
        Return "host:port" addresses of a role's replicas, by ordinal.
        """
        ...

    async def release_all(self, cluster: Any) -> None:
        """Delete every platform resource owned by the instance."""
        ...
