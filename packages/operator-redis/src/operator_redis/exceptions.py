"""
Exception classes for Redis Cluster reconciliation.

Every failure an executor, probe or provisioner reports is one of these.
The reconciler maps each family to a requeue delay:
- ProvisioningError: platform resources could not be ensured (slow retry)
- TopologyError: the live topology could not be read or parsed
- FormationError / ReplicationError / FailoverError: Redis admin commands
  failed on one or more endpoints (fast retry)

Executor errors aggregate per-endpoint failures so one pass reports every
endpoint that failed rather than only the first.
"""


class RedisOperatorError(Exception):
    """Base class for all operator errors."""


class ProvisioningError(RedisOperatorError):
    """
    Raised when a platform resource could not be ensured.

    Attributes:
        resource: Human-readable name of the resource involved
    """

    def __init__(self, resource: str, reason: str) -> None:
        self.resource = resource
        self.reason = reason
        super().__init__(f"Failed to provision {resource}: {reason}")


class WorkloadNotFoundError(ProvisioningError):
    """Raised when a role's workload has not been created yet."""

    def __init__(self, resource: str) -> None:
        super().__init__(resource, "workload does not exist")


class TopologyError(RedisOperatorError):
    """Base class for topology observation failures."""


class TopologyParseError(TopologyError):
    """
    Raised when a CLUSTER NODES reply cannot be parsed.

    Attributes:
        line: The offending reply line (or a description of the reply)
    """

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed cluster nodes entry ({reason}): {line!r}")


class ProbeUnreachableError(TopologyError):
    """Raised when no endpoint answered the topology probe."""

    def __init__(self, endpoints: list[str]) -> None:
        self.endpoints = endpoints
        super().__init__(
            f"No cluster endpoint reachable (tried {len(endpoints)}: "
            f"{', '.join(endpoints) or 'none'})"
        )


class ClusterCommandError(RedisOperatorError):
    """
    Base class for admin command failures across several endpoints.

    Attributes:
        failures: Mapping of endpoint to the error raised there
    """

    operation = "cluster command"

    def __init__(self, failures: dict[str, BaseException]) -> None:
        self.failures = failures
        details = "; ".join(f"{ep}: {err}" for ep, err in failures.items())
        super().__init__(
            f"{self.operation} failed on {len(failures)} endpoint(s): {details}"
        )


class FormationError(ClusterCommandError):
    """Raised when cluster formation failed on one or more leaders."""

    operation = "Cluster formation"


class ReplicationError(ClusterCommandError):
    """Raised when attaching one or more followers failed."""

    operation = "Replica attach"


class FailoverError(ClusterCommandError):
    """Raised when tearing down the cluster state failed."""

    operation = "Failover"


class ManifestError(RedisOperatorError):
    """
    Raised when a desired-state manifest cannot be read or validated.

    Attributes:
        path: Manifest file path
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid manifest {path}: {reason}")
