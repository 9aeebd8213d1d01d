"""
Protocol definitions for the Redis Cluster operator.

This package provides generic Protocol definitions that subjects and
platforms implement. It has zero dependencies on other operator-* packages.

Key protocols:
- ResourceProvisionerProtocol: Interface for platform resource provisioners
- DesiredStateStoreProtocol: Interface for desired-state object stores
- ReconcilerProtocol: Interface for per-object reconcilers

Key types:
- Role: Leader/follower role of a cluster node
- ReconcileOutcome: Result of one reconciliation pass
"""

from operator_protocols.provisioner import ResourceProvisionerProtocol
from operator_protocols.store import DesiredStateStoreProtocol, ReconcilerProtocol
from operator_protocols.types import ReconcileOutcome, Role

__all__ = [
    # Protocols
    "ResourceProvisionerProtocol",
    "DesiredStateStoreProtocol",
    "ReconcilerProtocol",
    # Data types
    "ReconcileOutcome",
    "Role",
]
