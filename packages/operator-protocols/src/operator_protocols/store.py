"""
Desired-state store and reconciler protocol definitions.

The DesiredStateStoreProtocol is where desired-state objects live (a
platform API, a directory of manifests). The ReconcilerProtocol is the
per-object control function the controller loop drives.
"""

from typing import Any, Protocol, runtime_checkable

from operator_protocols.types import ReconcileOutcome


@runtime_checkable
class DesiredStateStoreProtocol(Protocol):
    """
    Protocol for desired-state object stores.

    Objects are addressed by name. A store never caches objects across
    calls: every get() reflects the current stored state.
    """

    async def get(self, name: str) -> Any | None:
        """Return the object, or None when it does not exist."""
        ...

    async def list_names(self) -> list[str]:
        """Return the names of all stored objects."""
        ...

    async def add_finalizer(self, name: str) -> None:
        """Mark the object as requiring cleanup before removal."""
        ...

    async def remove_finalizer(self, name: str) -> None:
        """Release the cleanup marker, allowing removal to complete."""
        ...


@runtime_checkable
class ReconcilerProtocol(Protocol):
    """
    Protocol for reconcilers.

    A reconciler compares one object's desired state with the live world,
    takes at most one corrective step, and reports when it wants to run
    again. It holds no state between passes.
    """

    async def reconcile(self, name: str) -> ReconcileOutcome:
        """Run one reconciliation pass for the named object."""
        ...
