"""
Generic types for the operator protocol system.

This module defines the value types shared between the controller runtime
and subject implementations. They are generic and carry no dependency on
any particular platform or datastore.

All types use @dataclass or str Enum for simplicity and immutability.
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """
    Role of a node in a replicated cluster.

    Attributes:
        LEADER: Primary node owning a subset of the data.
        FOLLOWER: Replica node copying one leader's data subset.
    """

    LEADER = "leader"
    FOLLOWER = "follower"


@dataclass(frozen=True)
class ReconcileOutcome:
    """
    Result of one reconciliation pass.

    A pass either completes (nothing further scheduled) or asks to be
    re-run after a delay, optionally carrying the error that caused the
    requeue. The error is surfaced to operators by the caller and never
    alters the requeue schedule.

    Attributes:
        requeue_after: Seconds until the next pass, or None when done.
        error: Cause of a failed pass, or None.

    Example:
        outcome = ReconcileOutcome.requeue(60.0, error=exc)
        if outcome.failed:
            logger.error("pass failed: %s", outcome.error)
    """

    requeue_after: float | None = None
    error: BaseException | None = None

    @classmethod
    def done(cls) -> "ReconcileOutcome":
        """Pass finished; no further pass is scheduled."""
        return cls()

    @classmethod
    def requeue(
        cls, after: float, error: BaseException | None = None
    ) -> "ReconcileOutcome":
        """Schedule another pass after `after` seconds."""
        return cls(requeue_after=after, error=error)

    @property
    def should_requeue(self) -> bool:
        return self.requeue_after is not None

    @property
    def failed(self) -> bool:
        return self.error is not None
