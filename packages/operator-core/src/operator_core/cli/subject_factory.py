"""
Factory for creating reconciler and store instances.

Uses lazy imports to avoid loading unused subject packages.
Subjects are discovered via a hardcoded switch.
"""

from typing import TYPE_CHECKING

from operator_core.config import OperatorSettings

if TYPE_CHECKING:
    from operator_protocols import DesiredStateStoreProtocol, ReconcilerProtocol

# Hardcoded list of available subjects
AVAILABLE_SUBJECTS = ["redis-cluster"]


def create_reconciler(
    subject_name: str,
    settings: OperatorSettings,
) -> tuple["ReconcilerProtocol", "DesiredStateStoreProtocol"]:
    """
    Factory function to create a reconciler and its desired-state store.

    Args:
        subject_name: Subject identifier (e.g., "redis-cluster")
        settings: Operator settings carrying connection and store options

    Returns:
        Tuple of (reconciler, store) instances

    Raises:
        ValueError: If subject_name is not recognized

    Example:
        reconciler, store = create_reconciler("redis-cluster", OperatorSettings())
    """
    if subject_name == "redis-cluster":
        # Lazy import to avoid loading redis package unless needed
        from operator_redis.factory import create_redis_reconciler

        return create_redis_reconciler(
            settings.manifests_dir,
            redis_password=settings.redis_password,
            redis_port=settings.redis_port,
            socket_timeout=settings.redis_socket_timeout,
            redis_image=settings.redis_image,
            failover_flush_data=settings.failover_flush_data,
            failover_hard_reset=settings.failover_hard_reset,
        )
    raise ValueError(
        f"Unknown subject '{subject_name}'. "
        f"Available subjects: {', '.join(AVAILABLE_SUBJECTS)}"
    )


def get_available_subjects() -> list[str]:
    """Return list of available subject names."""
    return AVAILABLE_SUBJECTS.copy()
