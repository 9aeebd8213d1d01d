"""
Operator Core Library

Subject-agnostic runtime for the Redis Cluster operator. This package
provides:

- ControllerLoop: Daemon driving a reconciler from a work queue
- WorkQueue: De-duplicating work queue with delayed adds
- OperatorSettings: Environment-based configuration
- CLI infrastructure: Typer-based command structure
"""

__version__ = "0.1.0"

from operator_core.config import OperatorSettings
from operator_core.controller import ControllerLoop, WorkQueue

# Re-export ReconcileOutcome from operator_protocols for convenience
from operator_protocols import ReconcileOutcome

__all__ = [
    "__version__",
    # Runtime
    "ControllerLoop",
    "WorkQueue",
    # Configuration
    "OperatorSettings",
    # Outcome type (from operator_protocols)
    "ReconcileOutcome",
]
