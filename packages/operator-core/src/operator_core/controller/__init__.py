"""
Controller runtime for reconcilers.

Exports:
    WorkQueue: De-duplicating work queue with delayed adds
    ControllerLoop: Daemon driving a reconciler from the queue
"""

from operator_core.controller.loop import ControllerLoop
from operator_core.controller.queue import WorkQueue

__all__ = ["ControllerLoop", "WorkQueue"]
