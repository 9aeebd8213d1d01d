"""
ControllerLoop daemon driving reconcilers from a work queue.

The loop:
- Runs a fixed number of worker tasks pulling object names from a WorkQueue
- Calls the reconciler once per name under a uniform per-pass deadline
- Schedules the next pass after the delay the reconciler asked for
- Re-lists the desired-state store periodically (resync) so new objects,
  and objects whose last pass asked for no requeue, are visited; names the
  queue already tracks keep the delay their last pass asked for
- Handles graceful shutdown on SIGINT/SIGTERM

Shutdown coordination uses an asyncio.Event; the resync task waits on it
with a timeout instead of sleeping, so a signal stops it immediately.
"""

import asyncio
import functools
import logging
import signal

from operator_core.controller.queue import WorkQueue
from operator_protocols import (
    DesiredStateStoreProtocol,
    ReconcileOutcome,
    ReconcilerProtocol,
)

logger = logging.getLogger(__name__)


class ControllerLoop:
    """
    Long-running daemon that reconciles every stored object.

    Passes for different objects run concurrently on separate workers; the
    work queue guarantees at most one in-flight pass per object name.

    This class is subject-agnostic: it works with any ReconcilerProtocol
    and DesiredStateStoreProtocol implementation.

    Example:
        reconciler, store = create_redis_reconciler(Path("manifests"))
        loop = ControllerLoop(reconciler=reconciler, store=store, workers=4)
        await loop.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        reconciler: ReconcilerProtocol,
        store: DesiredStateStoreProtocol,
        workers: int = 4,
        resync_seconds: float = 30.0,
        pass_timeout_seconds: float = 60.0,
        error_requeue_seconds: float = 10.0,
        queue: WorkQueue | None = None,
    ) -> None:
        """
        Initialize controller loop.

        Args:
            reconciler: Per-object reconciler to drive
            store: Store listing the objects to reconcile
            workers: Number of concurrent worker tasks
            resync_seconds: Seconds between full store re-lists
            pass_timeout_seconds: Deadline for one reconcile pass
            error_requeue_seconds: Requeue delay after a timed-out or
                crashed pass
            queue: Optional work queue (a new one is created if None)
        """
        self.reconciler = reconciler
        self.store = store
        self.workers = workers
        self.resync_interval = resync_seconds
        self.pass_timeout = pass_timeout_seconds
        self.error_requeue = error_requeue_seconds
        self.queue = queue if queue is not None else WorkQueue()
        self._shutdown = asyncio.Event()

        # Stats for the shutdown summary
        self._passes = 0
        self._failures = 0

    @property
    def passes(self) -> int:
        return self._passes

    @property
    def failures(self) -> int:
        return self._failures

    async def run(self, install_signal_handlers: bool = True) -> None:
        """
        Run workers and resync until stop() or a shutdown signal.

        Args:
            install_signal_handlers: Register SIGINT and SIGTERM handlers
                on the running loop.
        """
        if install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(
                    sig,
                    functools.partial(self._handle_signal, sig),
                )

        logger.info(
            "Controller loop starting (workers: %d, resync: %.0fs, pass timeout: %.0fs)",
            self.workers,
            self.resync_interval,
            self.pass_timeout,
        )

        tasks = [
            asyncio.create_task(self._worker(i), name=f"reconcile-worker-{i}")
            for i in range(self.workers)
        ]
        tasks.append(asyncio.create_task(self._resync(), name="resync"))

        await self._shutdown.wait()
        self.queue.shutdown()
        await asyncio.gather(*tasks)

        logger.info(
            "Controller loop stopped (%d passes, %d failed)",
            self._passes,
            self._failures,
        )

    def stop(self) -> None:
        """Request graceful shutdown."""
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal by setting shutdown event."""
        logger.info("Received %s, shutting down...", sig.name)
        self.stop()

    async def reconcile_once(self, name: str) -> ReconcileOutcome:
        """
        Run one pass for `name` under the pass deadline.

        Timeouts and unexpected exceptions are converted into a requeue
        after error_requeue_seconds carrying the exception. Failed outcomes
        are logged at error level.
        """
        self._passes += 1
        try:
            outcome = await asyncio.wait_for(
                self.reconciler.reconcile(name),
                timeout=self.pass_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "Reconcile of %s timed out after %.0fs", name, self.pass_timeout
            )
            outcome = ReconcileOutcome.requeue(self.error_requeue, e)
        except Exception as e:
            logger.exception("Reconcile of %s raised unexpectedly", name)
            outcome = ReconcileOutcome.requeue(self.error_requeue, e)
        else:
            if outcome.failed:
                logger.error(
                    "Reconcile of %s failed: %s (requeue in %ss)",
                    name,
                    outcome.error,
                    outcome.requeue_after,
                )

        if outcome.failed:
            self._failures += 1
        return outcome

    async def _worker(self, index: int) -> None:
        while True:
            name = await self.queue.get()
            if name is None:
                break
            try:
                outcome = await self.reconcile_once(name)
                if outcome.should_requeue:
                    self.queue.add_after(name, outcome.requeue_after)
                else:
                    logger.debug("Reconcile of %s done, no requeue", name)
            finally:
                self.queue.done(name)
        logger.debug("Worker %d exiting", index)

    async def _resync(self) -> None:
        while not self._shutdown.is_set():
            await self.enqueue_all()

            # Wait for interval or shutdown signal
            try:
                await asyncio.wait_for(
                    self._shutdown.wait(),
                    timeout=self.resync_interval,
                )
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue loop

    async def enqueue_all(self) -> int:
        """
        Enqueue every stored object the queue is not already tracking.

        A name that is waiting, in flight or scheduled by a requeue timer is
        left alone, so resync never shortens a requested requeue delay.

        Returns:
            Number of names enqueued. 0 when the store could not be listed.
        """
        try:
            names = await self.store.list_names()
        except Exception:
            logger.exception("Listing desired-state objects failed")
            return 0
        added = 0
        for name in names:
            if self.queue.tracked(name):
                continue
            self.queue.add(name)
            added += 1
        logger.debug("Resync listed %d object(s), enqueued %d", len(names), added)
        return added
