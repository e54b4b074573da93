"""Single-consumer worker that serializes telemetry publishes."""

import logging
import threading
from collections import deque
from typing import Callable, Optional

from .models import PositionFix

logger = logging.getLogger(__name__)

POLICIES = ("latest", "fifo")


class PublishWorker:
    """
    Publishes fixes one at a time on a background thread.

    With the ``latest`` policy a fix submitted while another is waiting
    replaces it, so only the most recent position is sent once the
    in-flight publish completes. With ``fifo`` every fix is sent in
    arrival order.
    """

    def __init__(
        self,
        handler: Callable[[PositionFix], object],
        policy: str = "latest",
    ):
        """
        Initialize the worker.

        Args:
            handler: Called with each fix on the worker thread
            policy: Backpressure policy, 'latest' or 'fifo'
        """
        if policy not in POLICIES:
            raise ValueError(f"Policy must be one of {POLICIES}, got {policy}")

        self.handler = handler
        self.policy = policy
        self.processed = 0
        self.dropped = 0
        self._pending: deque[PositionFix] = deque()
        self._cond = threading.Condition()
        self._busy = False
        self._stopping = False
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the worker thread."""
        if self._thread is not None:
            raise RuntimeError("Worker already started")
        self._thread = threading.Thread(
            target=self._run, name="publish-worker", daemon=True
        )
        self._thread.start()
        logger.info(f"Publish worker started (policy={self.policy})")

    def submit(self, fix: PositionFix) -> None:
        """
        Hand a fix to the worker without blocking.

        Args:
            fix: Position fix to publish
        """
        with self._cond:
            if self._stopping:
                logger.warning(f"Worker is stopping, dropping fix ({fix})")
                self.dropped += 1
                return
            if self.policy == "latest" and self._pending:
                self.dropped += len(self._pending)
                self._pending.clear()
                logger.debug("Replaced pending fix with newer one")
            self._pending.append(fix)
            self._cond.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until nothing is pending or in flight.

        Returns:
            True if idle, False on timeout
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._pending and not self._busy, timeout=timeout
            )

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop the worker.

        The in-flight publish is allowed to finish; pending fixes are
        discarded.

        Args:
            timeout: Maximum seconds to wait for the thread
        """
        with self._cond:
            self._stopping = True
            self._cond.notify_all()

        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Publish worker did not stop within timeout")

        logger.info(
            f"Publish worker stopped (processed={self.processed}, dropped={self.dropped})"
        )

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._pending and not self._stopping:
                    self._cond.wait()
                if self._stopping:
                    self.dropped += len(self._pending)
                    self._pending.clear()
                    self._cond.notify_all()
                    return
                fix = self._pending.popleft()
                self._busy = True

            try:
                self.handler(fix)
            except Exception as e:
                logger.error(f"Error publishing fix ({fix}): {e}", exc_info=True)
            finally:
                with self._cond:
                    self._busy = False
                    self.processed += 1
                    self._cond.notify_all()

    def __str__(self) -> str:
        return (
            f"PublishWorker(policy={self.policy}, pending={len(self._pending)}, "
            f"processed={self.processed}, dropped={self.dropped})"
        )
