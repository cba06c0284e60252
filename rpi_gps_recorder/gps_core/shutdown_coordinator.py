"""
Shutdown Coordinator - single point of control for flushing the open segment.

SIGINT/SIGTERM may arrive more than once and from a different execution
context than the ingestion loop. The coordinator guarantees the open segment
is exported at most once and the stop event is set exactly once.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import threading
from enum import Enum
from typing import Optional

from ..core.logging_utils import get_module_logger
from .errors import ExportError
from .exporter import SegmentExporter
from .segmenter import SegmentBuffer

logger = get_module_logger("ShutdownCoordinator")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownState(Enum):
    """States of the shutdown process."""
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class ShutdownCoordinator:
    """
    Drains the open segment once and tells the ingestion loop to stop.

    Shutdown sequence:
    1. A signal (or a caller) invokes request_shutdown()
    2. The single-use latch is taken; later requests return immediately
    3. State transitions to DRAINING
    4. Under the segment lock the open segment is exported if non-empty
       and the stop event is set
    5. State transitions to STOPPED
    """

    def __init__(
        self,
        buffer: SegmentBuffer,
        exporter: SegmentExporter,
        stop_event: Optional[threading.Event] = None,
    ):
        self.buffer = buffer
        self.exporter = exporter
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self._latch = threading.Lock()
        self._state = ShutdownState.RUNNING
        self._drain_future: Optional[asyncio.Future] = None

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def is_shutting_down(self) -> bool:
        return self._state is not ShutdownState.RUNNING

    def request_shutdown(self, source: str = "unknown") -> bool:
        """
        Flush the open segment and set the stop event.

        Safe to call from any thread, any number of times. Only the first
        call does any work.

        Returns:
            True if this call performed the drain, False if one had already
            been started.
        """
        if not self._latch.acquire(blocking=False):
            logger.debug(
                "Shutdown already initiated (state=%s), ignoring request from %s",
                self._state.value, source,
            )
            return False

        # The latch is never released.
        self._state = ShutdownState.DRAINING
        logger.info("Shutdown initiated by %s, saving open segment", source)

        try:
            with self.buffer.lock:
                try:
                    segment = self.buffer.take()
                    if segment:
                        self.exporter.export(segment)
                    else:
                        logger.info("No points to save")
                except ExportError as exc:
                    logger.error("Failed to save segment on shutdown: %s", exc)
                finally:
                    self.stop_event.set()
        finally:
            self._state = ShutdownState.STOPPED
            logger.info("Shutdown complete")
        return True

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route SIGINT/SIGTERM to a drain on the loop's default executor."""

        def _handle_signal(sig: signal.Signals) -> None:
            logger.info("Received %s", sig.name)
            future = loop.run_in_executor(None, self.request_shutdown, sig.name)
            if self._drain_future is None:
                self._drain_future = future

        for sig in SHUTDOWN_SIGNALS:
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _handle_signal, sig)

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in SHUTDOWN_SIGNALS:
            with contextlib.suppress(NotImplementedError, ValueError):
                loop.remove_signal_handler(sig)

    async def wait_drained(self) -> None:
        """Wait for a signal-dispatched drain to finish, if one was started."""
        if self._drain_future is not None:
            await self._drain_future
