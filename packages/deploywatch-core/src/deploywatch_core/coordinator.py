"""
WatchCoordinator for running the poll and render loops together.

This module implements the lifetime of one watch:
- RUNNING: poll and render tasks run concurrently at their own cadence
- COMPLETING: entered when the root deployment is terminal, the poller
  fails, or cancellation is requested; both loops are stopped
- STOPPED: exactly one final frame has been drawn and the cursor restored

The two tasks share a single SnapshotStore. The poller is its only writer
and the render loop its only reader.

Shutdown coordination follows the daemon loop pattern:
- asyncio.Event for stop and cancellation signals
- Signal handlers registered with loop.add_signal_handler() inside run()
- wait_for on the stop event with a timeout for interruptible sleeps
"""

from __future__ import annotations

import asyncio
import functools
import logging
import signal
from dataclasses import dataclass
from enum import Enum

from deploywatch_core.poller import DeploymentPoller
from deploywatch_core.store import SnapshotStore
from deploywatch_core.tui.display import LiveTreeDisplay
from deploywatch_core.types import DeploymentId, DeploymentState, Snapshot

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """Lifecycle of a WatchCoordinator run."""

    RUNNING = "running"
    COMPLETING = "completing"
    STOPPED = "stopped"


class WatchStatus(Enum):
    """How a watch ended."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ERROR = "error"


EXIT_CODES = {
    WatchStatus.SUCCEEDED: 0,
    WatchStatus.FAILED: 1,
    WatchStatus.ERROR: 2,
    WatchStatus.CANCELLED: 130,
}


@dataclass(frozen=True)
class WatchOutcome:
    """
    Result of a watch.

    Attributes:
        status: How the watch ended
        root_state: Last known raw state of the root deployment, if any
        error: Exception that stopped the poller (ERROR only)
    """

    status: WatchStatus
    root_state: str | None = None
    error: BaseException | None = None

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]


class WatchCoordinator:
    """
    Runs a DeploymentPoller and a LiveTreeDisplay over one cancellable lifetime.

    Example:
        coordinator = WatchCoordinator(
            poller=DeploymentPoller(client),
            display=LiveTreeDisplay(TreeRenderer(tenant_id)),
        )
        outcome = await coordinator.run(root_id)  # Until terminal or Ctrl+C
        raise SystemExit(outcome.exit_code)
    """

    def __init__(
        self,
        poller: DeploymentPoller,
        display: LiveTreeDisplay,
        poll_interval: float = 5.0,
        render_interval: float = 0.05,
        handle_signals: bool = True,
    ) -> None:
        """
        Initialize coordinator.

        Args:
            poller: Produces snapshots from the orchestration service
            display: Draws snapshots to the terminal
            poll_interval: Seconds between poll cycle starts (default 5.0)
            render_interval: Seconds between frames (default 0.05)
            handle_signals: Register SIGINT/SIGTERM handlers during run()
        """
        self.poller = poller
        self.display = display
        self.poll_interval = poll_interval
        self.render_interval = render_interval
        self.handle_signals = handle_signals
        self.state: LoopState | None = None
        self.failed_frames = 0
        self._stop = asyncio.Event()
        self._cancelled = asyncio.Event()

    def cancel(self) -> None:
        """Request cancellation of the current run. The final frame is still drawn."""
        self._cancelled.set()

    async def run(self, root_id: DeploymentId) -> WatchOutcome:
        """
        Watch a deployment until it reaches a terminal state.

        Always draws one last frame from the latest snapshot and restores
        the cursor, including when this task itself is cancelled (in which
        case CancelledError is re-raised afterwards).

        Each call starts with fresh stop and cancellation events, so one
        coordinator can watch more than once.

        Args:
            root_id: Resource id of the entry-point deployment

        Returns:
            WatchOutcome describing how the watch ended
        """
        loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        self._cancelled = asyncio.Event()
        if self.handle_signals:
            self._add_signal_handlers(loop)

        store = SnapshotStore()
        self.state = LoopState.RUNNING
        poll_task = asyncio.create_task(self._poll_loop(store, root_id))
        render_task = asyncio.create_task(self._render_loop(store))
        cancel_task = asyncio.create_task(self._cancelled.wait())

        try:
            await asyncio.wait(
                {poll_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            self.state = LoopState.COMPLETING
            self._stop.set()
            poll_task.cancel()
            cancel_task.cancel()
            await asyncio.gather(
                poll_task, render_task, cancel_task, return_exceptions=True
            )
            try:
                self._draw(store)
            finally:
                self.display.restore_cursor()
                if self.handle_signals:
                    self._remove_signal_handlers(loop)
                self.state = LoopState.STOPPED

        return self._outcome(poll_task, store.current())

    async def _poll_loop(
        self, store: SnapshotStore, root_id: DeploymentId
    ) -> Snapshot | None:
        """
        Poll until the root deployment is terminal.

        Cycles start poll_interval apart; a slow cycle delays the next one
        rather than overlapping it. Errors propagate to run().
        """
        loop = asyncio.get_running_loop()
        while not self._stop.is_set():
            started = loop.time()
            snapshot = await self.poller.poll(root_id)
            store.publish(snapshot)

            if self.poller.is_complete(snapshot):
                logger.info(
                    "Deployment %s finished: %s", snapshot.root.name, snapshot.root.state
                )
                return snapshot

            delay = max(self.poll_interval - (loop.time() - started), 0.0)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue loop
        return None

    async def _render_loop(self, store: SnapshotStore) -> None:
        """Draw the current snapshot every render_interval until stopped."""
        while not self._stop.is_set():
            self._draw(store)
            try:
                await asyncio.wait_for(
                    self._stop.wait(), timeout=self.render_interval
                )
            except asyncio.TimeoutError:
                pass  # Normal refresh interval

    def _draw(self, store: SnapshotStore) -> None:
        """Draw one frame. A failed frame is logged and the next one still runs."""
        try:
            self.display.draw(store.current())
        except Exception as e:
            self.failed_frames += 1
            logger.warning("Frame failed: %s", e)

    def _outcome(
        self, poll_task: asyncio.Task, snapshot: Snapshot | None
    ) -> WatchOutcome:
        root_state = snapshot.root.state if snapshot and snapshot.has_root else None

        if poll_task.done() and not poll_task.cancelled():
            error = poll_task.exception()
            if error is not None:
                logger.error("Polling failed: %s", error)
                return WatchOutcome(WatchStatus.ERROR, root_state, error)
            if poll_task.result() is not None:
                if DeploymentState.parse(root_state) is DeploymentState.SUCCEEDED:
                    return WatchOutcome(WatchStatus.SUCCEEDED, root_state)
                return WatchOutcome(WatchStatus.FAILED, root_state)

        logger.info("Watch cancelled")
        return WatchOutcome(WatchStatus.CANCELLED, root_state)

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal by requesting cancellation."""
        logger.info("Received %s, stopping", sig.name)
        self.cancel()

    def _add_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))
            except NotImplementedError:
                # Windows event loops; Ctrl+C cancels the run() task instead
                return

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                return
