"""
SnapshotStore: the single shared cell between poller and renderer.

The poller publishes a complete Snapshot once per cycle; the renderer
reads whatever is current on every frame. Snapshots are immutable, so the
lock only guards the reference swap and never spans I/O.
"""

import threading

from deploywatch_core.types import Snapshot


class SnapshotStore:
    """
    Guarded single-slot holder for the latest published snapshot.

    Example:
        store = SnapshotStore()
        store.current()          # None before the first publish
        store.publish(snapshot)
        store.current()          # snapshot
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Snapshot | None = None
        self._version = 0

    def publish(self, snapshot: Snapshot) -> None:
        """Replace the current snapshot."""
        with self._lock:
            self._snapshot = snapshot
            self._version += 1

    def current(self) -> Snapshot | None:
        """Return the latest published snapshot, or None if none yet."""
        with self._lock:
            return self._snapshot

    @property
    def version(self) -> int:
        """Number of snapshots published so far."""
        with self._lock:
            return self._version
