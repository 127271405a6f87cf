"""
LiveTreeDisplay for flicker-free in-place redraw.

Each draw rewinds the cursor by the previous frame's line count, then
rewrites every line (each one erased as it is rewritten). The first frame
performs no cursor movement. The cursor is hidden only while a frame is
being written.

Width comes from the Rich console, but only when its output stream is a
tty; redirected output is never wrapped.
"""

from __future__ import annotations

import logging
from datetime import datetime

from rich.console import Console

from deploywatch_core.exceptions import MissingRootError
from deploywatch_core.tui.ansi import (
    ERASE_BELOW,
    HIDE_CURSOR,
    SHOW_CURSOR,
    cursor_previous_line,
)
from deploywatch_core.tui.renderer import TreeRenderer
from deploywatch_core.types import Snapshot

logger = logging.getLogger(__name__)


def compose_frame(lines: list[str], previous_line_count: int) -> str:
    """
    Build the bytes for one redraw.

    Args:
        lines: Physical lines of the new frame
        previous_line_count: Lines emitted by the previous frame (0 if none)

    Returns:
        Rewind sequence (if any), the lines, and an erase-below sequence
        when the new frame is shorter than the previous one
    """
    parts: list[str] = []
    if previous_line_count > 0:
        parts.append(cursor_previous_line(previous_line_count))
    parts.extend(f"{line}\n" for line in lines)
    if len(lines) < previous_line_count:
        parts.append(ERASE_BELOW)
    return "".join(parts)


class LiveTreeDisplay:
    """
    Draws successive snapshots over the same terminal region.

    Example:
        display = LiveTreeDisplay(TreeRenderer(tenant_id))
        display.draw(store.current())
        ...
        display.restore_cursor()
    """

    def __init__(
        self, renderer: TreeRenderer, console: Console | None = None
    ) -> None:
        """
        Initialize display.

        Args:
            renderer: Renderer producing the lines of each frame
            console: Rich Console to write to (creates default if None)
        """
        self.renderer = renderer
        self.console = console if console is not None else Console()
        self.line_count = 0
        self.frames = 0

    @property
    def width(self) -> int | None:
        """
        Wrap width, or None when output is not an interactive terminal.

        Interactivity comes from the output stream, not Console.is_terminal,
        which is also True under FORCE_COLOR or TTY_COMPATIBLE.
        """
        isatty = getattr(self.console.file, "isatty", None)
        if isatty is None or not isatty():
            return None
        width = self.console.size.width
        return width if width > 0 else None

    def draw(self, snapshot: Snapshot | None, now: datetime | None = None) -> int:
        """
        Redraw the tree for a snapshot.

        Nothing is drawn before the first snapshot is published, or when
        the snapshot has no root; the next frame rewinds as if this one
        never happened.

        Args:
            snapshot: Snapshot to draw, or None
            now: Evaluation instant for unfinished durations

        Returns:
            Line count of the frame now on screen
        """
        if snapshot is None:
            return self.line_count

        try:
            lines = self.renderer.render_lines(snapshot, now=now, width=self.width)
        except MissingRootError:
            logger.debug("Skipping frame: snapshot has no root")
            return self.line_count

        frame = compose_frame(lines, self.line_count)
        self._write(HIDE_CURSOR)
        try:
            self._write(frame)
        finally:
            self._write(SHOW_CURSOR)

        self.line_count = len(lines)
        self.frames += 1
        return self.line_count

    def restore_cursor(self) -> None:
        """Make the cursor visible regardless of how drawing ended."""
        self._write(SHOW_CURSOR)

    def _write(self, text: str) -> None:
        self.console.file.write(text)
        self.console.file.flush()
