"""
TreeRenderer for turning a Snapshot into terminal lines.

This module provides:
- STATE_STYLES: explicit DeploymentState -> SGR style table
- Span: a run of text with one style and an optional hyperlink
- TreeRenderer: builds the ordered, indented, wrapped lines of one frame

Rendering is a pure function of (snapshot, now, width). Two renders of the
same snapshot at the same instant are byte-identical; only the durations
of unfinished operations change as `now` advances.

Layout:
    RootDeployment Running (12.3s)
      NestedDeployment1 Succeeded (2.0s)
        storageAccount Succeeded (1.1s)
      MyResourceGroup Succeeded (2.4s)
      NestedDeployment2 Failed (11.0s)
        Some error occurred -> Portal
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote

from rich.cells import cell_len

from deploywatch_core.tui.ansi import (
    BOLD,
    ERASE_LINE,
    GRAY,
    GREEN,
    RED,
    RESET,
    hyperlink,
)
from deploywatch_core.types import (
    DeploymentId,
    DeploymentNode,
    DeploymentState,
    Operation,
    Snapshot,
)

INDENT = "  "
PORTAL_URL = "https://portal.azure.com/#@{tenant_id}/resource{resource_id}"

STATE_STYLES: dict[DeploymentState, str] = {
    DeploymentState.SUCCEEDED: BOLD + GREEN,
    DeploymentState.FAILED: BOLD + RED,
    DeploymentState.RUNNING: BOLD + GRAY,
    DeploymentState.ACCEPTED: BOLD + GRAY,
}
DEFAULT_STATE_STYLE = BOLD


def state_style(state: str) -> str:
    """Return the SGR style for a raw state string."""
    return STATE_STYLES.get(DeploymentState.parse(state), DEFAULT_STATE_STYLE)


def portal_url(tenant_id: str, resource_id: str) -> str:
    """Build the portal viewer URL for a resource."""
    return PORTAL_URL.format(
        tenant_id=tenant_id, resource_id=quote(resource_id, safe="")
    )


def format_duration(
    start_time: datetime, end_time: datetime | None, now: datetime
) -> str:
    """Format (end_time or now) - start_time as seconds with one decimal."""
    elapsed = ((end_time or now) - start_time).total_seconds()
    return f"{max(elapsed, 0.0):.1f}s"


def sort_operations(operations: tuple[Operation, ...]) -> list[Operation]:
    """
    Order operations for display.

    Finished operations come first, by end time ascending. Unfinished
    operations follow, by start time ascending. Ties on end time are
    broken by start time.
    """

    def key(op: Operation) -> tuple[bool, datetime, datetime]:
        if op.end_time is None:
            return (True, op.start_time, op.start_time)
        return (False, op.end_time, op.start_time)

    return sorted(operations, key=key)


@dataclass(frozen=True)
class Span:
    """
    A run of text rendered with one style.

    Attributes:
        text: Visible text
        style: SGR prefix, reset after the text when non-empty
        link: Optional hyperlink target
    """

    text: str
    style: str = ""
    link: str | None = None

    def render(self, text: str | None = None) -> str:
        body = self.text if text is None else text
        if self.style:
            body = f"{self.style}{body}{RESET}"
        if self.link:
            body = hyperlink(self.link, body)
        return body


class TreeRenderer:
    """
    Renders a deployment snapshot as an indented tree.

    Args:
        tenant_id: Tenant identifier embedded in portal links

    Example:
        renderer = TreeRenderer(tenant_id="contoso.onmicrosoft.com")
        for line in renderer.render_lines(snapshot, width=120):
            print(line)
    """

    def __init__(self, tenant_id: str = "common") -> None:
        self.tenant_id = tenant_id

    def render_lines(
        self,
        snapshot: Snapshot,
        now: datetime | None = None,
        width: int | None = None,
    ) -> list[str]:
        """
        Render one frame as physical terminal lines.

        Each line starts with an erase-line sequence so it fully replaces
        whatever was drawn there before.

        Args:
            snapshot: Snapshot to render
            now: Evaluation instant for unfinished durations (default: now, UTC)
            width: Terminal width to wrap at, or None to never wrap

        Returns:
            Lines without trailing newlines

        Raises:
            MissingRootError: If the snapshot has no root deployment
        """
        root = snapshot.root
        if now is None:
            now = datetime.now(timezone.utc)

        lines: list[str] = []
        self._append(
            lines,
            0,
            self._status_spans(root.name, root.state, root.start_time, root.end_time, now),
            width,
        )
        self._render_operations(snapshot, root, 1, now, width, lines, frozenset({root.id}))
        return lines

    def _render_operations(
        self,
        snapshot: Snapshot,
        node: DeploymentNode,
        depth: int,
        now: datetime,
        width: int | None,
        lines: list[str],
        path: frozenset[DeploymentId],
    ) -> None:
        for op in sort_operations(node.operations):
            spans = self._status_spans(op.name, op.state, op.start_time, op.end_time, now)
            self._append(lines, depth, spans, width)

            if op.error is not None:
                self._append(lines, depth + 1, self._error_spans(op), width)

            if not op.is_nested_deployment or op.id in path:
                continue
            child = snapshot.get(op.id)
            if child is not None:
                self._render_operations(
                    snapshot, child, depth + 1, now, width, lines, path | {op.id}
                )

    @staticmethod
    def _status_spans(
        name: str,
        state: str,
        start_time: datetime,
        end_time: datetime | None,
        now: datetime,
    ) -> list[Span]:
        return [
            Span(f"{name} "),
            Span(state, state_style(state)),
            Span(f" ({format_duration(start_time, end_time, now)})"),
        ]

    def _error_spans(self, op: Operation) -> list[Span]:
        return [
            Span(op.error or "", RED),
            Span(" -> "),
            Span("Portal", GRAY, link=portal_url(self.tenant_id, op.id)),
        ]

    @staticmethod
    def _append(
        lines: list[str], depth: int, spans: list[Span], width: int | None
    ) -> None:
        """Append one logical line, wrapped to width when known."""
        indent = INDENT * depth
        if width is None:
            lines.append(ERASE_LINE + indent + "".join(s.render() for s in spans))
            return

        available = max(width - 1 - len(indent), 1)
        rows: list[list[tuple[Span, str]]] = [[]]
        used = 0
        for span in spans:
            chunk = ""
            for char in span.text:
                char_width = cell_len(char)
                if used and used + char_width > available:
                    if chunk:
                        rows[-1].append((span, chunk))
                        chunk = ""
                    rows.append([])
                    used = 0
                chunk += char
                used += char_width
            if chunk:
                rows[-1].append((span, chunk))

        for row in rows:
            lines.append(ERASE_LINE + indent + "".join(s.render(t) for s, t in row))