"""
TUI module for the live deployment tree.

This module provides the building blocks for the in-place terminal view:
- TreeRenderer: Snapshot to ordered, styled, wrapped lines
- LiveTreeDisplay: In-place redraw with cursor rewind and per-line erase
- compose_frame: Byte-level frame composition (rewind, lines, erase tail)
- STATE_STYLES: DeploymentState to SGR style table
"""

from deploywatch_core.tui.display import LiveTreeDisplay, compose_frame
from deploywatch_core.tui.renderer import (
    STATE_STYLES,
    TreeRenderer,
    format_duration,
    portal_url,
    sort_operations,
    state_style,
)

__all__ = [
    "LiveTreeDisplay",
    "STATE_STYLES",
    "TreeRenderer",
    "compose_frame",
    "format_duration",
    "portal_url",
    "sort_operations",
    "state_style",
]
