"""
ANSI escape sequences used by the live tree display.

Colors are 256-color SGR codes. Hyperlinks use the OSC 8 sequence pair,
which terminals without support render as the plain caption.
"""

ESC = "\x1b"

# SGR styles
BOLD = f"{ESC}[1m"
RESET = f"{ESC}[0m"
GREEN = f"{ESC}[38;5;77m"
RED = f"{ESC}[38;5;203m"
GRAY = f"{ESC}[38;5;246m"

# Cursor and erase control
HIDE_CURSOR = f"{ESC}[?25l"
SHOW_CURSOR = f"{ESC}[?25h"
ERASE_LINE = f"{ESC}[K"
ERASE_BELOW = f"{ESC}[J"


def cursor_previous_line(count: int) -> str:
    """Move the cursor to column 1, count lines up."""
    return f"{ESC}[{count}F"


def hyperlink(url: str, caption: str) -> str:
    """Wrap caption in an OSC 8 hyperlink to url."""
    return f"{ESC}]8;;{url}{ESC}\\{caption}{ESC}]8;;{ESC}\\"
