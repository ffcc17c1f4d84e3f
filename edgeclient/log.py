"""
Console logging for the example programs.

Records are prefixed with the program tag, coloured by level the way the
Edge examples mark their output: green for progress, yellow for operator
prompts and warnings, red for errors.
"""

import logging
from typing import Optional

RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
CYAN = "\x1b[36m"
BOLD = "\x1b[1m"
RESET = "\x1b[0m"

LEVEL_COLORS = {
    logging.DEBUG: CYAN,
    logging.INFO: GREEN,
    logging.WARNING: YELLOW,
    logging.ERROR: RED,
    logging.CRITICAL: RED,
}


class TagFormatter(logging.Formatter):
    """Prefixes each message with a coloured ``[Tag]`` marker."""

    def __init__(self, tag: str, color: bool = True):
        super().__init__("%(message)s")
        self.tag = tag
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self.color:
            return f"[{self.tag}] {message}"
        color = LEVEL_COLORS.get(record.levelno, GREEN)
        return f"{color}[{self.tag}]{RESET} {message}"


def configure_logging(tag: str, debug: bool = False, color: Optional[bool] = None) -> None:
    """Configure root logging for an example program."""
    handler = logging.StreamHandler()
    if color is None:
        color = handler.stream.isatty()
    handler.setFormatter(TagFormatter(tag, color))
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO,
                        handlers=[handler], force=True)
    if not debug:
        # websockets logs every frame at debug level
        logging.getLogger("websockets").setLevel(logging.WARNING)
