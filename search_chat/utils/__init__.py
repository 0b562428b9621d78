from .ansi import (
    Ansi,
    USER_LABEL,
    ASSISTANT_LABEL,
    TOOL_LABEL,
    ERROR_LABEL,
    WARNING_LABEL,
    console,
    status_line,
)
from .log import setup_logging
from .render import render_response
from .spinner import Spinner

__all__ = [
    "Ansi",
    "USER_LABEL",
    "ASSISTANT_LABEL",
    "TOOL_LABEL",
    "ERROR_LABEL",
    "WARNING_LABEL",
    "console",
    "status_line",
    "setup_logging",
    "render_response",
    "Spinner",
]
