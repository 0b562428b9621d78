"""Colour and styling helpers built on :mod:`rich`."""

import os
from rich.console import Console
from rich.markup import escape


console = Console()


class Ansi:
    """Style names used for the chat transcript."""

    BOLD = "bold"
    DIM = "dim"

    FG_GREEN = "green"
    FG_CYAN = "cyan"
    FG_BLUE = "blue"
    FG_YELLOW = "yellow"
    FG_RED = "red"

    @staticmethod
    def style(text: str, *codes: str) -> str:
        """Return *text* wrapped in rich markup unless ``NO_COLOR`` is set."""
        if os.getenv("NO_COLOR") is not None:
            return text
        return f"[{' '.join(codes)}]{text}[/]"


def status_line(text: str) -> str:
    """Format a command acknowledgement, e.g. ``  ⎿  Streaming mode: ON``.

    *text* is escaped so model names and user input print literally.
    """
    return Ansi.style("  ⎿  ", Ansi.DIM) + escape(text) + "\n"


# Transcript labels
USER_LABEL = Ansi.style("you", Ansi.FG_CYAN, Ansi.BOLD)
ASSISTANT_LABEL = Ansi.style("assistant", Ansi.FG_GREEN, Ansi.BOLD)
TOOL_LABEL = Ansi.style("tool", Ansi.FG_BLUE, Ansi.BOLD)
ERROR_LABEL = Ansi.style("error", Ansi.FG_RED, Ansi.BOLD)
WARNING_LABEL = Ansi.style("warning", Ansi.FG_YELLOW, Ansi.BOLD)
