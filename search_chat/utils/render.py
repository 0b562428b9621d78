"""Terminal rendering of finished assistant answers."""

from typing import Optional

from rich.console import Console
from rich.markdown import Markdown

from .ansi import console as default_console


def render_response(text: str, out: Optional[Console] = None) -> None:
    """Print *text* as Markdown with syntax-highlighted code blocks."""
    out = out or default_console
    out.print()
    if text.strip():
        out.print(Markdown(text, code_theme="monokai"))
    else:
        out.print("(empty response)", style="dim")
    out.print()
