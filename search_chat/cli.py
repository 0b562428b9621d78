"""Interactive REPL and command-line entry point."""
from __future__ import annotations

import argparse
import random
import sys
import readline  # noqa: F401 – side-effect: history & line editing
from typing import List, Optional

import questionary
from openai import OpenAI  # type: ignore
from rich.markup import escape
from rich.panel import Panel

from .core import FatalSessionError, Session, SUPPORTED_MODELS
from .core.agent import Agent
from .core.client import CompletionClient
from .core.config import Settings, get_api_keys, load_env_file
from .core.errors import ConfigError
from .core.session import resolve_model
from .core.tools import BraveSearchClient, ToolRegistry
from .utils import (
    Ansi,
    ERROR_LABEL,
    USER_LABEL,
    WARNING_LABEL,
    console,
    setup_logging,
    status_line,
)

GOODBYES = [
    "Catch you on the flip side!",
    "Keep it 100!",
    "Stay classy!",
    "Later, alligator!",
    "See ya!",
    "Cheers!",
    "Bye!",
    "Until next time!",
]


class ChatCLI:
    """High-level orchestration class for the interactive REPL."""

    def __init__(self, session: Session, agent: Agent):
        self.session = session
        self.agent = agent

    # -------------- Interactive pickers ---------------

    @staticmethod
    def _interactive_picker(
        title: str, options: List[str], current: Optional[str] = None
    ) -> Optional[str]:
        """Present *options* to the user and return the selected value."""
        if not options:
            console.print("(no items available)")
            return None
        try:
            return questionary.select(title, choices=options, default=current).ask()
        except (KeyboardInterrupt, EOFError):
            console.print()
            return None

    def _switch_model(self, choice: str) -> None:
        try:
            self.session.select_model(choice)
        except ValueError as exc:
            console.print(Ansi.style(escape(str(exc)), Ansi.FG_RED))
            return
        console.print(status_line(f"Active model: {self.session.model}"))

    # ---------------- Command handling ---------------

    def handle_command(self, line: str) -> bool:
        """Handle slash commands. Return False to exit REPL."""

        parts = line.strip().split()
        if not parts:
            return True

        cmd = parts[0].lower()

        if cmd in {"/help", "/", "?"}:
            from . import __doc__ as _doc  # lazy import to avoid circularity

            console.print(escape(_doc or "(no help available)"))

        elif cmd in {"/exit", "/quit"}:
            console.print(status_line(random.choice(GOODBYES)))
            return False

        elif cmd == "/stream":
            state = "ON" if self.session.toggle_stream() else "OFF"
            console.print(status_line(f"Streaming mode: {state}"))
            if self.session.stream_mode and self.session.tools_enabled:
                console.print(
                    f"{WARNING_LABEL}: streaming applies only while web search is off "
                    "(/tool websearch off)."
                )

        elif cmd == "/clear":
            self.session.conversation.clear()
            console.print(status_line("(no content)"))

        elif cmd == "/model":
            if len(parts) == 1:
                selection = self._interactive_picker(
                    "Select a model:", SUPPORTED_MODELS, current=self.session.model
                )
                if selection:
                    self._switch_model(selection)
            elif len(parts) != 2:
                console.print("Usage: /model [model_name|number]")
            else:
                self._switch_model(parts[1])

        elif cmd == "/models":
            console.print("Supported models:")
            for idx, m in enumerate(SUPPORTED_MODELS, start=1):
                marker = " <- current" if m == self.session.model else ""
                console.print(f"  [{idx}] {escape(m)}{marker}")

        elif cmd == "/tool":
            if (
                len(parts) != 3
                or parts[1].lower() != "websearch"
                or parts[2] not in {"on", "off"}
            ):
                console.print("Usage: /tool websearch on|off")
            else:
                self.session.tools_enabled = parts[2] == "on"
                state = "enabled" if self.session.tools_enabled else "disabled"
                console.print(status_line(f"Web search tool {state}"))

        else:
            console.print(Ansi.style(f"Unknown command: {escape(cmd)} (see /help)", Ansi.FG_RED))

        return True

    # ---------------- Interaction loop ---------------

    def repl(self) -> None:
        """Run the interactive read–eval–print-loop.

        :class:`FatalSessionError` from the agent propagates to the caller.
        """
        console.print(Panel.fit("Search Chat", style="bold magenta"))

        console.print(
            Ansi.style("Type your message and press Enter. Commands start with '/'.", Ansi.FG_YELLOW),
            Ansi.style(f"Current model: {escape(self.session.model)}.", Ansi.FG_YELLOW),
            Ansi.style("Type /help for help.", Ansi.FG_YELLOW),
            sep="\n",
        )

        while True:
            try:
                line = console.input(f"{USER_LABEL}> ").strip()
            except (EOFError, KeyboardInterrupt):
                console.print("\n(signal caught – exiting)")
                break

            if not line:
                console.print(status_line("(empty message – type a question or /help)"))
                continue

            if line.startswith("/") or line == "?":
                if not self.handle_command(line):
                    break
                continue

            self.agent.send(line)


# ---------------------------------------------------------------------------
# Entrypoint helpers (keeping it separate simplifies __main__ handling)
# ---------------------------------------------------------------------------

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Interactive CLI for GroqCloud chat models with Brave web search."
    )
    parser.add_argument("--model", "-m", help="Model name or number from /models")
    parser.add_argument("--stream", action="store_true", help="Start with streaming mode on")
    parser.add_argument(
        "--no-tools", action="store_true", help="Start with the web search tool disabled"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    return parser.parse_args(argv)


def build_agent(
    session: Session, settings: Settings, groq_key: str, brave_key: str
) -> Agent:
    """Wire the transport, tools and agent loop together."""
    openai_client = OpenAI(  # type: ignore[arg-type]
        api_key=groq_key,
        base_url=settings.api_base_url,
        max_retries=0,
        timeout=settings.request_timeout,
    )
    client = CompletionClient(
        openai_client,
        max_retries=settings.max_retries,
        retry_backoff=settings.retry_backoff,
    )
    search_client = BraveSearchClient(
        brave_key,
        url=settings.search_url,
        page_size=settings.search_page_size,
        timeout=settings.request_timeout,
    )
    registry = ToolRegistry.from_settings(search_client, settings)
    return Agent(client, registry, session, max_tool_rounds=settings.max_tool_rounds)


def run_cli(argv: Optional[List[str]] = None) -> None:  # pragma: no cover
    args = _parse_args(argv)
    setup_logging(args.verbose)

    load_env_file()
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        console.print(f"{ERROR_LABEL}: {escape(str(exc))}")
        sys.exit(2)

    model = SUPPORTED_MODELS[0]
    requested = args.model or settings.default_model
    if requested:
        try:
            model = resolve_model(requested)
        except ValueError as exc:
            console.print(f"{WARNING_LABEL}: {escape(str(exc))} Falling back to '{escape(model)}'.")

    try:
        groq_key, brave_key = get_api_keys(lambda text: console.input(text, password=True))
    except (EOFError, KeyboardInterrupt):
        console.print("\n(no API key entered – exiting)")
        sys.exit(1)

    session = Session(model=model, stream_mode=args.stream, tools_enabled=not args.no_tools)
    agent = build_agent(session, settings, groq_key, brave_key)

    try:
        ChatCLI(session, agent).repl()
    except FatalSessionError as exc:
        console.print(f"\n{ERROR_LABEL}: {escape(str(exc))}. Exiting.")
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    run_cli()
