"""The agent loop: call the model, run requested tools, repeat until an answer."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from ..utils import (
    ASSISTANT_LABEL,
    ERROR_LABEL,
    TOOL_LABEL,
    Spinner,
    console as default_console,
    render_response,
)
from .client import CompletionClient, Mode, Reply
from .conversation import Role, ToolRequest, Turn
from .errors import FatalSessionError, RateLimitExhaustedError, ToolError, TransportError
from .session import Session
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

TOOL_LIMIT_MESSAGE = "Error: Tool limit reached for this question. Answer with the information you already have."
NO_ANSWER_NOTICE = "(no answer: the tool limit was reached before the model produced one)"
TOOLS_DISABLED_MESSAGE = "Error: Tools are disabled for this session. Answer without them."
TOOLS_DISABLED_NOTICE = "(no answer: the model asked for tools while they are disabled)"


class Agent:
    """Drive one user message through model calls and tool executions.

    The loop appends every assistant reply to the conversation before looking
    at it, answers each tool request with exactly one tool turn, and rolls the
    user turn back when the model could not be reached at all.
    """

    def __init__(
        self,
        client: CompletionClient,
        registry: ToolRegistry,
        session: Session,
        *,
        max_tool_rounds: int = 8,
        console: Optional[Console] = None,
        renderer: Callable[[str, Console], None] = render_response,
        spinner: bool = True,
    ) -> None:
        self.client = client
        self.registry = registry
        self.session = session
        self.max_tool_rounds = max_tool_rounds
        self.console = console or default_console
        self.renderer = renderer
        self.spinner = spinner

    @property
    def conversation(self):
        return self.session.conversation

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def send(self, text: str) -> Optional[str]:
        """Process one user message and return the final answer.

        Returns ``None`` when the model could not be reached or the user
        pressed Ctrl-C; the conversation is then restored. Raises
        :class:`FatalSessionError` when the rate-limit budget is exhausted.
        """
        self.conversation.add_user(text)
        start = len(self.conversation)
        try:
            return self._run(start)
        except KeyboardInterrupt:
            logger.info("Request interrupted, discarding %d turn(s)", len(self.conversation) - start + 1)
            self._discard_exchange(start)
            self.console.print("\n(interrupted)\n")
            return None

    # ------------------------------------------------------------------
    # Helper methods
    # ------------------------------------------------------------------

    def _run(self, start: int) -> Optional[str]:
        rounds = 0
        while True:
            tools_allowed = self.session.tools_enabled and rounds < self.max_tool_rounds
            streamed = not tools_allowed and self.session.stream_mode
            try:
                reply = self._call_model(tools_allowed, streamed)
            except RateLimitExhaustedError as exc:
                self._rollback_pending_user()
                raise FatalSessionError(str(exc)) from exc
            except TransportError as exc:
                self._rollback_pending_user()
                self.console.print(f"\n{ERROR_LABEL}: {escape(str(exc))}\n")
                return None

            self.conversation.add_assistant(reply.text, reply.tool_requests)

            if not reply.tool_requests:
                answer = reply.text or ""
                if not streamed:
                    self.renderer(answer, self.console)
                return answer

            if not tools_allowed:
                # Tools were not offered but the model asked anyway.
                if self.session.tools_enabled:
                    logger.warning("Tool round limit (%d) reached", self.max_tool_rounds)
                    refusal, notice = TOOL_LIMIT_MESSAGE, NO_ANSWER_NOTICE
                else:
                    logger.warning("Model requested tools while they are disabled")
                    refusal, notice = TOOLS_DISABLED_MESSAGE, TOOLS_DISABLED_NOTICE
                for request in reply.tool_requests:
                    self.conversation.add_tool_result(request.id, refusal)
                answer = reply.text or self._last_assistant_text(start) or notice
                self.renderer(answer, self.console)
                return answer

            self._execute_tools(reply.tool_requests)
            rounds += 1

    def _call_model(self, tools_allowed: bool, streamed: bool) -> Reply:
        model = self.session.model
        turns = self.conversation.turns

        if streamed:
            return self._stream(model, turns)
        tools = self.registry.wire_declarations() if tools_allowed else None
        return self._with_spinner(
            lambda: self.client.complete(model, turns, tools=tools, mode=Mode.BUFFERED)
        )

    def _stream(self, model: str, turns: Sequence[Turn]) -> Reply:
        first_fragment = True

        def on_fragment(fragment: str) -> None:
            nonlocal first_fragment
            if first_fragment:
                self.console.print(f"\n{ASSISTANT_LABEL}> ", end="")
                first_fragment = False
            self.console.print(fragment, end="", markup=False, highlight=False)

        reply = self.client.complete(model, turns, mode=Mode.STREAMED, on_fragment=on_fragment)
        self.console.print("\n")
        return reply

    def _with_spinner(self, call: Callable[[], Reply]) -> Reply:
        if not self.spinner:
            return call()
        with Spinner(prefix=f"{ASSISTANT_LABEL}> ", text="thinking"):
            return call()

    def _execute_tools(self, requests: List[ToolRequest]) -> None:
        for request in requests:
            self.console.print(f"{TOOL_LABEL}: {request.name} {escape(request.arguments)}")
            try:
                result = self.registry.execute(request.name, request.arguments)
            except ToolError as exc:
                logger.info("Tool %s (%s) failed: %s", request.name, request.id, exc)
                self.console.print(f"{ERROR_LABEL}: {escape(str(exc))}")
                result = str(exc)
            self.conversation.add_tool_result(request.id, result)

    def _rollback_pending_user(self) -> None:
        last = self.conversation.last
        if last is not None and last.role is Role.USER:
            self.conversation.rollback_last()

    def _discard_exchange(self, start: int) -> None:
        # Drop the user turn at ``start - 1`` and everything after it.
        while len(self.conversation) >= start:
            self.conversation.rollback_last()

    def _last_assistant_text(self, start: int) -> str:
        for turn in reversed(self.conversation.turns[start - 1:]):
            if turn.role is Role.ASSISTANT and turn.text:
                return turn.text
        return ""
