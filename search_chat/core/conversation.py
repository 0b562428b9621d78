"""In-memory conversation log exchanged with the completion endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolRequest:
    """A tool invocation issued by the model.

    ``arguments`` is kept as the raw JSON text the model produced so it can be
    echoed back verbatim on the next request; the executor parses it.
    """

    id: str
    name: str
    arguments: str = "{}"

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Turn:
    role: Role
    text: Optional[str] = None
    tool_requests: Tuple[ToolRequest, ...] = ()
    tool_result_id: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        """Return the chat-completions message dict for this turn."""
        message: Dict[str, Any] = {"role": self.role.value, "content": self.text}
        if self.tool_requests:
            message["tool_calls"] = [req.to_wire() for req in self.tool_requests]
        if self.tool_result_id is not None:
            message["tool_call_id"] = self.tool_result_id
        return message


def to_wire_messages(turns: Iterable[Turn], system_prompt: str) -> List[Dict[str, Any]]:
    """Prefix *turns* with the system prompt and convert them for the wire.

    The system turn is derived on every call and never stored in a
    :class:`Conversation`.
    """
    messages = [Turn(Role.SYSTEM, system_prompt).to_wire()]
    messages.extend(turn.to_wire() for turn in turns)
    return messages


class Conversation:
    """Ordered log of turns for the current session.

    Tool turns are only accepted directly after the assistant turn that
    requested them (possibly behind sibling tool turns), with a matching id.
    """

    def __init__(self, turns: Optional[Sequence[Turn]] = None) -> None:
        self._turns: List[Turn] = []
        for turn in turns or ():
            self.append(turn)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    @property
    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, turn: Turn) -> Turn:
        if turn.role is Role.TOOL:
            self._check_tool_turn(turn)
        elif turn.tool_result_id is not None:
            raise ValueError("only tool turns may carry a tool_result_id")
        if turn.tool_requests and turn.role is not Role.ASSISTANT:
            raise ValueError("only assistant turns may carry tool requests")
        self._turns.append(turn)
        return turn

    def add_user(self, text: str) -> Turn:
        return self.append(Turn(Role.USER, text))

    def add_assistant(
        self, text: Optional[str], tool_requests: Sequence[ToolRequest] = ()
    ) -> Turn:
        if text is None and not tool_requests:
            text = ""
        return self.append(Turn(Role.ASSISTANT, text, tuple(tool_requests)))

    def add_tool_result(self, request_id: str, text: str) -> Turn:
        return self.append(Turn(Role.TOOL, text, tool_result_id=request_id))

    def clear(self) -> None:
        self._turns.clear()

    def rollback_last(self) -> Optional[Turn]:
        """Remove and return the most recent turn, or ``None`` if empty."""
        if not self._turns:
            return None
        return self._turns.pop()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def pending_tool_requests(self) -> List[ToolRequest]:
        """Tool requests of the trailing assistant turn that have no result yet."""
        answered = set()
        for turn in reversed(self._turns):
            if turn.role is Role.TOOL:
                answered.add(turn.tool_result_id)
                continue
            if turn.role is Role.ASSISTANT:
                return [req for req in turn.tool_requests if req.id not in answered]
            break
        return []

    def _check_tool_turn(self, turn: Turn) -> None:
        if turn.tool_result_id is None:
            raise ValueError("tool turns need a tool_result_id")
        pending = {req.id for req in self.pending_tool_requests()}
        if turn.tool_result_id not in pending:
            raise ValueError(
                f"tool result '{turn.tool_result_id}' does not answer a pending tool request"
            )
