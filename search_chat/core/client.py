"""Chat completions transport built on the OpenAI SDK.

The SDK is pointed at an OpenAI-compatible endpoint (GroqCloud by default)
with its own retries disabled. Bodies are read raw so that decoding, stream
frame handling and the rate-limit policy stay in this module.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
import openai
from openai import OpenAI  # type: ignore

from .conversation import ToolRequest, Turn, to_wire_messages
from .errors import RateLimitExhaustedError, TransportError
from .session import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

STREAM_MARKER = "data:"
STREAM_DONE = "[DONE]"


class Mode(Enum):
    BUFFERED = "buffered"
    STREAMED = "streamed"


@dataclass(frozen=True)
class Reply:
    text: Optional[str] = ""
    tool_requests: Tuple[ToolRequest, ...] = ()


def decode_reply(body: str) -> Reply:
    """Decode a buffered chat-completions body.

    Raises :class:`TransportError` when the body is not the expected shape.
    """
    try:
        data = json.loads(body)
        choices = data["choices"]
        if not choices:
            return Reply(text="")
        message = choices[0]["message"]
        text = message.get("content")
        requests = tuple(_decode_tool_call(call) for call in message.get("tool_calls") or ())
    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
        raise TransportError(f"Failed to parse API response: {exc}") from exc

    if text is not None and not isinstance(text, str):
        raise TransportError("Failed to parse API response: content is not a string")
    seen = set()
    for request in requests:
        if request.id in seen:
            raise TransportError(
                f"Failed to parse API response: duplicate tool call id '{request.id}'"
            )
        seen.add(request.id)
    if requests and not text:
        text = None
    elif text is None:
        text = ""
    return Reply(text=text, tool_requests=requests)


def _decode_tool_call(call: Dict[str, Any]) -> ToolRequest:
    function = call["function"]
    arguments = function.get("arguments") or "{}"
    # Some servers send the arguments as an object rather than a JSON string.
    if isinstance(arguments, dict):
        arguments = json.dumps(arguments)
    if not isinstance(call["id"], str) or not isinstance(function["name"], str):
        raise TypeError("tool call id and name must be strings")
    if not isinstance(arguments, str):
        raise TypeError("tool call arguments must be a JSON string")
    return ToolRequest(id=call["id"], name=function["name"], arguments=arguments)


def decode_stream_frame(line: str) -> Tuple[bool, Optional[str]]:
    """Decode one line of an event stream.

    Returns ``(done, fragment)``. Lines without the ``data:`` marker and
    malformed payloads yield ``(False, None)``.
    """
    line = line.strip()
    if not line.startswith(STREAM_MARKER):
        return False, None
    payload = line[len(STREAM_MARKER):].strip()
    if payload == STREAM_DONE:
        return True, None
    try:
        content = json.loads(payload)["choices"][0]["delta"].get("content")
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        logger.debug("Skipping malformed stream frame: %r", payload[:200])
        return False, None
    if isinstance(content, str) and content:
        return False, content
    return False, None


class CompletionClient:
    """Issue chat completion requests and apply the rate-limit retry policy."""

    def __init__(
        self,
        client: OpenAI,
        *,
        max_retries: int = 3,
        retry_backoff: float = 2.0,
        system_prompt: str = SYSTEM_PROMPT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.system_prompt = system_prompt
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def complete(
        self,
        model: str,
        turns: Iterable[Turn],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
        mode: Mode = Mode.BUFFERED,
        on_fragment: Optional[Callable[[str], None]] = None,
    ) -> Reply:
        """Send the conversation and return the model's reply.

        *tools* are wire-format declarations; they are left out of the request
        when empty. Streamed calls cannot carry tools.
        """
        if not model:
            raise ValueError("model must be a non-empty string")
        if mode is Mode.STREAMED and tools:
            raise ValueError("tool calling requires buffered mode")

        params: Dict[str, Any] = {
            "model": model,
            "messages": to_wire_messages(turns, self.system_prompt),
            "stream": mode is Mode.STREAMED,
        }
        if tools:
            params["tools"] = list(tools)

        logger.debug(
            "Requesting %s completion from %s (%d messages, tools=%s)",
            mode.value,
            model,
            len(params["messages"]),
            bool(tools),
        )

        if mode is Mode.STREAMED:
            return self._with_retries(lambda: self._stream(params, on_fragment))
        return self._with_retries(lambda: self._buffered(params))

    # ------------------------------------------------------------------
    # Helper methods
    # ------------------------------------------------------------------

    def _buffered(self, params: Dict[str, Any]) -> Reply:
        raw = self.client.chat.completions.with_raw_response.create(**params)  # type: ignore[arg-type]
        return decode_reply(raw.http_response.text)

    def _stream(
        self, params: Dict[str, Any], on_fragment: Optional[Callable[[str], None]]
    ) -> Reply:
        accumulator: List[str] = []
        with self.client.chat.completions.with_streaming_response.create(**params) as response:  # type: ignore[arg-type]
            for line in response.iter_lines():
                done, fragment = decode_stream_frame(line)
                if done:
                    break
                if fragment is None:
                    continue
                if on_fragment is not None:
                    on_fragment(fragment)
                accumulator.append(fragment)
        return Reply(text="".join(accumulator))

    def _with_retries(self, send: Callable[[], Reply]) -> Reply:
        retries = 0
        while True:
            try:
                return send()
            except openai.RateLimitError as exc:
                if retries >= self.max_retries:
                    logger.error("Rate limit exceeded after %d retries: %s", retries, exc)
                    raise RateLimitExhaustedError(retries + 1) from exc
                retries += 1
                logger.warning(
                    "Rate limit hit, retrying in %g seconds... (attempt %d/%d)",
                    self.retry_backoff,
                    retries,
                    self.max_retries,
                )
                self._sleep(self.retry_backoff)
            except openai.APIStatusError as exc:
                raise TransportError(
                    f"API error {exc.status_code}: {exc.message}", status_code=exc.status_code
                ) from exc
            except (openai.OpenAIError, httpx.HTTPError) as exc:
                raise TransportError(f"Request failed: {exc}") from exc
