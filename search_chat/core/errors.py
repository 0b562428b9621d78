"""Exception types shared by the transport, tool and agent layers."""

from __future__ import annotations

from typing import Optional


class ChatError(Exception):
    """Base class for every error raised by :mod:`search_chat`."""


class ConfigError(ChatError):
    """A setting read from the environment could not be parsed."""


class TransportError(ChatError):
    """A completion request failed; the current turn is lost but the session survives."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitExhaustedError(TransportError):
    """The endpoint kept answering 429 after every allowed retry."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Rate limit exceeded after {attempts} attempts", status_code=429
        )
        self.attempts = attempts


class ToolError(ChatError):
    """A tool could not run. The message is what the model gets to see."""


class FatalSessionError(ChatError):
    """No further progress is possible; the REPL must stop."""
