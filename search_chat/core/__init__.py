from .conversation import Conversation, Role, ToolRequest, Turn, to_wire_messages
from .errors import (
    ChatError,
    ConfigError,
    FatalSessionError,
    RateLimitExhaustedError,
    ToolError,
    TransportError,
)
from .session import Session, SYSTEM_PROMPT, SUPPORTED_MODELS
# client, tools and agent pull in the HTTP stack; import them from their modules.

__all__ = [
    "Conversation",
    "Role",
    "ToolRequest",
    "Turn",
    "to_wire_messages",
    "ChatError",
    "ConfigError",
    "FatalSessionError",
    "RateLimitExhaustedError",
    "ToolError",
    "TransportError",
    "Session",
    "SYSTEM_PROMPT",
    "SUPPORTED_MODELS",
]
