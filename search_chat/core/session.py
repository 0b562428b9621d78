"""Per-process chat state: conversation, active model and mode toggles."""

from typing import Optional

from .conversation import Conversation

# Sent ahead of every request, never stored in the conversation.
SYSTEM_PROMPT = (
    "You are a helpful AI assistant running in a terminal, with access to "
    "real-time information via the `web_search` tool and to page contents via "
    "the `open_url` tool. Use them for questions that need up-to-date data or "
    "fact checking. Do not attempt to use any tools that are not listed here; "
    "tools named `open`, `browser` or `read_file` do not exist."
)

# Supported models
SUPPORTED_MODELS = [
    "openai/gpt-oss-120b",  # default
    "meta-llama/llama-4-maverick-17b-128e-instruct",
    "moonshotai/kimi-k2-instruct-0905",
]


def resolve_model(choice: str) -> str:
    """Map a model name or 1-based index to an entry of ``SUPPORTED_MODELS``.

    Raises ``ValueError`` with a user-facing message when nothing matches.
    """
    choice = choice.strip()
    if choice in SUPPORTED_MODELS:
        return choice
    if choice.isdigit():
        index = int(choice)
        if 1 <= index <= len(SUPPORTED_MODELS):
            return SUPPORTED_MODELS[index - 1]
        raise ValueError(
            f"Selection out of range: pick a number between 1 and {len(SUPPORTED_MODELS)}."
        )
    raise ValueError(f"Unsupported model '{choice}'. Use /models to see the list.")


class Session:
    """State of the single chat session living for the process lifetime."""

    def __init__(
        self,
        model: Optional[str] = None,
        conversation: Optional[Conversation] = None,
        stream_mode: bool = False,
        tools_enabled: bool = True,
    ) -> None:
        self.model = model or SUPPORTED_MODELS[0]
        self.conversation = conversation if conversation is not None else Conversation()
        self.stream_mode = stream_mode
        self.tools_enabled = tools_enabled

    def toggle_stream(self) -> bool:
        self.stream_mode = not self.stream_mode
        return self.stream_mode

    def select_model(self, choice: str) -> str:
        self.model = resolve_model(choice)
        return self.model
