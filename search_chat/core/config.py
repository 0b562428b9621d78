"""Runtime settings and API key handling."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Tuple

from dotenv import load_dotenv, set_key

from .errors import ConfigError

# Keys entered at the prompt are written here so the next launch finds them.
ENV_FILE = Path.cwd() / ".env"

GROQ_KEY_NAME = "GROQ_API_KEY"
BRAVE_KEY_NAME = "BRAVE_API_KEY"

OPEN_URL_MODES = ("fetch", "search")


@dataclass(frozen=True)
class Settings:
    """Tunables for the transport, the tools and the agent loop."""

    api_base_url: str = "https://api.groq.com/openai/v1"
    search_url: str = "https://api.search.brave.com/res/v1/web/search"
    default_model: Optional[str] = None
    max_retries: int = 3
    retry_backoff: float = 2.0
    request_timeout: float = 60.0
    search_page_size: int = 5
    max_tool_rounds: int = 8
    page_char_limit: int = 8000
    open_url_mode: str = "fetch"

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.retry_backoff < 0:
            raise ConfigError("retry_backoff must be >= 0")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be > 0")
        if self.search_page_size < 1:
            raise ConfigError("search_page_size must be >= 1")
        if self.max_tool_rounds < 0:
            raise ConfigError("max_tool_rounds must be >= 0")
        if self.page_char_limit < 1:
            raise ConfigError("page_char_limit must be >= 1")
        if self.open_url_mode not in OPEN_URL_MODES:
            raise ConfigError(
                f"open_url_mode must be one of {', '.join(OPEN_URL_MODES)}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        kwargs = {}

        def read(var: str, field: str, cast: Callable) -> None:
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                return
            try:
                kwargs[field] = cast(raw.strip())
            except ValueError as exc:
                raise ConfigError(f"{var}: invalid value {raw!r}") from exc

        read("GROQ_BASE_URL", "api_base_url", str)
        read("SEARCH_CHAT_MODEL", "default_model", str)
        read("SEARCH_CHAT_MAX_RETRIES", "max_retries", int)
        read("SEARCH_CHAT_RETRY_BACKOFF", "retry_backoff", float)
        read("SEARCH_CHAT_REQUEST_TIMEOUT", "request_timeout", float)
        read("SEARCH_CHAT_SEARCH_PAGE_SIZE", "search_page_size", int)
        read("SEARCH_CHAT_MAX_TOOL_ROUNDS", "max_tool_rounds", int)
        read("SEARCH_CHAT_PAGE_CHAR_LIMIT", "page_char_limit", int)
        read("SEARCH_CHAT_OPEN_URL_MODE", "open_url_mode", str.lower)
        return cls(**kwargs)


def load_env_file(path: Path = ENV_FILE) -> None:
    """Load *path* into ``os.environ`` without overriding variables already set."""
    if path.exists():
        load_dotenv(path, override=False)


def get_or_prompt_key(
    name: str,
    display_name: str,
    prompt: Callable[[str], str],
    path: Path = ENV_FILE,
) -> str:
    """Return key *name* from the environment, asking for it when missing.

    A key typed at the prompt is saved to *path* and exported to the current
    process. Empty answers are asked again.
    """
    key = os.getenv(name, "").strip()
    if key:
        return key

    while not key:
        key = prompt(f"{display_name} not found. Enter your {display_name}: ").strip()

    path.touch(exist_ok=True)
    set_key(str(path), name, key, quote_mode="never")
    os.environ[name] = key
    return key


def get_api_keys(prompt: Callable[[str], str], path: Path = ENV_FILE) -> Tuple[str, str]:
    groq_key = get_or_prompt_key(GROQ_KEY_NAME, "GroqCloud API key", prompt, path)
    brave_key = get_or_prompt_key(BRAVE_KEY_NAME, "Brave Search API key", prompt, path)
    return groq_key, brave_key
