"""Interactive CLI for chatting with GroqCloud models, with Brave web search.

Features
--------
1. Web search tool: the model can call `web_search` and `open_url` mid-answer; results are
   fed back into the conversation before it replies. Toggle with `/tool websearch on|off`.
2. Model switching: change the model between messages with `/model` (or via `--model`).
3. Streaming: `/stream` toggles incremental output for replies made without tools.

Commands
--------
    /help, /, ?                 – show this help
    /exit, /quit                – leave the REPL
    /model [NAME|NUMBER]        – switch model (no argument opens a picker)
    /models                     – list supported models
    /stream                     – toggle streaming mode
    /tool websearch on|off      – enable or disable the web search tools
    /clear                      – forget the conversation so far

Environment variables
---------------------
* GROQ_API_KEY, BRAVE_API_KEY – asked for on first start and saved to ./.env when missing
* GROQ_BASE_URL – custom OpenAI-compatible base URL (optional)
* SEARCH_CHAT_* – tuning knobs (retries, backoff, tool rounds, open_url mode, ...)

Run `python -m search_chat` or the `search-chat` script.
"""
# Re-export useful symbols for convenience
from .core import Conversation, Session, SUPPORTED_MODELS, SYSTEM_PROMPT
from .core.agent import Agent
from .core.client import CompletionClient
from .core.tools import ToolRegistry
from .cli import ChatCLI, run_cli

__all__ = [
    "Conversation",
    "Session",
    "SUPPORTED_MODELS",
    "SYSTEM_PROMPT",
    "Agent",
    "CompletionClient",
    "ToolRegistry",
    "ChatCLI",
    "run_cli",
]
