"""Tools the model may call: Brave web search and page opening."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from .errors import ToolError

logger = logging.getLogger(__name__)

RESULTS_HEADING = "### Brave Search Results"
NO_RESULTS_LINE = "No results found."

SEARCH_FAILED_MESSAGE = "Error: Search failed. Please answer without search."
OPEN_FAILED_MESSAGE = "Error: Failed to read page content. Please try searching instead."


@dataclass(frozen=True)
class ToolDeclaration:
    name: str
    description: str
    parameter_schema: Dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameter_schema,
            },
        }


WEB_SEARCH = ToolDeclaration(
    name="web_search",
    description=(
        "Search the web for up-to-date information, news, current events, and "
        "general knowledge. Use this for questions that require real-time data "
        "or when you need to verify facts."
    ),
    parameter_schema={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The search query to look up on the web.",
            }
        },
        "required": ["query"],
    },
)

OPEN_URL = ToolDeclaration(
    name="open_url",
    description="Open a URL to read its content.",
    parameter_schema={
        "type": "object",
        "properties": {
            "id": {
                "type": "string",
                "description": "The URL or ID of the resource to open.",
            }
        },
        "required": ["id"],
    },
)


class WebSearchArgs(BaseModel):
    query: str


class OpenUrlArgs(BaseModel):
    # Some models send ``url`` instead of the declared ``id``.
    id: str = Field(validation_alias=AliasChoices("id", "url"))


# ---------------------------------------------------------------------------
# Brave Search
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchResult:
    title: str
    description: str
    url: str


class BraveSearchClient:
    """Minimal client for the Brave web search endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        url: str = "https://api.search.brave.com/res/v1/web/search",
        page_size: int = 5,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()

    def search(self, query: str) -> List[SearchResult]:
        """Return at most ``page_size`` results for *query*.

        Raises ``requests.RequestException`` on network or HTTP errors and
        ``ValueError`` when the body is not JSON.
        """
        response = self.session.get(
            self.url,
            headers={
                "X-Subscription-Token": self.api_key,
                "Accept": "application/json",
            },
            params={"q": query, "count": str(self.page_size)},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()

        web = payload.get("web") if isinstance(payload, dict) else None
        items = web.get("results") if isinstance(web, dict) else None
        results: List[SearchResult] = []
        for item in items or []:
            if not isinstance(item, dict):
                continue
            results.append(
                SearchResult(
                    title=item.get("title") or "No Title",
                    description=item.get("description") or "",
                    url=item.get("url") or "",
                )
            )
        return results[: self.page_size]


def format_results(results: List[SearchResult]) -> str:
    """Render search results as the Markdown block handed to the model."""
    lines = [RESULTS_HEADING, ""]
    if not results:
        lines.append(NO_RESULTS_LINE)
        return "\n".join(lines) + "\n"
    for index, result in enumerate(results, start=1):
        lines.append(f"{index}. **{result.title}**")
        lines.append(f"   - Snippet: {result.description}")
        lines.append(f"   - URL: {result.url}")
        lines.append("")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Page readers backing ``open_url``
# ---------------------------------------------------------------------------


class PageReader:
    """Turn a URL or resource id into text for the model."""

    name = "base"

    def read(self, target: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class SearchFallbackReader(PageReader):
    """Answer ``open_url`` with search results about the identifier."""

    name = "search"

    def __init__(self, search: Callable[[str], str]) -> None:
        self._search = search

    def read(self, target: str) -> str:
        return self._search(target)


class FetchPageReader(PageReader):
    """Download the page and extract its visible text.

    Identifiers that are not http(s) URLs are handed to *fallback*.
    """

    name = "fetch"
    USER_AGENT = "Mozilla/5.0 (compatible; search-chat/1.0)"

    def __init__(
        self,
        fallback: PageReader,
        *,
        char_limit: int = 8000,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.fallback = fallback
        self.char_limit = char_limit
        self.timeout = timeout
        self.session = session or requests.Session()

    def read(self, target: str) -> str:
        if not target.lower().startswith(("http://", "https://")):
            return self.fallback.read(target)

        response = self.session.get(
            target, timeout=self.timeout, headers={"User-Agent": self.USER_AGENT}
        )
        response.raise_for_status()

        soup = BeautifulSoup(response.text, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        title = soup.title.get_text(strip=True) if soup.title else ""
        text = soup.get_text(separator="\n", strip=True)
        if len(text) > self.char_limit:
            text = text[: self.char_limit] + "\n[truncated]"

        lines = [f"### Page Content: {target}", ""]
        if title:
            lines.append(f"Title: {title}")
            lines.append("")
        lines.append(text or "(page has no readable text)")
        return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Fixed set of tools offered to the model on every request."""

    def __init__(self, search_client: BraveSearchClient, page_reader: Optional[PageReader] = None) -> None:
        self.search_client = search_client
        self.page_reader = page_reader or SearchFallbackReader(self.web_search)
        self._declarations: Tuple[ToolDeclaration, ...] = (WEB_SEARCH, OPEN_URL)
        self._handlers: Dict[str, Callable[[str], str]] = {
            WEB_SEARCH.name: self._run_web_search,
            OPEN_URL.name: self._run_open_url,
        }

    @classmethod
    def from_settings(cls, search_client: BraveSearchClient, settings: Any) -> "ToolRegistry":
        """Build a registry whose ``open_url`` reader follows ``settings.open_url_mode``."""
        registry = cls(search_client)
        if settings.open_url_mode == FetchPageReader.name:
            registry.page_reader = FetchPageReader(
                registry.page_reader,
                char_limit=settings.page_char_limit,
                timeout=settings.request_timeout,
            )
        return registry

    @property
    def declarations(self) -> Tuple[ToolDeclaration, ...]:
        return self._declarations

    @property
    def names(self) -> List[str]:
        return [decl.name for decl in self._declarations]

    def wire_declarations(self) -> List[Dict[str, Any]]:
        return [decl.to_wire() for decl in self._declarations]

    def execute(self, name: str, arguments: str) -> str:
        """Run tool *name* with the model's raw JSON *arguments*.

        Every failure is raised as :class:`ToolError` carrying the text the
        model should receive in place of a result.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolError(
                f"Error: Unknown tool '{name}'. Available tools: {', '.join(self.names)}."
            )
        logger.debug("Executing tool %s with arguments %s", name, arguments)
        return handler(arguments or "{}")

    def web_search(self, query: str) -> str:
        """Search and format; a blank query yields an empty result block."""
        if not query.strip():
            return format_results([])
        return format_results(self.search_client.search(query))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _run_web_search(self, arguments: str) -> str:
        args = _parse_args(WebSearchArgs, WEB_SEARCH.name, arguments)
        try:
            return self.web_search(args.query)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Search for %r failed: %s", args.query, exc)
            raise ToolError(SEARCH_FAILED_MESSAGE) from exc

    def _run_open_url(self, arguments: str) -> str:
        args = _parse_args(OpenUrlArgs, OPEN_URL.name, arguments)
        try:
            return self.page_reader.read(args.id)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Opening %r failed: %s", args.id, exc)
            raise ToolError(OPEN_FAILED_MESSAGE) from exc


def _parse_args(model: type, tool_name: str, arguments: str) -> Any:
    try:
        return model.model_validate_json(arguments)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ToolError(
            f"Error: Invalid arguments for {tool_name}: {problems}. "
            "Please retry with corrected arguments."
        ) from exc

