"""Web search provider backed by the Google Custom Search JSON API."""

import re
from collections.abc import Sequence
from html.parser import HTMLParser
from typing import Any, Protocol

import httpx

from nostalgia_bot.exceptions import SearchError
from nostalgia_bot.logging import get_logger
from nostalgia_bot.models import SearchResult

log = get_logger("nostalgia_bot.search")

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
RESULTS_PER_QUERY = 5
COULD_NOT_FETCH = "Could not fetch content"
MAX_PAGE_CHARS = 20_000
DEFAULT_TIMEOUT = 30.0
USER_AGENT = "Mozilla/5.0 (compatible; nostalgia-bot/0.1)"


class SearchProvider(Protocol):
    """What the orchestrator needs from a search backend."""

    async def fetch_many(self, queries: Sequence[str]) -> list[SearchResult]: ...

    async def fetch_rendered_content(self, url: str) -> str: ...


def remove_quotes(query: str) -> str:
    """Strip quote characters; quoted queries from the model often match nothing."""
    return re.sub(r"[\"']", "", query)


class _VisibleTextParser(HTMLParser):
    _SKIPPED = {"script", "style", "noscript", "template", "svg", "head"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._skip_depth = 0
        self.chunks: list[str] = []

    def handle_starttag(self, tag: str, attrs: Any) -> None:
        if tag in self._SKIPPED:
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in self._SKIPPED and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        if not self._skip_depth and data.strip():
            self.chunks.append(data.strip())


def visible_text(html: str, limit: int = MAX_PAGE_CHARS) -> str:
    """Visible text of an HTML document, one chunk per line, truncated to ``limit``."""
    parser = _VisibleTextParser()
    parser.feed(html)
    parser.close()
    text = "\n".join(re.sub(r"\s+", " ", chunk) for chunk in parser.chunks)
    return text[:limit]


class GoogleSearchEngine:
    """Async Google Custom Search client.

    Stateless apart from the shared ``httpx.AsyncClient``, so one instance can
    serve several orchestration runs at once.
    """

    def __init__(
        self,
        api_key: str,
        engine_id: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_key = api_key
        self.engine_id = engine_id
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT})

    async def __aenter__(self) -> "GoogleSearchEngine":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_search_results(self, query: str) -> list[SearchResult]:
        """Run one query and return up to five results.

        Raises:
            SearchError: When the API call fails or returns a non-2xx status.
        """
        params = {"key": self.api_key, "cx": self.engine_id, "q": query, "num": RESULTS_PER_QUERY}
        try:
            response = await self._client.get(GOOGLE_SEARCH_URL, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SearchError(query=query, reason=str(e)) from e

        return [
            SearchResult(title=item.get("title", ""), link=item["link"], snippet=item.get("snippet", ""))
            for item in data.get("items") or []
            if item.get("link")
        ]

    async def fetch_search_results_unquoted(self, query: str) -> list[SearchResult]:
        """Like ``fetch_search_results`` but retries once without quotes when nothing matched."""
        results = await self.fetch_search_results(query)
        unquoted = remove_quotes(query)
        if not results and unquoted != query:
            log.info("search.query.retry_without_quotes", query=query)
            results = await self.fetch_search_results(unquoted)
        if not results:
            log.info("search.query.no_results", query=query)
        return results

    async def fetch_many(self, queries: Sequence[str]) -> list[SearchResult]:
        """Concatenate the results of every query in order; failed queries are skipped."""
        results: list[SearchResult] = []
        for query in queries:
            try:
                results.extend(await self.fetch_search_results_unquoted(query))
            except SearchError as e:
                log.warning("search.query.failed", query=query, error=e.reason)
        return results

    async def fetch_rendered_content(self, url: str) -> str:
        """Visible text of the page at ``url``, or ``COULD_NOT_FETCH`` on any failure."""
        try:
            response = await self._client.get(url, follow_redirects=True)
            response.raise_for_status()
            return visible_text(response.text)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeDecodeError, ValueError) as e:
            log.info("search.page.fetch_failed", url=url, error=str(e))
            return COULD_NOT_FETCH
        except AssertionError as e:
            # html.parser asserts on unknown marked sections such as <![foo[
            log.info("search.page.parse_failed", url=url, error=str(e))
            return COULD_NOT_FETCH
