"""Web search and page reading tools backed by a SURF-style service."""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from chorus.exceptions import WebSearchError
from chorus.tools.base import Tool, ToolParameter, ToolSchema

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200
MAX_RESULTS = 10


class WebClient:
    """HTTP client for the search/read service.

    ``GET {base_url}/search?q=...`` returns ``{"results": [{title, url, snippet}]}``
    and ``GET {base_url}/read/{url}`` returns the extracted page content.
    """

    def __init__(self, base_url: str, timeout: int = 30):
        """Initialize the client.

        Args:
            base_url: Service root URL
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(self.timeout),
        )

    async def search(self, query: str, num_results: int = 5) -> list[dict[str, str]]:
        """Search the web.

        Args:
            query: Search query string
            num_results: Number of results, clamped to 1..10

        Returns:
            List of {title, url, snippet} with snippets cut to 200 chars plus "..."

        Raises:
            WebSearchError: If the service fails or answers with a non-2xx status
        """
        num_results = min(max(1, int(num_results)), MAX_RESULTS)

        try:
            async with self._client() as client:
                response = await client.get("/search", params={"q": query})
        except httpx.HTTPError as e:
            raise WebSearchError(f"Web search request failed: {e}") from e

        if not response.is_success:
            raise WebSearchError(
                f"Web search error: {response.status_code} {response.reason_phrase}"
            )

        data = response.json()
        return [
            {
                "title": result.get("title", ""),
                "url": result.get("url", ""),
                "snippet": (result.get("snippet") or "")[:SNIPPET_LENGTH] + "...",
            }
            for result in data.get("results", [])[:num_results]
        ]

    async def read(self, url: str) -> Any:
        """Extract the content of a page.

        Returns:
            The extracted content, or None on any failure
        """
        path = "/read/" + quote(url, safe=":/?&=#%")
        try:
            async with self._client() as client:
                response = await client.get(path)
            logger.debug("Web read %s -> %d", url, response.status_code)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError):
            logger.info("Web read failed for %s", url, exc_info=True)
            return None

        if isinstance(data, dict) and "content" in data:
            return data["content"]
        return data


def create_web_search_tool(web: WebClient) -> Tool:
    """Create the ``web_search`` tool."""
    schema = ToolSchema(
        name="web_search",
        description=(
            "Search the web for current information on any topic. Follow up by "
            "reading 2-3 promising URLs with web_read (fall back to fetch), then "
            "answer with inline citations instead of a bare list of links."
        ),
        parameters=[
            ToolParameter(
                name="query",
                type="string",
                description="The search query. Be specific and use relevant keywords.",
            ),
            ToolParameter(
                name="num_results",
                type="integer",
                description="Number of search results to return (default: 5, max: 10)",
                required=False,
                default=5,
                minimum=1,
                maximum=MAX_RESULTS,
            ),
        ],
    )

    async def web_search_fn(query: str, num_results: int = 5) -> list[dict[str, str]]:
        return await web.search(query, num_results=num_results)

    return Tool(schema=schema, fn=web_search_fn)


def create_web_read_tool(web: WebClient) -> Tool:
    """Create the ``web_read`` tool."""
    schema = ToolSchema(
        name="web_read",
        description=(
            "Extract the main content of a specific page such as an article, blog "
            "post or documentation page. Not suited to home or search result pages. "
            "Returns null when the page cannot be read; retry with fetch in that case."
        ),
        parameters=[
            ToolParameter(
                name="url",
                type="string",
                description="The specific URL to extract content from",
            ),
        ],
    )

    async def web_read_fn(url: str) -> Any:
        return await web.read(url)

    return Tool(schema=schema, fn=web_read_fn)
