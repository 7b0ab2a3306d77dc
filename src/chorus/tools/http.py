"""HTTP fetch tool."""

import asyncio
import json
import logging
from typing import Any

import httpx

from chorus.exceptions import FetchTimeoutError, ToolError
from chorus.tools.base import Tool, ToolParameter, ToolSchema

logger = logging.getLogger(__name__)

FETCH_METHODS = ["GET", "POST", "PUT", "DELETE"]
DEFAULT_TIMEOUT_MS = 10_000


async def fetch_url(
    url: str,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    body: str | None = None,
    timeout: int = DEFAULT_TIMEOUT_MS,
) -> dict[str, Any]:
    """Perform an HTTP request and return a JSON-friendly summary.

    Args:
        url: Target URL
        method: HTTP method
        headers: Optional request headers
        body: Request body, ignored for GET and HEAD
        timeout: Timeout in milliseconds

    Returns:
        Dict with status, status_text, headers, body, ok and final url

    Raises:
        FetchTimeoutError: If the request exceeds ``timeout``
        httpx.RequestError: On other network failures
    """
    method = method.upper()
    if method not in FETCH_METHODS:
        raise ToolError(f"Unsupported HTTP method: {method}")

    content = body if body is not None and method not in ("GET", "HEAD") else None

    logger.debug("fetch %s %s (timeout %dms)", method, url, timeout)
    seconds = timeout / 1000
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(seconds), follow_redirects=True
        ) as client:
            # bounds the whole exchange, not each read
            response = await asyncio.wait_for(
                client.request(method, url, headers=headers or None, content=content), seconds
            )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FetchTimeoutError(url, timeout) from e

    content_type = response.headers.get("content-type", "")
    response_body: Any = response.text
    if "application/json" in content_type:
        try:
            response_body = response.json()
        except json.JSONDecodeError:
            logger.debug("Response from %s declared JSON but did not parse", url)

    return {
        "status": response.status_code,
        "status_text": response.reason_phrase,
        "headers": dict(response.headers),
        "body": response_body,
        "ok": response.is_success,
        "url": str(response.url),
    }


def create_fetch_tool(default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> Tool:
    """Create the ``fetch`` tool.

    Args:
        default_timeout_ms: Timeout used when the model does not pass one
    """
    schema = ToolSchema(
        name="fetch",
        description=(
            "Fetch content from a URL. After fetching, synthesize the result for the "
            "user instead of dumping it raw. If it is incomplete, chain other tools "
            "or ask the user a clarifying question."
        ),
        parameters=[
            ToolParameter(name="url", type="string", description="The URL to fetch content from"),
            ToolParameter(
                name="method",
                type="string",
                description="HTTP method to use",
                required=False,
                enum=FETCH_METHODS,
                default="GET",
            ),
            ToolParameter(
                name="headers",
                type="object",
                description="Optional HTTP headers",
                required=False,
            ),
            ToolParameter(
                name="body",
                type="string",
                description="Request body for POST/PUT requests",
                required=False,
            ),
            ToolParameter(
                name="timeout",
                type="integer",
                description="Timeout in milliseconds",
                required=False,
                default=default_timeout_ms,
            ),
        ],
    )

    async def fetch_fn(
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | None = None,
        timeout: int | None = None,
    ) -> dict[str, Any]:
        return await fetch_url(
            url,
            method=method,
            headers=headers,
            body=body,
            timeout=timeout or default_timeout_ms,
        )

    return Tool(schema=schema, fn=fetch_fn)
