"""Exception types shared across chorus."""


class ChorusError(Exception):
    """Base class for chorus errors."""


class NotFoundError(ChorusError):
    """A user, chat or sub-agent could not be resolved."""


class UnauthorizedError(ChorusError):
    """The user does not own the requested resource."""


class ToolError(ChorusError):
    """A tool failed; reported back to the model as a tool result."""


class FetchTimeoutError(ToolError):
    """An HTTP fetch exceeded its timeout."""

    def __init__(self, url: str, timeout_ms: int):
        super().__init__(f"Request to {url} timed out after {timeout_ms}ms")
        self.url = url
        self.timeout_ms = timeout_ms


class WebSearchError(ToolError):
    """The web search service returned an error."""


class ConflictError(ChorusError):
    """A write would violate a uniqueness constraint."""
