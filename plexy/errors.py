"""Exception types shared across clients and services."""


class PlexyError(Exception):
    """Base class for backend errors."""


class UpstreamError(PlexyError):
    """A Classroom or Drive request returned a non-success status."""

    def __init__(self, service: str, status_code: int, body: str = ""):
        self.service = service
        self.status_code = status_code
        self.body = body
        super().__init__(f"{service} API error: {status_code} - {body[:500]}")


class TokenRefreshError(PlexyError):
    """The token issuer could not be reached or answered unexpectedly."""


class TokenRefreshRejected(TokenRefreshError):
    """The token issuer rejected the refresh grant; the user must re-authorize."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Refresh grant rejected: {status_code} - {body[:200]}")


class ModelServiceError(PlexyError):
    """The language model request failed."""


class ModelRateLimitError(ModelServiceError):
    """The language model service answered with a rate-limit status."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message)


class HistoryError(PlexyError):
    """A message would break the tool-call linkage of a conversation."""
