"""Crawl error taxonomy and classification."""

from dataclasses import dataclass
from typing import Literal

import httpx

ErrorType = Literal["network", "parse", "auth", "rate_limit", "unknown"]


class CrawlError(Exception):
    """Base class for errors raised while crawling."""

    kind: ErrorType = "unknown"
    retryable: bool = True


class NetworkError(CrawlError):
    kind = "network"
    retryable = True


class FetchTimeoutError(NetworkError):
    """Raised when a request exceeds its hard timeout."""


class ParseError(CrawlError):
    kind = "parse"
    retryable = False


class AuthError(CrawlError):
    kind = "auth"
    retryable = False


class RateLimitError(CrawlError):
    kind = "rate_limit"
    retryable = True


class HTTPStatusError(CrawlError):
    """Non-2xx response that is neither auth nor rate limiting."""

    def __init__(self, status_code: int, url: str = ""):
        super().__init__(f"HTTP error! status: {status_code} ({url})")
        self.status_code = status_code
        self.url = url
        # 5xx is worth another attempt, other 4xx is not
        self.retryable = status_code >= 500


def error_for_status(status_code: int, url: str = "") -> CrawlError:
    """Map an HTTP status code to a typed crawl error."""
    if status_code in (401, 403):
        return AuthError(f"HTTP error! status: {status_code} unauthorized ({url})")
    if status_code == 429:
        return RateLimitError(f"HTTP error! status: 429 too many requests ({url})")
    return HTTPStatusError(status_code, url)


@dataclass
class ErrorInfo:
    type: ErrorType
    retryable: bool
    message: str


def can_retry_error(error: BaseException) -> bool:
    """Heuristic retry decision based on the error message."""
    message = str(error).lower()

    if any(s in message for s in ("network", "timeout", "econnreset", "enotfound")):
        return True

    if any(s in message for s in ("500", "502", "503")):
        return True

    if any(s in message for s in ("400", "401", "403", "404")):
        return False

    return True


def classify_error(error: BaseException) -> ErrorInfo:
    """Classify an exception into the crawl error taxonomy."""
    message = str(error) or error.__class__.__name__

    if isinstance(error, CrawlError):
        return ErrorInfo(error.kind, error.retryable, message)

    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError)):
        return ErrorInfo("network", True, message)

    if isinstance(error, httpx.HTTPStatusError):
        typed = error_for_status(error.response.status_code, str(error.request.url))
        return ErrorInfo(typed.kind, typed.retryable, message)

    lowered = message.lower()

    if "network" in lowered or "timeout" in lowered or "econnreset" in lowered:
        return ErrorInfo("network", True, message)

    if "parse" in lowered or "html" in lowered:
        return ErrorInfo("parse", False, message)

    if "401" in lowered or "403" in lowered or "unauthorized" in lowered:
        return ErrorInfo("auth", False, message)

    if "429" in lowered or "rate limit" in lowered or "too many requests" in lowered:
        return ErrorInfo("rate_limit", True, message)

    return ErrorInfo("unknown", can_retry_error(error), message)
