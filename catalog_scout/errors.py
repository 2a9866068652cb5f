"""Exception hierarchy shared by the fetch client, the store and the crawler."""
from __future__ import annotations

__all__ = [
    "CatalogScoutError",
    "FetchError",
    "NetworkError",
    "HttpStatusError",
    "RateLimitedError",
    "StoreError",
    "NotFoundError",
]


class CatalogScoutError(Exception):
    """Base class for every error raised by catalog_scout."""


class FetchError(CatalogScoutError):
    """A single URL could not be fetched.

    ``retryable`` tells the fetch loop whether another attempt may succeed.
    """

    retryable: bool = False


class NetworkError(FetchError):
    """Transport-level failure: timeout, refused connection, DNS, broken body."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to connect to server: {reason}")
        self.reason = reason


class HttpStatusError(FetchError):
    """The server answered with a non-2xx status other than 429."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Server returned status {status}")
        self.status = status

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status == 429 or self.status >= 500


class RateLimitedError(FetchError):
    """HTTP 429 Too Many Requests."""

    retryable = True
    status = 429

    def __init__(self) -> None:
        super().__init__("Rate limited, retry after delay")


class StoreError(CatalogScoutError):
    """A database operation failed; the surrounding transaction was rolled back."""


class NotFoundError(CatalogScoutError):
    """The origin page exists but carries no usable record (empty title)."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Not found: {key}")
        self.key = key
