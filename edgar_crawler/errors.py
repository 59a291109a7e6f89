"""Exception taxonomy shared by the crawl pipeline."""

from __future__ import annotations


class CrawlerError(RuntimeError):
    """Base class for crawler failures."""


class EntityNotFoundError(CrawlerError):
    """Raised when an identifier does not match any registry entry."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"No registry entry matches {identifier!r}")
        self.identifier = identifier


class DirectoryUnavailableError(CrawlerError):
    """Raised when the identifier directory cannot be fetched or decoded."""


class MalformedMetadataError(CrawlerError):
    """Raised for a filing entry that cannot be interpreted."""


class TransientNetworkError(CrawlerError):
    """Retryable transport or HTTP failure."""


class RateLimitedError(TransientNetworkError):
    """The server answered 429; `retry_after` holds its hint in seconds, if any."""

    def __init__(self, url: str, retry_after: float | None) -> None:
        super().__init__(f"Rate limited fetching {url}")
        self.url = url
        self.retry_after = retry_after


class ExtractionError(CrawlerError):
    """Raised when a payload cannot be converted to text."""


class BackendUnavailableError(CrawlerError):
    """Raised when an inventory backend operation fails."""


class InventoryConfigurationError(CrawlerError):
    """Raised at startup when the selected inventory backend is misconfigured."""


class CrawlCancelledError(CrawlerError):
    """Raised when a stop signal is observed mid-crawl."""
