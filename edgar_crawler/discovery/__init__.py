"""Entity resolution and filing discovery."""

from .cache import EntityCache, InMemoryEntityCache, RedisEntityCache
from .discoverer import FilingDiscoverer
from .feed import SubmissionFeedClient
from .models import CrawlContext, DiscoveryResult, FilingFeedEntry, TrackedEntity
from .resolver import EntityResolver

__all__ = [
    "CrawlContext",
    "DiscoveryResult",
    "EntityCache",
    "EntityResolver",
    "FilingDiscoverer",
    "FilingFeedEntry",
    "InMemoryEntityCache",
    "RedisEntityCache",
    "SubmissionFeedClient",
    "TrackedEntity",
]
