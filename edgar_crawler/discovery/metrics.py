"""Prometheus metrics for entity resolution and filing discovery."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

RESOLUTIONS_TOTAL = Counter(
    "edgar_discovery_resolutions_total",
    "Entity resolutions grouped by source (cache, directory, not_found)",
    ["source"],
)

FEED_FETCH_LATENCY_SECONDS = Histogram(
    "edgar_discovery_feed_fetch_latency_seconds",
    "Latency fetching submission feeds",
)

FILINGS_DISCOVERED_TOTAL = Counter(
    "edgar_discovery_filings_total",
    "Feed entries grouped by discovery outcome",
    ["outcome"],
)
