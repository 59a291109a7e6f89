"""Prometheus metrics for document fetching and processing."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

FETCH_ATTEMPTS_TOTAL = Counter(
    "edgar_processing_fetch_attempts_total",
    "Fetch attempts grouped by outcome",
    ["outcome"],
)

FETCH_BACKOFF_SECONDS = Histogram(
    "edgar_processing_fetch_backoff_seconds",
    "Delays slept between fetch attempts",
    ["reason"],
)

DOCUMENTS_PROCESSED_TOTAL = Counter(
    "edgar_processing_documents_total",
    "Documents processed grouped by result",
    ["result"],
)

PROCESSING_LATENCY_SECONDS = Histogram(
    "edgar_processing_document_latency_seconds",
    "Latency for fetching, extracting and pushing one document",
)

ARCHIVE_ERRORS_TOTAL = Counter(
    "edgar_processing_archive_errors_total",
    "Artifact archive failures grouped by artifact",
    ["artifact"],
)
