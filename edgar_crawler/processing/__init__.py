"""Fetching, extraction and delivery of discovered filings."""

from .archive import FilingArchive, LocalFilingArchive, MinioFilingArchive
from .coordinator import ProcessingCoordinator, ProcessingSummary
from .extractor import ContentExtractor, DefaultContentExtractor
from .fetcher import FETCH_FAILED, FetchPolicy, Fetcher
from .sink import DocumentSink, HttpIndexSink, InMemorySink, IndexDocument, NullSink

__all__ = [
    "ContentExtractor",
    "DefaultContentExtractor",
    "DocumentSink",
    "FilingArchive",
    "FETCH_FAILED",
    "FetchPolicy",
    "Fetcher",
    "HttpIndexSink",
    "InMemorySink",
    "IndexDocument",
    "LocalFilingArchive",
    "MinioFilingArchive",
    "NullSink",
    "ProcessingCoordinator",
    "ProcessingSummary",
]
