"""Filing inventory: storage contract and its interchangeable backends."""

from .base import Inventory
from .factory import create_inventory
from .local import LocalFileInventory
from .memory import InMemoryInventory
from .models import (
    CrawlMetrics,
    FilingRecord,
    ProcessingError,
    ProcessingState,
    YearlyMetrics,
    document_id,
)
from .sql import SqlInventory

__all__ = [
    "CrawlMetrics",
    "FilingRecord",
    "InMemoryInventory",
    "Inventory",
    "LocalFileInventory",
    "ProcessingError",
    "ProcessingState",
    "SqlInventory",
    "YearlyMetrics",
    "create_inventory",
    "document_id",
]
