"""Select the inventory backend from configuration."""

from __future__ import annotations

import logging

from ..config import Settings
from .base import Inventory
from .local import LocalFileInventory
from .memory import InMemoryInventory
from .sql import SqlInventory

LOGGER = logging.getLogger(__name__)

BACKENDS = ("sql", "local", "memory")


def create_inventory(settings: Settings) -> Inventory:
    """Build the backend named by ``settings.inventory_backend``; unknown names fall back to local."""
    provider = settings.inventory_backend.strip().lower()
    if provider == "sql":
        return SqlInventory(
            settings.database_url,
            echo=settings.database_echo,
            auto_create=settings.inventory_auto_create,
        )
    if provider == "memory":
        return InMemoryInventory()
    if provider != "local":
        LOGGER.warning(
            "Unknown inventory backend; using local file storage",
            extra={"backend": settings.inventory_backend},
        )
    return LocalFileInventory(settings.local_data_path)
