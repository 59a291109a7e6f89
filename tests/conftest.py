import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from edgar_crawler.inventory import (  # noqa: E402
    InMemoryInventory,
    Inventory,
    LocalFileInventory,
    SqlInventory,
)


def build_inventory(kind: str, tmp_path: Path) -> Inventory:
    if kind == "sql":
        return SqlInventory(f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}")
    if kind == "local":
        return LocalFileInventory(tmp_path / "data")
    return InMemoryInventory()


@pytest_asyncio.fixture(params=["sql", "local", "memory"])
async def inventory(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncGenerator[Inventory, None]:
    """Each test runs once per backend against a fresh, initialized store."""
    backend = build_inventory(request.param, tmp_path)
    await backend.initialize()
    try:
        yield backend
    finally:
        await backend.close()


@pytest_asyncio.fixture
async def memory_inventory() -> AsyncGenerator[InMemoryInventory, None]:
    backend = InMemoryInventory()
    await backend.initialize()
    yield backend
    await backend.close()
