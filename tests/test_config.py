from __future__ import annotations

import logging
from pathlib import Path

import pytest
from edgar_crawler.config import Settings
from edgar_crawler.inventory import (
    InMemoryInventory,
    LocalFileInventory,
    SqlInventory,
    create_inventory,
)
from edgar_crawler.log import configure_logging


@pytest.mark.parametrize(
    ("backend", "expected"),
    [
        ("sql", SqlInventory),
        ("SQL", SqlInventory),
        ("memory", InMemoryInventory),
        ("local", LocalFileInventory),
        ("cosmos", LocalFileInventory),
    ],
)
def test_create_inventory_selects_backend(backend: str, expected: type, tmp_path: Path) -> None:
    settings = Settings(
        inventory_backend=backend,
        local_data_path=str(tmp_path),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'inv.db'}",
    )
    assert isinstance(create_inventory(settings), expected)


def test_unknown_backend_logs_fallback(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    settings = Settings(inventory_backend="blob", local_data_path=str(tmp_path))
    with caplog.at_level(logging.WARNING, logger="edgar_crawler.inventory.factory"):
        inventory = create_inventory(settings)
    assert inventory.storage_type == "Local File Storage"
    assert "Unknown inventory backend" in caplog.text


def test_retention_years_defaults_when_unset() -> None:
    assert Settings(years_of_data=0).retention_years == 3
    assert Settings(years_of_data=5).retention_years == 5


def test_form_types_parse_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INCLUDED_FORM_TYPES", "10-K, S-1 ,")
    monkeypatch.setenv("EDGAR_TRACKED_ENTITIES", "AAPL,Microsoft")
    settings = Settings()
    assert settings.included_form_types == ["10-K", "S-1"]
    assert settings.tracked_entities == ["AAPL", "Microsoft"]


def test_configure_logging_writes_rotating_file(tmp_path: Path) -> None:
    logger = logging.getLogger("edgar_crawler")
    saved = list(logger.handlers)
    logger.handlers.clear()
    try:
        configure_logging("debug", str(tmp_path / "logs"))
        configure_logging("info", str(tmp_path / "logs"))
        assert len(logger.handlers) == 2
        assert logger.level == logging.INFO
        assert (tmp_path / "logs" / "crawler.log").exists()
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers[:] = saved
