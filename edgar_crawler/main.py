from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, cast

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from .api.router import router as crawl_router
from .config import get_settings
from .crawler import CrawlService
from .inventory import create_inventory
from .log import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the inventory and crawl service on startup, release them on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_dir)
    inventory = create_inventory(settings)
    await inventory.initialize()
    crawl_service = CrawlService(settings, inventory)
    await crawl_service.start()
    state = cast(Any, app.state)
    state.inventory = inventory
    state.crawl_service = crawl_service
    yield
    await crawl_service.stop()
    await inventory.close()


app = FastAPI(
    title="EDGAR Filing Crawler",
    version="0.1.0",
    docs_url="/docs",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.include_router(crawl_router)
app.mount("/metrics", make_asgi_app())
