"""Crawl inventory and control routes."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field

from ..config import get_settings
from ..crawler import CrawlService
from ..errors import BackendUnavailableError
from ..inventory.base import Inventory

router = APIRouter(tags=["crawl"])


class CrawlRequest(BaseModel):
    identifiers: list[str] = Field(default_factory=list)
    scope: str | None = None


def get_inventory(request: Request) -> Inventory:
    return request.app.state.inventory


def get_crawl_service(request: Request) -> CrawlService:
    return request.app.state.crawl_service


def _storage_unavailable(exc: BackendUnavailableError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Inventory unavailable: {exc}",
    )


@router.get("/health", tags=["health"])
async def health(
    inventory: Annotated[Inventory, Depends(get_inventory)],
    response: Response,
) -> dict[str, str]:
    """Readiness check that also checks the inventory backend."""
    healthy = await inventory.is_healthy()
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ok" if healthy else "unavailable",
        "storage": inventory.storage_type,
    }


@router.get("/crawl/metrics")
async def crawl_metrics(
    inventory: Annotated[Inventory, Depends(get_inventory)],
    entity: Annotated[str | None, Query()] = None,
    scope: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    try:
        metrics = await inventory.get_metrics(entity, scope)
    except BackendUnavailableError as exc:
        raise _storage_unavailable(exc) from exc
    return metrics.to_payload()


@router.get("/crawl/metrics/yearly")
async def crawl_yearly_metrics(
    inventory: Annotated[Inventory, Depends(get_inventory)],
    entity: Annotated[str | None, Query()] = None,
    scope: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    try:
        yearly = await inventory.get_yearly_metrics(entity, scope)
    except BackendUnavailableError as exc:
        raise _storage_unavailable(exc) from exc
    return {"years": [item.to_payload() for item in yearly.values()]}


@router.get("/crawl/errors")
async def crawl_errors(
    inventory: Annotated[Inventory, Depends(get_inventory)],
    entity: Annotated[str | None, Query()] = None,
    scope: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    try:
        errors = await inventory.get_processing_errors(entity, scope)
    except BackendUnavailableError as exc:
        raise _storage_unavailable(exc) from exc
    return {"errors": [item.to_payload() for item in errors]}


@router.post("/crawl", status_code=status.HTTP_202_ACCEPTED)
async def start_crawl(
    payload: CrawlRequest,
    background_tasks: BackgroundTasks,
    service: Annotated[CrawlService, Depends(get_crawl_service)],
) -> dict[str, Any]:
    """Schedule a crawl; falls back to the configured tracked entities."""
    identifiers = [item.strip() for item in payload.identifiers if item.strip()]
    if not identifiers:
        identifiers = list(get_settings().tracked_entities)
    if not identifiers:
        raise HTTPException(status_code=400, detail="No identifiers supplied or configured")

    background_tasks.add_task(service.crawl, identifiers, scope=payload.scope)
    return {"status": "accepted", "identifiers": identifiers, "scope": payload.scope}
