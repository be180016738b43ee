"""Catalog routes (products and services per business)."""

from fastapi import APIRouter, Depends, Query

from api.base import ok
from api.gates import TenantGates, workspace_id
from core.models import CatalogItemCreate, CatalogItemUpdate


def create_catalog_router(services: dict) -> APIRouter:
    gates = TenantGates(services["workspace"])
    router = APIRouter(prefix="/catalog", tags=["catalog"], dependencies=gates.dependencies())

    catalog_svc = services["catalog"]

    @router.get("")
    async def list_catalog(
        business_id: int | None = Query(None),
        search: str | None = Query(None, max_length=255),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        ws: int = Depends(workspace_id),
    ):
        items, total_count = catalog_svc.list(ws, business_id, search, page, limit)
        return ok({
            "items": [i.model_dump(mode="json") for i in items],
            "page": page,
            "limit": limit,
            "total_count": total_count,
        })

    @router.get("/{sequence}")
    async def get_catalog_item(sequence: int, ws: int = Depends(workspace_id)):
        item = catalog_svc.get(ws, sequence)
        return ok(item)

    @router.post("", status_code=201)
    async def create_catalog_item(body: CatalogItemCreate, ws: int = Depends(workspace_id)):
        item = catalog_svc.create(ws, body)
        return ok(item)

    @router.patch("/{sequence}")
    async def update_catalog_item(sequence: int, body: CatalogItemUpdate, ws: int = Depends(workspace_id)):
        item = catalog_svc.update(ws, sequence, body)
        return ok(item)

    @router.delete("/{sequence}")
    async def delete_catalog_item(sequence: int, ws: int = Depends(workspace_id)):
        catalog_svc.delete(ws, sequence)
        return ok({"deleted": True})

    return router
