"""Business routes (onboarding: no business gate)."""

from fastapi import APIRouter, Depends, Query

from api.base import ok
from api.gates import TenantGates, workspace_id
from core.models import BusinessCreate, BusinessUpdate


def create_businesses_router(services: dict) -> APIRouter:
    gates = TenantGates(services["workspace"])
    router = APIRouter(
        prefix="/businesses",
        tags=["businesses"],
        dependencies=gates.dependencies(require_business=False),
    )

    business_svc = services["business"]

    @router.get("")
    async def list_businesses(search: str | None = Query(None, max_length=255), ws: int = Depends(workspace_id)):
        businesses = business_svc.list(ws, search)
        return ok(businesses)

    @router.get("/{sequence}")
    async def get_business(sequence: int, ws: int = Depends(workspace_id)):
        business = business_svc.get(ws, sequence)
        return ok(business)

    @router.post("", status_code=201)
    async def create_business(body: BusinessCreate, ws: int = Depends(workspace_id)):
        business = business_svc.create(ws, body)
        return ok(business)

    @router.patch("/{sequence}")
    async def update_business(sequence: int, body: BusinessUpdate, ws: int = Depends(workspace_id)):
        business = business_svc.update(ws, sequence, body)
        return ok(business)

    @router.patch("/{sequence}/default")
    async def set_default(sequence: int, ws: int = Depends(workspace_id)):
        business = business_svc.set_default(ws, sequence)
        return ok(business)

    @router.delete("/{sequence}")
    async def delete_business(sequence: int, ws: int = Depends(workspace_id)):
        business_svc.delete(ws, sequence)
        return ok({"deleted": True})

    return router
