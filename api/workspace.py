"""Workspace settings and dashboard routes."""

from fastapi import APIRouter, Depends, Query

from api.base import ok
from api.gates import TenantGates, workspace_id
from core.models import WorkspaceUpdate


def create_workspace_router(services: dict) -> APIRouter:
    gates = TenantGates(services["workspace"])
    router = APIRouter(tags=["workspace"], dependencies=gates.dependencies(require_business=False))

    workspace_svc = services["workspace"]
    dashboard_svc = services["dashboard"]

    @router.get("/workspace")
    async def get_workspace(ws: int = Depends(workspace_id)):
        workspace = workspace_svc.get(ws)
        data = workspace.model_dump(mode="json", exclude={"external_subject", "deleted_at"})
        data["has_business"] = workspace_svc.has_business(ws)
        data["has_active_subscription"] = workspace.has_active_subscription
        return ok(data)

    @router.patch("/workspace")
    async def update_workspace(body: WorkspaceUpdate, ws: int = Depends(workspace_id)):
        workspace = workspace_svc.update_settings(ws, body)
        return ok(workspace.model_dump(mode="json", exclude={"external_subject", "deleted_at"}))

    @router.get("/dashboard/stats")
    async def dashboard_stats(business_id: int | None = Query(None), ws: int = Depends(workspace_id)):
        stats = dashboard_svc.stats(ws, business_id)
        return ok(stats)

    return router
