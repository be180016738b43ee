"""Client routes."""

from fastapi import APIRouter, Depends, Query

from api.base import ok
from api.gates import TenantGates, workspace_id
from core.models import ClientCreate, ClientUpdate


def create_clients_router(services: dict) -> APIRouter:
    gates = TenantGates(services["workspace"])
    router = APIRouter(prefix="/clients", tags=["clients"], dependencies=gates.dependencies())

    client_svc = services["client"]

    @router.get("")
    async def list_clients(
        search: str | None = Query(None, max_length=255),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        ws: int = Depends(workspace_id),
    ):
        clients, total_count = client_svc.list(ws, search, page, limit)
        return ok({
            "items": [c.model_dump(mode="json") for c in clients],
            "page": page,
            "limit": limit,
            "total_count": total_count,
        })

    @router.get("/{sequence}")
    async def get_client(sequence: int, ws: int = Depends(workspace_id)):
        client = client_svc.get(ws, sequence)
        return ok(client)

    @router.post("", status_code=201)
    async def create_client(body: ClientCreate, ws: int = Depends(workspace_id)):
        client = client_svc.create(ws, body)
        return ok(client)

    @router.patch("/{sequence}")
    async def update_client(sequence: int, body: ClientUpdate, ws: int = Depends(workspace_id)):
        client = client_svc.update(ws, sequence, body)
        return ok(client)

    @router.delete("/{sequence}")
    async def delete_client(sequence: int, ws: int = Depends(workspace_id)):
        client_svc.delete(ws, sequence)
        return ok({"deleted": True})

    return router
