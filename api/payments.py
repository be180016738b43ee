"""Workspace-wide payment routes and receipts."""

from fastapi import APIRouter, Depends
from starlette.responses import Response

from api.base import ok
from api.gates import TenantGates, workspace_id
from core.models import PaymentListQuery


def create_payments_router(services: dict) -> APIRouter:
    gates = TenantGates(services["workspace"])
    router = APIRouter(prefix="/payments", tags=["payments"], dependencies=gates.dependencies())

    payment_svc = services["payment"]
    pdf = services["pdf"]

    @router.get("")
    async def list_payments(query: PaymentListQuery = Depends(), ws: int = Depends(workspace_id)):
        page = payment_svc.list(ws, query)
        return ok(page)

    @router.get("/{payment_id}")
    async def get_payment(payment_id: int, ws: int = Depends(workspace_id)):
        payment = payment_svc.find(ws, payment_id)
        return ok(payment)

    @router.get("/{payment_id}/receipt")
    async def get_receipt(payment_id: int, ws: int = Depends(workspace_id)):
        document = payment_svc.receipt_document(ws, payment_id)
        content = pdf.render_receipt(document)
        filename = f"receipt-{document['invoice']['invoiceNumber']}-{payment_id}.pdf"
        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return router
