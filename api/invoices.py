"""Invoice routes: CRUD, lifecycle actions, items and per-invoice payments."""

from fastapi import APIRouter, Depends, Query, Request
from starlette.responses import Response

from api.base import ok
from api.gates import TenantGates, workspace_id
from core.models import (
    InvoiceCreate, InvoiceItemCreate, InvoiceItemUpdate, InvoiceListQuery, InvoiceUpdate,
    PaymentCreate, PaymentUpdate, SendInvoiceRequest,
)


def create_invoices_router(services: dict) -> APIRouter:
    gates = TenantGates(services["workspace"])
    router = APIRouter(prefix="/invoices", tags=["invoices"], dependencies=gates.dependencies())

    invoice_svc = services["invoice"]
    item_svc = services["invoice_item"]
    payment_svc = services["payment"]
    pdf = services["pdf"]

    # -------------------------------------------------------------------------
    # Reads (static paths before /{sequence})
    # -------------------------------------------------------------------------

    @router.get("")
    async def list_invoices(query: InvoiceListQuery = Depends(), ws: int = Depends(workspace_id)):
        page = invoice_svc.list(ws, query)
        return ok(page)

    @router.get("/next-number")
    async def next_number(business_id: int | None = Query(None), ws: int = Depends(workspace_id)):
        number = invoice_svc.next_number(ws, business_id)
        return ok({"invoice_number": number})

    @router.get("/{sequence}")
    async def get_invoice(sequence: int, ws: int = Depends(workspace_id)):
        invoice = invoice_svc.get(ws, sequence)
        return ok(invoice)

    @router.get("/{sequence}/history")
    async def get_history(sequence: int, ws: int = Depends(workspace_id)):
        entries = invoice_svc.history(ws, sequence)
        return ok(entries)

    @router.get("/{sequence}/document")
    async def get_document(sequence: int, ws: int = Depends(workspace_id)):
        return ok(invoice_svc.document(ws, sequence))

    @router.get("/{sequence}/pdf")
    async def get_pdf(sequence: int, ws: int = Depends(workspace_id)):
        document = invoice_svc.document(ws, sequence)
        content = pdf.render_invoice(document)
        filename = f"invoice-{document['invoice']['invoiceNumber']}.pdf"
        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    # -------------------------------------------------------------------------
    # Invoice mutations
    # -------------------------------------------------------------------------

    @router.post("", status_code=201)
    async def create_invoice(body: InvoiceCreate, ws: int = Depends(workspace_id)):
        invoice = invoice_svc.create(ws, body)
        return ok(invoice)

    @router.patch("/{sequence}")
    async def update_invoice(sequence: int, body: InvoiceUpdate, ws: int = Depends(workspace_id)):
        invoice = invoice_svc.update(ws, sequence, body)
        return ok(invoice)

    @router.delete("/{sequence}")
    async def delete_invoice(sequence: int, ws: int = Depends(workspace_id)):
        invoice_svc.delete(ws, sequence)
        return ok({"deleted": True})

    @router.patch("/{sequence}/send")
    async def send_invoice(sequence: int, request: Request, ws: int = Depends(workspace_id)):
        # Body is optional: an empty request just marks the invoice SENT
        raw = await request.body()
        body = SendInvoiceRequest.model_validate_json(raw) if raw.strip() else None
        invoice = invoice_svc.send(ws, sequence, body)
        return ok(invoice)

    @router.patch("/{sequence}/mark-as-viewed")
    async def mark_viewed(sequence: int, ws: int = Depends(workspace_id)):
        invoice = invoice_svc.mark_viewed(ws, sequence)
        return ok(invoice)

    @router.patch("/{sequence}/mark-as-paid")
    async def mark_paid(sequence: int, ws: int = Depends(workspace_id)):
        invoice = invoice_svc.mark_paid(ws, sequence)
        return ok(invoice)

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    @router.post("/{sequence}/items", status_code=201)
    async def add_item(sequence: int, body: InvoiceItemCreate, ws: int = Depends(workspace_id)):
        invoice = item_svc.add(ws, sequence, body)
        return ok(invoice)

    @router.patch("/{sequence}/items/{item_id}")
    async def update_item(sequence: int, item_id: int, body: InvoiceItemUpdate, ws: int = Depends(workspace_id)):
        invoice = item_svc.update(ws, sequence, item_id, body)
        return ok(invoice)

    @router.delete("/{sequence}/items/{item_id}")
    async def delete_item(sequence: int, item_id: int, ws: int = Depends(workspace_id)):
        invoice = item_svc.delete(ws, sequence, item_id)
        return ok(invoice)

    # -------------------------------------------------------------------------
    # Payments of one invoice
    # -------------------------------------------------------------------------

    @router.get("/{sequence}/payments")
    async def list_payments(sequence: int, ws: int = Depends(workspace_id)):
        payments = payment_svc.list_for_invoice(ws, sequence)
        return ok(payments)

    @router.post("/{sequence}/payments", status_code=201)
    async def add_payment(sequence: int, body: PaymentCreate, ws: int = Depends(workspace_id)):
        payment = payment_svc.add(ws, sequence, body)
        return ok(payment)

    @router.patch("/{sequence}/payments/{payment_id}")
    async def update_payment(sequence: int, payment_id: int, body: PaymentUpdate, ws: int = Depends(workspace_id)):
        payment = payment_svc.update(ws, sequence, payment_id, body)
        return ok(payment)

    @router.delete("/{sequence}/payments/{payment_id}")
    async def delete_payment(sequence: int, payment_id: int, ws: int = Depends(workspace_id)):
        invoice = payment_svc.delete(ws, sequence, payment_id)
        return ok(invoice)

    return router
