"""API endpoints for sales invoices."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from gstbook.api.actions import run_action
from gstbook.api.deps import DB, CurrentActor
from gstbook.schemas.base import dump
from gstbook.schemas.document import CancelRequest, InvoiceCreate, InvoiceResponse, InvoiceUpdate
from gstbook.services.invoice_service import InvoiceService

router = APIRouter()


@router.get("")
async def list_invoices(
    db: DB,
    actor: CurrentActor,
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """List invoices, newest first."""
    invoices, total = await InvoiceService(db).list(actor.team_id, status_filter, customer_id, skip, limit)
    return {"items": [dump(InvoiceResponse, i) for i in invoices], "total": total, "skip": skip, "limit": limit}


@router.get("/{invoice_id}")
async def get_invoice(invoice_id: UUID, db: DB, actor: CurrentActor):
    invoice = await InvoiceService(db).get(actor.team_id, invoice_id)
    return dump(InvoiceResponse, invoice)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_invoice(invoice_in: InvoiceCreate, db: DB, actor: CurrentActor):
    """Create a draft invoice with a new invoice number."""
    async def action():
        invoice = await InvoiceService(db).create(actor, invoice_in.model_dump())
        return {
            "success": "Invoice created",
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "invoice": dump(InvoiceResponse, invoice),
        }

    return await run_action(db, "Failed to create invoice", action, success_status=status.HTTP_201_CREATED)


@router.put("/{invoice_id}")
async def update_invoice(invoice_id: UUID, invoice_in: InvoiceUpdate, db: DB, actor: CurrentActor):
    """Edit a draft invoice. Sending ``items`` replaces every line."""
    async def action():
        invoice = await InvoiceService(db).update(actor, invoice_id, invoice_in.model_dump(exclude_unset=True))
        return {"success": "Invoice updated", "invoice_id": invoice.id, "invoice": dump(InvoiceResponse, invoice)}

    return await run_action(db, "Failed to update invoice", action)


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        number = await InvoiceService(db).delete(actor, invoice_id)
        return {"success": f"Invoice {number} deleted", "invoice_id": invoice_id}

    return await run_action(db, "Failed to delete invoice", action)


@router.post("/{invoice_id}/send")
async def send_invoice(invoice_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        invoice = await InvoiceService(db).send(actor, invoice_id)
        return {"success": "Invoice sent", "invoice_id": invoice.id, "invoice": dump(InvoiceResponse, invoice)}

    return await run_action(db, "Failed to send invoice", action)


@router.post("/{invoice_id}/cancel")
async def cancel_invoice(invoice_id: UUID, db: DB, actor: CurrentActor, cancel_in: Optional[CancelRequest] = None):
    """
    Cancel an invoice.

    Reverses every payment allocation and credit note application against
    it. Refused for invoices dated inside a locked GST period.
    """
    async def action():
        invoice, reversed_counts = await InvoiceService(db).cancel(
            actor, invoice_id, cancel_in.reason if cancel_in else None
        )
        return {
            "success": "Invoice cancelled",
            "invoice_id": invoice.id,
            "reversed_allocations": reversed_counts["payment_allocations"],
            "reversed_credit_notes": reversed_counts["note_applications"],
            "invoice": dump(InvoiceResponse, invoice),
        }

    return await run_action(db, "Failed to cancel invoice", action)
