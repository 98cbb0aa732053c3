"""API endpoints for quotations and their conversion to invoices."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from gstbook.api.actions import run_action
from gstbook.api.deps import DB, CurrentActor
from gstbook.schemas.base import dump
from gstbook.schemas.document import (
    InvoiceResponse,
    QuotationConvert,
    QuotationCreate,
    QuotationResponse,
    QuotationStatusUpdate,
    QuotationUpdate,
)
from gstbook.services.quotation_service import QuotationService

router = APIRouter()


@router.get("")
async def list_quotations(
    db: DB,
    actor: CurrentActor,
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    quotations, total = await QuotationService(db).list(actor.team_id, status_filter, customer_id, skip, limit)
    return {"items": [dump(QuotationResponse, q) for q in quotations], "total": total, "skip": skip, "limit": limit}


@router.get("/{quotation_id}")
async def get_quotation(quotation_id: UUID, db: DB, actor: CurrentActor):
    return dump(QuotationResponse, await QuotationService(db).get(actor.team_id, quotation_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_quotation(quotation_in: QuotationCreate, db: DB, actor: CurrentActor):
    async def action():
        quotation = await QuotationService(db).create(actor, quotation_in.model_dump())
        return {
            "success": "Quotation created",
            "quotation_id": quotation.id,
            "quotation_number": quotation.quotation_number,
            "quotation": dump(QuotationResponse, quotation),
        }

    return await run_action(db, "Failed to create quotation", action, success_status=status.HTTP_201_CREATED)


@router.put("/{quotation_id}")
async def update_quotation(quotation_id: UUID, quotation_in: QuotationUpdate, db: DB, actor: CurrentActor):
    async def action():
        quotation = await QuotationService(db).update(
            actor, quotation_id, quotation_in.model_dump(exclude_unset=True)
        )
        return {"success": "Quotation updated", "quotation_id": quotation.id, "quotation": dump(QuotationResponse, quotation)}

    return await run_action(db, "Failed to update quotation", action)


@router.delete("/{quotation_id}")
async def delete_quotation(quotation_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        number = await QuotationService(db).delete(actor, quotation_id)
        return {"success": f"Quotation {number} deleted", "quotation_id": quotation_id}

    return await run_action(db, "Failed to delete quotation", action)


@router.put("/{quotation_id}/status")
async def update_quotation_status(quotation_id: UUID, status_in: QuotationStatusUpdate, db: DB, actor: CurrentActor):
    """Mark a quotation SENT, ACCEPTED, REJECTED or EXPIRED."""
    async def action():
        quotation = await QuotationService(db).update_status(actor, quotation_id, status_in.status)
        return {
            "success": f"Quotation marked {quotation.status.lower()}",
            "quotation_id": quotation.id,
            "quotation": dump(QuotationResponse, quotation),
        }

    return await run_action(db, "Failed to update quotation status", action)


@router.post("/{quotation_id}/convert")
async def convert_quotation(
    quotation_id: UUID,
    db: DB,
    actor: CurrentActor,
    convert_in: Optional[QuotationConvert] = None,
):
    """Create a draft invoice from an accepted quotation."""
    async def action():
        quotation, invoice = await QuotationService(db).convert(
            actor, quotation_id, convert_in.invoice_date if convert_in else None
        )
        return {
            "success": "Quotation converted to invoice",
            "quotation_id": quotation.id,
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "invoice": dump(InvoiceResponse, invoice),
        }

    return await run_action(db, "Failed to convert quotation", action)
