"""
API endpoints for credit notes.

A credit note is drafted, issued, and then either applied to the customer's
open invoices, refunded, or cancelled while still untouched.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from gstbook.api.actions import run_action
from gstbook.api.deps import DB, CurrentActor
from gstbook.core.money import format_money
from gstbook.schemas.base import dump
from gstbook.schemas.document import (
    CancelRequest,
    CreditNoteCreate,
    CreditNoteResponse,
    CreditNoteUpdate,
    NoteApply,
)
from gstbook.services.credit_note_service import CreditNoteService
from gstbook.services.ledger_service import LedgerService

router = APIRouter()


@router.get("")
async def list_credit_notes(
    db: DB,
    actor: CurrentActor,
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    notes, total = await CreditNoteService(db).list(actor.team_id, status_filter, customer_id, skip, limit)
    return {"items": [dump(CreditNoteResponse, n) for n in notes], "total": total, "skip": skip, "limit": limit}


@router.get("/{credit_note_id}")
async def get_credit_note(credit_note_id: UUID, db: DB, actor: CurrentActor):
    return dump(CreditNoteResponse, await CreditNoteService(db).get(actor.team_id, credit_note_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_credit_note(note_in: CreditNoteCreate, db: DB, actor: CurrentActor):
    async def action():
        note = await CreditNoteService(db).create(actor, note_in.model_dump())
        return {
            "success": "Credit note created",
            "credit_note_id": note.id,
            "credit_note_number": note.credit_note_number,
            "credit_note": dump(CreditNoteResponse, note),
        }

    return await run_action(db, "Failed to create credit note", action, success_status=status.HTTP_201_CREATED)


@router.put("/{credit_note_id}")
async def update_credit_note(credit_note_id: UUID, note_in: CreditNoteUpdate, db: DB, actor: CurrentActor):
    async def action():
        note = await CreditNoteService(db).update(actor, credit_note_id, note_in.model_dump(exclude_unset=True))
        return {"success": "Credit note updated", "credit_note_id": note.id, "credit_note": dump(CreditNoteResponse, note)}

    return await run_action(db, "Failed to update credit note", action)


@router.delete("/{credit_note_id}")
async def delete_credit_note(credit_note_id: UUID, db: DB, actor: CurrentActor):
    """Delete a draft credit note. Admins and owners only."""
    async def action():
        number = await CreditNoteService(db).delete(actor, credit_note_id)
        return {"success": f"Credit note {number} deleted", "credit_note_id": credit_note_id}

    return await run_action(db, "Failed to delete credit note", action)


@router.post("/{credit_note_id}/issue")
async def issue_credit_note(credit_note_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        note = await CreditNoteService(db).issue(actor, credit_note_id)
        return {"success": "Credit note issued", "credit_note_id": note.id, "credit_note": dump(CreditNoteResponse, note)}

    return await run_action(db, "Failed to issue credit note", action)


@router.post("/{credit_note_id}/apply")
async def apply_credit_note(credit_note_id: UUID, apply_in: NoteApply, db: DB, actor: CurrentActor):
    """Apply part of the unapplied balance to one of the customer's invoices."""
    async def action():
        application = await LedgerService(db).apply_credit_note(
            actor, credit_note_id, apply_in.target_id, apply_in.amount, apply_in.application_date
        )
        note = await CreditNoteService(db).get(actor.team_id, credit_note_id)
        return {
            "success": "Credit note applied",
            "credit_note_id": note.id,
            "invoice_id": application.invoice_id,
            "application_id": application.id,
            "applied_amount": format_money(application.applied_amount),
            "credit_note": dump(CreditNoteResponse, note),
        }

    return await run_action(db, "Failed to apply credit note", action)


@router.post("/{credit_note_id}/refund")
async def refund_credit_note(credit_note_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        note = await CreditNoteService(db).refund(actor, credit_note_id)
        return {
            "success": "Credit note refunded",
            "credit_note_id": note.id,
            "refunded_amount": format_money(note.refunded_amount),
            "credit_note": dump(CreditNoteResponse, note),
        }

    return await run_action(db, "Failed to refund credit note", action)


@router.post("/{credit_note_id}/cancel")
async def cancel_credit_note(credit_note_id: UUID, db: DB, actor: CurrentActor, cancel_in: Optional[CancelRequest] = None):
    async def action():
        note = await CreditNoteService(db).cancel(actor, credit_note_id, cancel_in.reason if cancel_in else None)
        return {"success": "Credit note cancelled", "credit_note_id": note.id, "credit_note": dump(CreditNoteResponse, note)}

    return await run_action(db, "Failed to cancel credit note", action)
