"""API endpoints for debit notes raised against suppliers."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from gstbook.api.actions import run_action
from gstbook.api.deps import DB, CurrentActor
from gstbook.core.money import format_money
from gstbook.schemas.base import dump
from gstbook.schemas.document import (
    CancelRequest,
    DebitNoteCreate,
    DebitNoteResponse,
    DebitNoteUpdate,
    NoteApply,
)
from gstbook.services.debit_note_service import DebitNoteService
from gstbook.services.ledger_service import LedgerService

router = APIRouter()


@router.get("")
async def list_debit_notes(
    db: DB,
    actor: CurrentActor,
    status_filter: Optional[str] = Query(None, alias="status"),
    supplier_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    notes, total = await DebitNoteService(db).list(actor.team_id, status_filter, supplier_id, skip, limit)
    return {"items": [dump(DebitNoteResponse, n) for n in notes], "total": total, "skip": skip, "limit": limit}


@router.get("/{debit_note_id}")
async def get_debit_note(debit_note_id: UUID, db: DB, actor: CurrentActor):
    return dump(DebitNoteResponse, await DebitNoteService(db).get(actor.team_id, debit_note_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_debit_note(note_in: DebitNoteCreate, db: DB, actor: CurrentActor):
    async def action():
        note = await DebitNoteService(db).create(actor, note_in.model_dump())
        return {
            "success": "Debit note created",
            "debit_note_id": note.id,
            "debit_note_number": note.debit_note_number,
            "debit_note": dump(DebitNoteResponse, note),
        }

    return await run_action(db, "Failed to create debit note", action, success_status=status.HTTP_201_CREATED)


@router.put("/{debit_note_id}")
async def update_debit_note(debit_note_id: UUID, note_in: DebitNoteUpdate, db: DB, actor: CurrentActor):
    async def action():
        note = await DebitNoteService(db).update(actor, debit_note_id, note_in.model_dump(exclude_unset=True))
        return {"success": "Debit note updated", "debit_note_id": note.id, "debit_note": dump(DebitNoteResponse, note)}

    return await run_action(db, "Failed to update debit note", action)


@router.delete("/{debit_note_id}")
async def delete_debit_note(debit_note_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        number = await DebitNoteService(db).delete(actor, debit_note_id)
        return {"success": f"Debit note {number} deleted", "debit_note_id": debit_note_id}

    return await run_action(db, "Failed to delete debit note", action)


@router.post("/{debit_note_id}/issue")
async def issue_debit_note(debit_note_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        note = await DebitNoteService(db).issue(actor, debit_note_id)
        return {"success": "Debit note issued", "debit_note_id": note.id, "debit_note": dump(DebitNoteResponse, note)}

    return await run_action(db, "Failed to issue debit note", action)


@router.post("/{debit_note_id}/apply")
async def apply_debit_note(debit_note_id: UUID, apply_in: NoteApply, db: DB, actor: CurrentActor):
    async def action():
        application = await LedgerService(db).apply_debit_note(
            actor, debit_note_id, apply_in.target_id, apply_in.amount, apply_in.application_date
        )
        note = await DebitNoteService(db).get(actor.team_id, debit_note_id)
        return {
            "success": "Debit note applied",
            "debit_note_id": note.id,
            "bill_id": application.bill_id,
            "application_id": application.id,
            "applied_amount": format_money(application.applied_amount),
            "debit_note": dump(DebitNoteResponse, note),
        }

    return await run_action(db, "Failed to apply debit note", action)


@router.post("/{debit_note_id}/refund")
async def refund_debit_note(debit_note_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        note = await DebitNoteService(db).refund(actor, debit_note_id)
        return {
            "success": "Debit note refunded",
            "debit_note_id": note.id,
            "refunded_amount": format_money(note.refunded_amount),
            "debit_note": dump(DebitNoteResponse, note),
        }

    return await run_action(db, "Failed to refund debit note", action)


@router.post("/{debit_note_id}/cancel")
async def cancel_debit_note(debit_note_id: UUID, db: DB, actor: CurrentActor, cancel_in: Optional[CancelRequest] = None):
    async def action():
        note = await DebitNoteService(db).cancel(actor, debit_note_id, cancel_in.reason if cancel_in else None)
        return {"success": "Debit note cancelled", "debit_note_id": note.id, "debit_note": dump(DebitNoteResponse, note)}

    return await run_action(db, "Failed to cancel debit note", action)
