"""API endpoints for supplier bills."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from gstbook.api.actions import run_action
from gstbook.api.deps import DB, CurrentActor
from gstbook.schemas.base import dump
from gstbook.schemas.document import (
    CancelRequest,
    SupplierBillCreate,
    SupplierBillResponse,
    SupplierBillUpdate,
)
from gstbook.services.supplier_bill_service import SupplierBillService

router = APIRouter()


@router.get("")
async def list_bills(
    db: DB,
    actor: CurrentActor,
    status_filter: Optional[str] = Query(None, alias="status"),
    supplier_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    bills, total = await SupplierBillService(db).list(actor.team_id, status_filter, supplier_id, skip, limit)
    return {"items": [dump(SupplierBillResponse, b) for b in bills], "total": total, "skip": skip, "limit": limit}


@router.get("/{bill_id}")
async def get_bill(bill_id: UUID, db: DB, actor: CurrentActor):
    return dump(SupplierBillResponse, await SupplierBillService(db).get(actor.team_id, bill_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_bill(bill_in: SupplierBillCreate, db: DB, actor: CurrentActor):
    async def action():
        bill = await SupplierBillService(db).create(actor, bill_in.model_dump())
        return {
            "success": "Bill created",
            "bill_id": bill.id,
            "bill_number": bill.bill_number,
            "bill": dump(SupplierBillResponse, bill),
        }

    return await run_action(db, "Failed to create bill", action, success_status=status.HTTP_201_CREATED)


@router.put("/{bill_id}")
async def update_bill(bill_id: UUID, bill_in: SupplierBillUpdate, db: DB, actor: CurrentActor):
    async def action():
        bill = await SupplierBillService(db).update(actor, bill_id, bill_in.model_dump(exclude_unset=True))
        return {"success": "Bill updated", "bill_id": bill.id, "bill": dump(SupplierBillResponse, bill)}

    return await run_action(db, "Failed to update bill", action)


@router.delete("/{bill_id}")
async def delete_bill(bill_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        number = await SupplierBillService(db).delete(actor, bill_id)
        return {"success": f"Bill {number} deleted", "bill_id": bill_id}

    return await run_action(db, "Failed to delete bill", action)


@router.post("/{bill_id}/issue")
async def issue_bill(bill_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        bill = await SupplierBillService(db).issue(actor, bill_id)
        return {"success": "Bill issued", "bill_id": bill.id, "bill": dump(SupplierBillResponse, bill)}

    return await run_action(db, "Failed to issue bill", action)


@router.post("/{bill_id}/cancel")
async def cancel_bill(bill_id: UUID, db: DB, actor: CurrentActor, cancel_in: Optional[CancelRequest] = None):
    """Cancel a bill, reversing supplier payments and debit notes applied to it."""
    async def action():
        bill, reversed_counts = await SupplierBillService(db).cancel(
            actor, bill_id, cancel_in.reason if cancel_in else None
        )
        return {
            "success": "Bill cancelled",
            "bill_id": bill.id,
            "reversed_allocations": reversed_counts["payment_allocations"],
            "reversed_debit_notes": reversed_counts["note_applications"],
            "bill": dump(SupplierBillResponse, bill),
        }

    return await run_action(db, "Failed to cancel bill", action)
