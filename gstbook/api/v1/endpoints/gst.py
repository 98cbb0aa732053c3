"""
API endpoints for GST: period summaries, returns and period locks.

Filing a return locks its period. Invoices and bills dated inside a locked
period can no longer be cancelled; corrections go through credit and
debit notes instead.
"""
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from gstbook.api.actions import run_action
from gstbook.api.deps import DB, CurrentActor
from gstbook.core.exceptions import ValidationError
from gstbook.schemas.base import dump
from gstbook.schemas.gst import (
    GstReturnAmend,
    GstReturnCreate,
    GstReturnFile,
    GstReturnResponse,
    PeriodLockCreate,
    PeriodLockResponse,
)
from gstbook.services.gst_service import GstService

router = APIRouter()


# ==================== SUMMARIES ====================

@router.get("/summary")
async def get_gst_summary(
    db: DB,
    actor: CurrentActor,
    period_start: date = Query(...),
    period_end: date = Query(...),
):
    """Output GST, input GST and net payable for any date range."""
    if period_end < period_start:
        raise ValidationError("period_end must be on or after period_start")
    service = GstService(db)
    summary = await service.calculate_gst_for_period(actor.team_id, period_start, period_end)
    return {
        "period_start": period_start.isoformat(),
        "period_end": period_end.isoformat(),
        "is_locked": await service.is_period_locked(actor.team_id, period_start, period_end),
        **summary.as_dict(),
    }


@router.get("/summary/current")
async def get_current_gst_summary(db: DB, actor: CurrentActor):
    summary = await GstService(db).get_current_period_summary(actor.team_id)
    return summary.as_dict()


# ==================== RETURNS ====================

@router.get("/returns")
async def list_gst_returns(db: DB, actor: CurrentActor):
    returns = await GstService(db).get_returns(actor.team_id)
    return {"items": [dump(GstReturnResponse, r) for r in returns], "total": len(returns)}


@router.get("/returns/{return_id}")
async def get_gst_return(return_id: UUID, db: DB, actor: CurrentActor):
    return dump(GstReturnResponse, await GstService(db).get_return(actor.team_id, return_id))


@router.post("/returns", status_code=status.HTTP_201_CREATED)
async def create_gst_return(return_in: GstReturnCreate, db: DB, actor: CurrentActor):
    """Draft a return from the period's invoices and bills."""
    async def action():
        gst_return = await GstService(db).create_return(
            actor, return_in.period_start, return_in.period_end, return_in.return_type, return_in.notes
        )
        return {
            "success": "GST return created",
            "return_id": gst_return.id,
            "return_number": gst_return.return_number,
            "gst_return": dump(GstReturnResponse, gst_return),
        }

    return await run_action(db, "Failed to create GST return", action, success_status=status.HTTP_201_CREATED)


@router.post("/returns/{return_id}/file")
async def file_gst_return(return_id: UUID, file_in: GstReturnFile, db: DB, actor: CurrentActor):
    """File a draft return and lock its period. Team owners only."""
    async def action():
        gst_return = await GstService(db).file_return(
            actor,
            return_id,
            file_in.filing_date,
            adjustments=file_in.adjustments,
            previous_period_balance=file_in.previous_period_balance,
            penalties=file_in.penalties,
            interest=file_in.interest,
            notes=file_in.notes,
        )
        return {
            "success": "GST return filed",
            "return_id": gst_return.id,
            "gst_return": dump(GstReturnResponse, gst_return),
        }

    return await run_action(db, "Failed to file GST return", action)


@router.post("/returns/{return_id}/amend")
async def amend_gst_return(return_id: UUID, amend_in: GstReturnAmend, db: DB, actor: CurrentActor):
    async def action():
        gst_return = await GstService(db).amend_return(actor, return_id, amend_in.adjustments, amend_in.reason)
        return {
            "success": "GST return amended",
            "return_id": gst_return.id,
            "gst_return": dump(GstReturnResponse, gst_return),
        }

    return await run_action(db, "Failed to amend GST return", action)


@router.delete("/returns/{return_id}")
async def delete_gst_return(return_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        number = await GstService(db).delete_return(actor, return_id)
        return {"success": f"GST return {number} deleted", "return_id": return_id}

    return await run_action(db, "Failed to delete GST return", action)


# ==================== PERIOD LOCKS ====================

@router.get("/locks")
async def list_period_locks(db: DB, actor: CurrentActor):
    locks = await GstService(db).get_period_locks(actor.team_id)
    return {"items": [dump(PeriodLockResponse, lock) for lock in locks], "total": len(locks)}


@router.get("/locks/check")
async def check_period_lock(db: DB, actor: CurrentActor, day: date = Query(..., alias="date")):
    lock = await GstService(db).get_lock_for_date(actor.team_id, day)
    return {
        "date": day.isoformat(),
        "is_locked": lock is not None,
        "lock": dump(PeriodLockResponse, lock) if lock else None,
    }


@router.post("/locks", status_code=status.HTTP_201_CREATED)
async def create_period_lock(lock_in: PeriodLockCreate, db: DB, actor: CurrentActor):
    async def action():
        lock = await GstService(db).create_period_lock(
            actor, lock_in.period_start, lock_in.period_end, lock_in.period_type, lock_in.reason
        )
        return {"success": "Period locked", "lock_id": lock.id, "lock": dump(PeriodLockResponse, lock)}

    return await run_action(db, "Failed to lock period", action, success_status=status.HTTP_201_CREATED)


@router.delete("/locks/{lock_id}")
async def remove_period_lock(lock_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        await GstService(db).remove_period_lock(actor, lock_id)
        return {"success": "Period unlocked", "lock_id": lock_id}

    return await run_action(db, "Failed to unlock period", action)
