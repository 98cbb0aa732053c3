"""Activity log API endpoints."""
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from gstbook.api.deps import DB, CurrentActor
from gstbook.schemas.activity import ActivityLogResponse
from gstbook.schemas.base import dump
from gstbook.services.audit_service import ActivityLogService

router = APIRouter()


@router.get("")
async def list_activity(
    db: DB,
    actor: CurrentActor,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    user_id: Optional[UUID] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """
    List the team's activity, newest first.

    Filters:
    - action: activity type (CREATE_INVOICE, FILE_GST_RETURN, etc.)
    - entity_type/entity_id: one document or payment
    - start_date/end_date: inclusive date range
    """
    logs, total = await ActivityLogService(db).get_activity(
        actor.team_id,
        entity_type=entity_type.upper() if entity_type else None,
        entity_id=entity_id,
        user_id=user_id,
        action=action.upper() if action else None,
        start_date=datetime.combine(start_date, datetime.min.time()) if start_date else None,
        end_date=datetime.combine(end_date, datetime.max.time()) if end_date else None,
        skip=skip,
        limit=limit,
    )
    return {"items": [dump(ActivityLogResponse, log) for log in logs], "total": total, "skip": skip, "limit": limit}
