from typing import Optional, Dict, Any, List, Union
import uuid
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from gstbook.core.enum_utils import get_enum_value
from gstbook.models.audit_log import ActivityLog, ActivityType


class ActivityLogService:
    """
    Activity log for financial mutations.

    Rows are added to the caller's session and committed (or rolled back)
    together with the change they describe.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        team_id: uuid.UUID,
        action: Union[str, ActivityType],
        user_id: Optional[uuid.UUID] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> ActivityLog:
        """
        Append an activity log entry.

        Args:
            team_id: Team the change belongs to
            action: ActivityType value, e.g. CREATE_INVOICE
            user_id: Acting user
            entity_type: INVOICE, CREDIT_NOTE, ...
            entity_id: ID of the affected row
            description: Human-readable summary, usually the document number
            details: Extra JSON-serialisable context
        """
        entry = ActivityLog(
            team_id=team_id,
            user_id=user_id,
            action=get_enum_value(action),
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
            ip_address=ip_address,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def get_activity(
        self,
        team_id: uuid.UUID,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        action: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[ActivityLog], int]:
        """
        Get a team's activity with filtering.
        """
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.team_id == team_id)
            .order_by(ActivityLog.created_at.desc())
        )

        if entity_type:
            stmt = stmt.where(ActivityLog.entity_type == entity_type)
        if entity_id:
            stmt = stmt.where(ActivityLog.entity_id == entity_id)
        if user_id:
            stmt = stmt.where(ActivityLog.user_id == user_id)
        if action:
            stmt = stmt.where(ActivityLog.action == action)
        if start_date:
            stmt = stmt.where(ActivityLog.created_at >= start_date)
        if end_date:
            stmt = stmt.where(ActivityLog.created_at <= end_date)

        # Count total
        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar()

        # Get paginated results
        stmt = stmt.offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        logs = result.scalars().all()

        return list(logs), total
