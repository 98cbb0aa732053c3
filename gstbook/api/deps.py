from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, HTTPException, Header, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gstbook.core.permissions import Actor, get_level_value
from gstbook.database import get_db
from gstbook.models.team import TeamMember, TeamRole


logger = logging.getLogger(__name__)


def _parse_uuid(value: Optional[str], header: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s header: %r", header, value)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing or invalid {header} header",
        )


async def get_current_actor(
    db: Annotated[AsyncSession, Depends(get_db)],
    x_team_id: Annotated[Optional[str], Header()] = None,
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> Actor:
    """
    Dependency resolving the caller from the headers set by the upstream
    auth layer.

    The role comes from the team membership row; a user that is not a
    member of the team is refused.
    """
    team_id = _parse_uuid(x_team_id, "X-Team-ID")
    user_id = _parse_uuid(x_user_id, "X-User-ID")

    result = await db.execute(
        select(TeamMember.role).where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user_id,
        )
    )
    role = result.scalar_one_or_none()
    if role is None:
        logger.warning("User %s is not a member of team %s", user_id, team_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a member of this team",
        )

    return Actor(team_id=team_id, user_id=user_id, role=role)


def require_team_role(role: TeamRole):
    """
    Dependency factory to require a minimum team role.

    Usage:
        @router.post("/locks", dependencies=[Depends(require_team_role(TeamRole.OWNER))])
        async def lock_period():
            ...
    """
    async def role_dependency(
        actor: Annotated[Actor, Depends(get_current_actor)]
    ):
        if get_level_value(actor.role) > get_level_value(role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient team role. Required: {role.value} or higher"
            )
        return True

    return role_dependency


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
