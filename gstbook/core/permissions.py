from dataclasses import dataclass
from typing import Optional, Union
import uuid

from gstbook.core.enum_utils import get_enum_value
from gstbook.core.exceptions import PermissionDeniedError
from gstbook.models.team import ROLE_LEVELS, TeamRole


def get_level_value(role: Union[str, TeamRole, None]) -> int:
    """Convert a role to its hierarchy value (OWNER=0 is highest).

    Unknown roles rank below MEMBER.
    """
    return ROLE_LEVELS.get(get_enum_value(role) or "", len(ROLE_LEVELS))


@dataclass(frozen=True)
class Actor:
    """
    The caller of a financial action: the team it acts for, the user, and
    the user's role in that team.
    """
    team_id: uuid.UUID
    user_id: Optional[uuid.UUID]
    role: str = TeamRole.MEMBER.value

    def has_role(self, required: Union[str, TeamRole]) -> bool:
        """True if the actor's role is at least ``required``."""
        return get_level_value(self.role) <= get_level_value(required)

    def require_role(self, required: Union[str, TeamRole], action: str = "perform this action") -> None:
        if not self.has_role(required):
            raise PermissionDeniedError(
                f"Only team {get_enum_value(required).lower()}s can {action}",
                details={"required_role": get_enum_value(required), "role": self.role},
            )

    @property
    def is_owner(self) -> bool:
        return self.role == TeamRole.OWNER.value
