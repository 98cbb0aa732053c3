"""Activity log and document sequence schemas."""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import Field

from gstbook.core.enum_utils import create_uppercase_validator
from gstbook.models.document_sequence import DocumentType
from gstbook.schemas.base import BaseCreateSchema, BaseResponseSchema


class ActivityLogResponse(BaseResponseSchema):
    id: UUID
    team_id: UUID
    user_id: Optional[UUID] = None
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    description: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class SequenceInitialize(BaseCreateSchema):
    """Seed a counter: the next number minted is ``starting_number + 1``."""
    document_type: DocumentType
    starting_number: int = Field(0, ge=0)
    year: Optional[int] = Field(None, ge=2000, le=9999)

    _normalize_type = create_uppercase_validator("document_type", {t.value for t in DocumentType})
