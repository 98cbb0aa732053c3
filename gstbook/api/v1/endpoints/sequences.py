"""Document number sequence endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from gstbook.api.actions import run_action
from gstbook.api.deps import DB, CurrentActor, require_team_role
from gstbook.models.document_sequence import DocumentType
from gstbook.models.team import TeamRole
from gstbook.schemas.activity import SequenceInitialize
from gstbook.services.document_sequence_service import DocumentSequenceService

router = APIRouter()


@router.get("/{document_type}/preview")
async def preview_next_number(
    document_type: DocumentType,
    db: DB,
    actor: CurrentActor,
    year: Optional[int] = Query(None, ge=2000, le=9999),
):
    """The number the next document of this type would get. Nothing is consumed."""
    service = DocumentSequenceService(db)
    return {
        "document_type": document_type.value,
        "next_number": await service.preview_next_number(actor.team_id, document_type, year),
        "current": await service.get_current_number(actor.team_id, document_type, year),
    }


@router.post("/initialize", dependencies=[Depends(require_team_role(TeamRole.OWNER))])
async def initialize_sequence(sequence_in: SequenceInitialize, db: DB, actor: CurrentActor):
    async def action():
        sequence = await DocumentSequenceService(db).initialize_sequence(
            actor.team_id, sequence_in.document_type, sequence_in.starting_number, sequence_in.year
        )
        return {
            "success": "Sequence initialized",
            "sequence_id": sequence.id,
            "document_type": sequence.document_type,
            "year": sequence.year,
            "last_number": sequence.last_number,
        }

    return await run_action(db, "Failed to initialize sequence", action)
