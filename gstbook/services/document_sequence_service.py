"""
Document Sequence Service for Gap-Free Number Generation

NUMBERING RULES:
- One counter per (team, document type, calendar year)
- Dense within the year: numbers issued are exactly 1..last_number
- The increment runs inside the caller's transaction, so a rollback of the
  document insert un-consumes the number as well
- Format: {PREFIX}-{YYYY}-{NNNN}

USAGE:
    from gstbook.services.document_sequence_service import DocumentSequenceService

    async def create_invoice(db: AsyncSession, team_id):
        service = DocumentSequenceService(db)
        number = await service.get_next_number(team_id, "INVOICE", year=2025)
        # Returns: INV-2025-0001

SUPPORTED DOCUMENT TYPES:
    INVOICE          - INV
    CREDIT_NOTE      - CN
    DEBIT_NOTE       - DN
    SUPPLIER_BILL    - BILL
    QUOTATION        - QT
    CUSTOMER_RECEIPT - RCP
    SUPPLIER_PAYMENT - PAY
"""

import logging
import re
import uuid
from datetime import date
from typing import Optional, Tuple, Union

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from gstbook.core.enum_utils import get_enum_value
from gstbook.core.exceptions import ValidationError
from gstbook.models.common import utcnow
from gstbook.models.document_sequence import DocumentSequence, DocumentType, DEFAULT_PREFIXES


logger = logging.getLogger(__name__)

PADDING = 4

_NUMBER_PATTERN = re.compile(r"^(?P<prefix>.+)-(?P<year>\d{4})-(?P<number>\d{4,})$")


def format_document_number(prefix: str, year: int, number: int) -> str:
    """
    Format a document number.

    Examples:
        >>> format_document_number("INV", 2025, 7)
        'INV-2025-0007'
        >>> format_document_number("INV", 2025, 12345)
        'INV-2025-12345'
    """
    return f"{prefix}-{year}-{str(number).zfill(PADDING)}"


def parse_document_number(document_number: str) -> Tuple[str, int, int]:
    """Split ``PREFIX-YYYY-NNNN`` into (prefix, year, number)."""
    match = _NUMBER_PATTERN.match(document_number or "")
    if not match:
        raise ValidationError(f"Invalid document number '{document_number}'")
    return match.group("prefix"), int(match.group("year")), int(match.group("number"))


class DocumentSequenceService:
    """
    Service for minting document numbers.

    The counter row is incremented with a single UPDATE ... RETURNING, which
    takes the row lock and holds it until the surrounding transaction ends.
    Two transactions minting for the same (team, type, year) therefore run
    one after the other and can never read the same value.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _validate_type(document_type: Union[str, DocumentType]) -> str:
        doc_type = get_enum_value(document_type).upper()
        if doc_type not in DEFAULT_PREFIXES:
            valid_types = ", ".join(DEFAULT_PREFIXES.keys())
            raise ValidationError(f"Invalid document type '{doc_type}'. Valid types: {valid_types}")
        return doc_type

    @staticmethod
    def _resolve_year(year: Optional[int]) -> int:
        return year or date.today().year

    async def _ensure_sequence_row(self, team_id: uuid.UUID, doc_type: str, year: int) -> None:
        """Insert the counter row at zero unless it already exists."""
        dialect = self.db.get_bind().dialect.name
        insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
        now = utcnow()
        stmt = (
            insert_fn(DocumentSequence)
            .values(
                id=uuid.uuid4(),
                team_id=team_id,
                document_type=doc_type,
                year=year,
                last_number=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["team_id", "document_type", "year"])
        )
        await self.db.execute(stmt)

    async def get_next_number(
        self,
        team_id: uuid.UUID,
        document_type: Union[str, DocumentType],
        year: Optional[int] = None,
        prefix: Optional[str] = None,
    ) -> str:
        """
        Mint the next document number.

        Args:
            team_id: Owning team
            document_type: Document type code (INVOICE, CREDIT_NOTE, ...)
            year: Calendar year of the document, defaults to the current year
            prefix: Overrides the default prefix for the type

        Returns:
            Formatted document number, e.g. INV-2025-0001
        """
        doc_type = self._validate_type(document_type)
        year = self._resolve_year(year)

        await self._ensure_sequence_row(team_id, doc_type, year)

        result = await self.db.execute(
            update(DocumentSequence)
            .where(
                DocumentSequence.team_id == team_id,
                DocumentSequence.document_type == doc_type,
                DocumentSequence.year == year,
            )
            .values(last_number=DocumentSequence.last_number + 1, updated_at=utcnow())
            .returning(DocumentSequence.last_number)
            .execution_options(synchronize_session=False)
        )
        number = result.scalar_one()

        document_number = format_document_number(prefix or DEFAULT_PREFIXES[doc_type], year, number)
        logger.debug("Minted %s for team %s", document_number, team_id)
        return document_number

    async def get_current_number(
        self,
        team_id: uuid.UUID,
        document_type: Union[str, DocumentType],
        year: Optional[int] = None,
    ) -> int:
        """Last issued number, 0 if nothing was issued yet."""
        doc_type = self._validate_type(document_type)
        year = self._resolve_year(year)

        result = await self.db.execute(
            select(DocumentSequence.last_number)
            .where(
                DocumentSequence.team_id == team_id,
                DocumentSequence.document_type == doc_type,
                DocumentSequence.year == year,
            )
        )
        current = result.scalar_one_or_none()
        return current or 0

    async def preview_next_number(
        self,
        team_id: uuid.UUID,
        document_type: Union[str, DocumentType],
        year: Optional[int] = None,
        prefix: Optional[str] = None,
    ) -> str:
        """
        What the next number would be, without consuming it.

        Only a hint for forms: a concurrent mint can take it first.
        """
        doc_type = self._validate_type(document_type)
        year = self._resolve_year(year)
        current = await self.get_current_number(team_id, doc_type, year)
        return format_document_number(prefix or DEFAULT_PREFIXES[doc_type], year, current + 1)

    async def initialize_sequence(
        self,
        team_id: uuid.UUID,
        document_type: Union[str, DocumentType],
        starting_number: int = 0,
        year: Optional[int] = None,
    ) -> DocumentSequence:
        """
        Seed or reset a counter, e.g. when migrating existing documents.

        The next minted number will be ``starting_number + 1``.
        """
        doc_type = self._validate_type(document_type)
        year = self._resolve_year(year)
        if starting_number < 0:
            raise ValidationError("Starting number cannot be negative")

        await self._ensure_sequence_row(team_id, doc_type, year)

        result = await self.db.execute(
            select(DocumentSequence)
            .where(
                DocumentSequence.team_id == team_id,
                DocumentSequence.document_type == doc_type,
                DocumentSequence.year == year,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        sequence = result.scalar_one()
        sequence.last_number = starting_number
        await self.db.flush()

        logger.info(
            "Sequence %s/%s for team %s set to %d", doc_type, year, team_id, starting_number
        )
        return sequence
