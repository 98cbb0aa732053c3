"""
Document Sequence Model for Gap-Free Number Generation

NUMBERING:
━━━━━━━━━━
• One counter per (team, document type, calendar year)
• Continuous within the year, restarts at 1 in January
• Incremented under a row lock inside the caller's transaction
• Format: {PREFIX}-{YYYY}-{NNNN}

DOCUMENT FORMATS:
━━━━━━━━━━━━━━━━
• INV:  INV-2025-0001   (Invoice, prefix configurable per team)
• CN:   CN-2025-0001    (Credit Note)
• DN:   DN-2025-0001    (Debit Note)
• BILL: BILL-2025-0001  (Supplier Bill)
• QT:   QT-2025-0001    (Quotation)
• RCP:  RCP-2025-0001   (Customer Receipt)
• PAY:  PAY-2025-0001   (Supplier Payment)

USAGE:
━━━━━━
    from gstbook.services.document_sequence_service import DocumentSequenceService

    async def create_invoice(db, team_id):
        service = DocumentSequenceService(db)
        number = await service.get_next_number(team_id, DocumentType.INVOICE)
        # Returns: INV-2025-0001
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gstbook.database import Base
from gstbook.db_types import UUIDType
from gstbook.models.common import utcnow


class DocumentType(str, Enum):
    """Document types that use sequence numbering."""
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"
    SUPPLIER_BILL = "SUPPLIER_BILL"
    QUOTATION = "QUOTATION"
    CUSTOMER_RECEIPT = "CUSTOMER_RECEIPT"
    SUPPLIER_PAYMENT = "SUPPLIER_PAYMENT"


DEFAULT_PREFIXES = {
    DocumentType.INVOICE.value: "INV",
    DocumentType.CREDIT_NOTE.value: "CN",
    DocumentType.DEBIT_NOTE.value: "DN",
    DocumentType.SUPPLIER_BILL.value: "BILL",
    DocumentType.QUOTATION.value: "QT",
    DocumentType.CUSTOMER_RECEIPT.value: "RCP",
    DocumentType.SUPPLIER_PAYMENT.value: "PAY",
}


class DocumentSequence(Base):
    """
    Per-team document counter.

    Example:
        document_type = "INVOICE"
        year = 2025
        last_number = 42
        → Next invoice number: INV-2025-0043
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint(
            "team_id", "document_type", "year",
            name="uq_document_sequence_team_type_year"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    team_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    document_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="INVOICE, CREDIT_NOTE, DEBIT_NOTE, SUPPLIER_BILL, QUOTATION, CUSTOMER_RECEIPT, SUPPLIER_PAYMENT"
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Sequence Counter
    last_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last used sequence number"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<DocumentSequence({self.document_type}/{self.year}: {self.last_number})>"
