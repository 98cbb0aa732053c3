"""Credit note models.

A credit note reduces what a customer owes. Once issued its balance is
applied against one or more of the customer's invoices; every application
is recorded as a CreditNoteApplication row.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Date, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gstbook.database import Base
from gstbook.db_types import UUIDType, Money
from gstbook.models.common import DocumentMixin, NoteMixin, LineItemMixin, utcnow

if TYPE_CHECKING:
    from gstbook.models.invoice import Invoice
    from gstbook.models.team import Customer


class CreditNote(NoteMixin, DocumentMixin, Base):
    __tablename__ = "credit_notes"
    __table_args__ = (
        UniqueConstraint("team_id", "credit_note_number", name="uq_credit_note_team_number"),
        Index("ix_credit_notes_team_date", "team_id", "credit_note_date"),
    )

    credit_note_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="e.g. CN-2025-0001"
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        comment="Invoice this note was raised against"
    )
    credit_note_date: Mapped[date] = mapped_column(Date, nullable=False)

    items: Mapped[List["CreditNoteItem"]] = relationship(
        "CreditNoteItem",
        back_populates="credit_note",
        cascade="all, delete-orphan",
        order_by="CreditNoteItem.sort_order",
        lazy="selectin"
    )
    applications: Mapped[List["CreditNoteApplication"]] = relationship(
        "CreditNoteApplication",
        back_populates="credit_note",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    customer: Mapped["Customer"] = relationship("Customer", lazy="joined")
    invoice: Mapped[Optional["Invoice"]] = relationship("Invoice", foreign_keys=[invoice_id])

    def __repr__(self) -> str:
        return f"<CreditNote(number='{self.credit_note_number}', status='{self.status}')>"


class CreditNoteItem(LineItemMixin, Base):
    __tablename__ = "credit_note_items"

    credit_note_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("credit_notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    credit_note: Mapped["CreditNote"] = relationship("CreditNote", back_populates="items")


class CreditNoteApplication(Base):
    """Part of a credit note's balance applied against an invoice."""
    __tablename__ = "credit_note_applications"

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
    credit_note_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("credit_notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    applied_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    application_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    credit_note: Mapped["CreditNote"] = relationship("CreditNote", back_populates="applications")
