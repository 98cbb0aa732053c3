"""Debit note models.

A debit note reduces what the team owes a supplier. Once issued its balance
is applied against the supplier's bills; every application is recorded as
a DebitNoteApplication row.
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
    from gstbook.models.supplier_bill import SupplierBill
    from gstbook.models.team import Supplier


class DebitNote(NoteMixin, DocumentMixin, Base):
    __tablename__ = "debit_notes"
    __table_args__ = (
        UniqueConstraint("team_id", "debit_note_number", name="uq_debit_note_team_number"),
        Index("ix_debit_notes_team_date", "team_id", "debit_note_date"),
    )

    debit_note_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="e.g. DN-2025-0001"
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    bill_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("supplier_bills.id", ondelete="SET NULL"),
        nullable=True,
        comment="Bill this note was raised against"
    )
    debit_note_date: Mapped[date] = mapped_column(Date, nullable=False)

    items: Mapped[List["DebitNoteItem"]] = relationship(
        "DebitNoteItem",
        back_populates="debit_note",
        cascade="all, delete-orphan",
        order_by="DebitNoteItem.sort_order",
        lazy="selectin"
    )
    applications: Mapped[List["DebitNoteApplication"]] = relationship(
        "DebitNoteApplication",
        back_populates="debit_note",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    supplier: Mapped["Supplier"] = relationship("Supplier", lazy="joined")
    bill: Mapped[Optional["SupplierBill"]] = relationship("SupplierBill", foreign_keys=[bill_id])

    def __repr__(self) -> str:
        return f"<DebitNote(number='{self.debit_note_number}', status='{self.status}')>"


class DebitNoteItem(LineItemMixin, Base):
    __tablename__ = "debit_note_items"

    debit_note_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("debit_notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    debit_note: Mapped["DebitNote"] = relationship("DebitNote", back_populates="items")


class DebitNoteApplication(Base):
    """Part of a debit note's balance applied against a supplier bill."""
    __tablename__ = "debit_note_applications"

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
    debit_note_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("debit_notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    bill_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("supplier_bills.id", ondelete="CASCADE"),
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

    debit_note: Mapped["DebitNote"] = relationship("DebitNote", back_populates="applications")
