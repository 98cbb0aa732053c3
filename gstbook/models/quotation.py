"""Quotation models."""
import uuid
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Date, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gstbook.database import Base
from gstbook.db_types import UUIDType
from gstbook.models.common import DocumentMixin, LineItemMixin

if TYPE_CHECKING:
    from gstbook.models.team import Customer


class QuotationStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CONVERTED = "CONVERTED"    # Set only by converting into an invoice


class Quotation(DocumentMixin, Base):
    """
    Priced offer to a customer. An accepted quotation converts into a draft
    invoice carrying the same lines and totals.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        UniqueConstraint("team_id", "quotation_number", name="uq_quotation_team_number"),
    )

    quotation_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="e.g. QT-2025-0001"
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    quotation_date: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    customer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Conversion
    converted_invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True
    )
    converted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[List["QuotationItem"]] = relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.sort_order",
        lazy="selectin"
    )
    customer: Mapped["Customer"] = relationship("Customer", lazy="joined")

    def __repr__(self) -> str:
        return f"<Quotation(number='{self.quotation_number}', status='{self.status}')>"


class QuotationItem(LineItemMixin, Base):
    __tablename__ = "quotation_items"

    quotation_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    quotation: Mapped["Quotation"] = relationship("Quotation", back_populates="items")
