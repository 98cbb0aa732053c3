"""Sales invoice models."""
import uuid
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Date, ForeignKey, Text, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gstbook.database import Base
from gstbook.db_types import UUIDType
from gstbook.models.common import DocumentMixin, PayableMixin, LineItemMixin

if TYPE_CHECKING:
    from gstbook.models.team import Customer


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"          # System only: amount_due reached zero
    CANCELLED = "CANCELLED"


class Invoice(DocumentMixin, PayableMixin, Base):
    """
    Sales invoice.

    Numbered on creation, locked once sent, and balanced by customer
    payments and credit note applications.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("team_id", "invoice_number", name="uq_invoice_team_number"),
        Index("ix_invoices_team_date", "team_id", "invoice_date"),
    )

    invoice_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="e.g. INV-2025-0001"
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_terms: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    customer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    quotation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        nullable=True,
        comment="Quotation this invoice was converted from"
    )

    # Relationships
    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.sort_order",
        lazy="selectin"
    )
    customer: Mapped["Customer"] = relationship("Customer", lazy="joined")

    @property
    def is_paid(self) -> bool:
        return self.amount_due <= 0

    def __repr__(self) -> str:
        return f"<Invoice(number='{self.invoice_number}', status='{self.status}')>"


class InvoiceItem(LineItemMixin, Base):
    """Invoice line item."""
    __tablename__ = "invoice_items"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")
