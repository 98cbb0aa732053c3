"""Shared enums and column mixins for the financial document family.

Invoices, supplier bills, credit notes, debit notes and quotations are
structurally identical: a header carrying decimal totals plus an ordered
list of line items. The mixins below hold the shared columns; each document
type adds its own number/date/counterparty columns and status vocabulary.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from gstbook.db_types import UUIDType, Money, Rate, Quantity, UnitPrice


class Currency(str, Enum):
    """One currency per document, no mixed-currency documents."""
    BTN = "BTN"
    INR = "INR"
    USD = "USD"


class PaymentStatus(str, Enum):
    """Derived from amount_paid/amount_due, never set directly."""
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class GstClassification(str, Enum):
    """Per-line tax treatment, stored on the line since rates change."""
    STANDARD = "STANDARD"        # Taxed at the normal rate
    ZERO_RATED = "ZERO_RATED"    # Taxed at 0%, still eligible for input credit
    EXEMPT = "EXEMPT"            # Not taxed, no input credit


class NoteStatus(str, Enum):
    """Credit note / debit note status."""
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PARTIAL = "PARTIAL"      # Derived: some of the balance applied
    APPLIED = "APPLIED"      # Derived: unapplied balance reached zero
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentMixin:
    """Header columns shared by every financial document."""

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

    currency: Mapped[str] = mapped_column(String(3), default=Currency.BTN.value, nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default="DRAFT",
        nullable=False,
        index=True
    )

    # Totals
    subtotal: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    total_discount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    total_tax: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Audit
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
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


class PayableMixin:
    """Balance and lock columns for documents that receive payments."""

    amount_paid: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    amount_due: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.UNPAID.value,
        nullable=False,
        comment="UNPAID, PARTIAL, PAID"
    )

    # Locked once the document leaves DRAFT
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    # Cancellation
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    cancelled_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)


class NoteMixin:
    """Balance columns for credit/debit notes."""

    status: Mapped[str] = mapped_column(
        String(50),
        default=NoteStatus.DRAFT.value,
        nullable=False,
        index=True,
        comment="DRAFT, ISSUED, PARTIAL, APPLIED, REFUNDED, CANCELLED"
    )
    applied_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    unapplied_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    refunded_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)

    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class LineItemMixin:
    """Line item columns. Items are replaced wholesale on edit."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(UnitPrice, nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(Rate, default=Decimal("0"), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Rate, default=Decimal("0"), nullable=False)
    is_tax_exempt: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    gst_classification: Mapped[str] = mapped_column(
        String(20),
        default=GstClassification.STANDARD.value,
        nullable=False,
        comment="STANDARD, ZERO_RATED, EXEMPT"
    )

    # Computed amounts (each rounded once, half-up, 2dp)
    line_total: Mapped[Decimal] = mapped_column(Money, nullable=False, comment="quantity x unit_price")
    discount_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    item_total: Mapped[Decimal] = mapped_column(Money, nullable=False)

    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    @property
    def taxable_amount(self) -> Decimal:
        return self.line_total - self.discount_amount
