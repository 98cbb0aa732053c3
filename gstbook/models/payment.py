"""Customer receipts, supplier payments and their allocations.

A payment records money received from (or paid to) a counterparty. Its
amount is split across that counterparty's invoices (or bills) through
allocation rows; whatever is not allocated stays on the payment as an
advance that can be allocated later.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gstbook.database import Base
from gstbook.db_types import UUIDType, Money
from gstbook.models.common import Currency, utcnow


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    CARD = "CARD"
    UPI = "UPI"
    MOBILE_WALLET = "MOBILE_WALLET"
    OTHER = "OTHER"


class PaymentMixin:
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

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(50),
        default=PaymentMethod.BANK_TRANSFER.value,
        nullable=False,
        comment="CASH, BANK_TRANSFER, CHEQUE, CARD, UPI, MOBILE_WALLET, OTHER"
    )
    currency: Mapped[str] = mapped_column(String(3), default=Currency.BTN.value, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    unallocated_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)

    reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Cheque number / UTR / transaction ID"
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Reversal (document cancellation)
    reversed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reversed_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

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


class CustomerPayment(PaymentMixin, Base):
    """Money received from a customer."""
    __tablename__ = "customer_payments"
    __table_args__ = (
        UniqueConstraint("team_id", "receipt_number", name="uq_customer_payment_team_receipt"),
    )

    receipt_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="e.g. RCP-2025-0001"
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    allocations: Mapped[List["PaymentAllocation"]] = relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<CustomerPayment(number='{self.receipt_number}', amount={self.amount})>"


class PaymentAllocation(Base):
    """Part of a customer payment allocated to one invoice."""
    __tablename__ = "payment_allocations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    payment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("customer_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    allocated_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    payment: Mapped["CustomerPayment"] = relationship("CustomerPayment", back_populates="allocations")


class SupplierPayment(PaymentMixin, Base):
    """Money paid to a supplier."""
    __tablename__ = "supplier_payments"
    __table_args__ = (
        UniqueConstraint("team_id", "payment_number", name="uq_supplier_payment_team_number"),
    )

    payment_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="e.g. PAY-2025-0001"
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    allocations: Mapped[List["SupplierPaymentAllocation"]] = relationship(
        "SupplierPaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<SupplierPayment(number='{self.payment_number}', amount={self.amount})>"


class SupplierPaymentAllocation(Base):
    """Part of a supplier payment allocated to one bill."""
    __tablename__ = "supplier_payment_allocations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    payment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("supplier_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    bill_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("supplier_bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    allocated_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    payment: Mapped["SupplierPayment"] = relationship("SupplierPayment", back_populates="allocations")
