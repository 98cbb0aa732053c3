"""Supplier (purchase) bill models."""
import uuid
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Date, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gstbook.database import Base
from gstbook.db_types import UUIDType
from gstbook.models.common import DocumentMixin, PayableMixin, LineItemMixin

if TYPE_CHECKING:
    from gstbook.models.team import Supplier


class SupplierBillStatus(str, Enum):
    """Supplier bill status enumeration."""
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PAID = "PAID"          # System only
    CANCELLED = "CANCELLED"


class SupplierBill(DocumentMixin, PayableMixin, Base):
    """
    Bill received from a supplier. Carries the supplier's own reference
    alongside the internally minted bill number; input GST is claimed from
    its STANDARD lines.
    """
    __tablename__ = "supplier_bills"
    __table_args__ = (
        UniqueConstraint("team_id", "bill_number", name="uq_supplier_bill_team_number"),
        Index("ix_supplier_bills_team_date", "team_id", "bill_date"),
    )

    bill_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="e.g. BILL-2025-0001"
    )
    supplier_reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Supplier's own invoice number"
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    bill_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    items: Mapped[List["SupplierBillItem"]] = relationship(
        "SupplierBillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="SupplierBillItem.sort_order",
        lazy="selectin"
    )
    supplier: Mapped["Supplier"] = relationship("Supplier", lazy="joined")

    def __repr__(self) -> str:
        return f"<SupplierBill(number='{self.bill_number}', status='{self.status}')>"


class SupplierBillItem(LineItemMixin, Base):
    __tablename__ = "supplier_bill_items"

    bill_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("supplier_bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    bill: Mapped["SupplierBill"] = relationship("SupplierBill", back_populates="items")
