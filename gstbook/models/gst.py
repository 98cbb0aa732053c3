"""GST return and period lock models."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Date, DateTime, ForeignKey, Text, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from gstbook.database import Base
from gstbook.db_types import UUIDType, Money, JSONType
from gstbook.models.common import utcnow


class GstReturnType(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"


class GstReturnStatus(str, Enum):
    DRAFT = "DRAFT"
    FILED = "FILED"
    AMENDED = "AMENDED"


class GstReturn(Base):
    """
    GST return for one period.

    Output/input figures are snapshotted from the period aggregation when
    the draft is created. Filing locks the period; an amendment replaces the
    adjustments and appends to the amendment history.
    """
    __tablename__ = "gst_returns"
    __table_args__ = (
        UniqueConstraint("team_id", "return_number", name="uq_gst_return_team_number"),
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

    return_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="GST-YYYY-MM, GST-YYYY-Qn or GST-YYYY-ANNUAL"
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    return_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="MONTHLY, QUARTERLY, ANNUAL"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=GstReturnStatus.DRAFT.value,
        nullable=False,
        index=True,
        comment="DRAFT, FILED, AMENDED"
    )

    # Aggregated figures
    output_gst: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    input_gst: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    net_gst_payable: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0.00"),
        nullable=False,
        comment="output_gst - input_gst, negative means a credit"
    )

    # Filing adjustments
    adjustments: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    previous_period_balance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    penalties: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    interest: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    total_payable: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)

    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    filing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    filed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    sales_breakdown: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    purchases_breakdown: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    amendments: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    def __repr__(self) -> str:
        return f"<GstReturn(number='{self.return_number}', status='{self.status}')>"


class GstPeriodLock(Base):
    """
    Closed GST period. Documents dated inside a locked period can no longer
    be cancelled; corrections go through credit/debit notes instead.
    """
    __tablename__ = "gst_period_locks"
    __table_args__ = (
        Index("ix_gst_period_locks_team_period", "team_id", "period_start", "period_end"),
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
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    period_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="MONTHLY, QUARTERLY, ANNUAL"
    )
    locked_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    locked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    gst_return_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("gst_returns.id", ondelete="SET NULL"),
        nullable=True
    )

    def contains(self, day: date) -> bool:
        return self.period_start <= day <= self.period_end
