import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from gstbook.database import Base
from gstbook.db_types import UUIDType, JSONType
from gstbook.models.common import utcnow


class ActivityType(str, Enum):
    """Actions recorded in the activity log."""
    CREATE_INVOICE = "CREATE_INVOICE"
    UPDATE_INVOICE = "UPDATE_INVOICE"
    DELETE_INVOICE = "DELETE_INVOICE"
    SEND_INVOICE = "SEND_INVOICE"
    CANCEL_INVOICE = "CANCEL_INVOICE"
    CREATE_SUPPLIER_BILL = "CREATE_SUPPLIER_BILL"
    UPDATE_SUPPLIER_BILL = "UPDATE_SUPPLIER_BILL"
    DELETE_SUPPLIER_BILL = "DELETE_SUPPLIER_BILL"
    ISSUE_SUPPLIER_BILL = "ISSUE_SUPPLIER_BILL"
    CANCEL_SUPPLIER_BILL = "CANCEL_SUPPLIER_BILL"
    CREATE_CREDIT_NOTE = "CREATE_CREDIT_NOTE"
    UPDATE_CREDIT_NOTE = "UPDATE_CREDIT_NOTE"
    DELETE_CREDIT_NOTE = "DELETE_CREDIT_NOTE"
    ISSUE_CREDIT_NOTE = "ISSUE_CREDIT_NOTE"
    APPLY_CREDIT_NOTE = "APPLY_CREDIT_NOTE"
    REFUND_CREDIT_NOTE = "REFUND_CREDIT_NOTE"
    CANCEL_CREDIT_NOTE = "CANCEL_CREDIT_NOTE"
    CREATE_DEBIT_NOTE = "CREATE_DEBIT_NOTE"
    UPDATE_DEBIT_NOTE = "UPDATE_DEBIT_NOTE"
    DELETE_DEBIT_NOTE = "DELETE_DEBIT_NOTE"
    ISSUE_DEBIT_NOTE = "ISSUE_DEBIT_NOTE"
    APPLY_DEBIT_NOTE = "APPLY_DEBIT_NOTE"
    REFUND_DEBIT_NOTE = "REFUND_DEBIT_NOTE"
    CANCEL_DEBIT_NOTE = "CANCEL_DEBIT_NOTE"
    CREATE_QUOTATION = "CREATE_QUOTATION"
    UPDATE_QUOTATION = "UPDATE_QUOTATION"
    DELETE_QUOTATION = "DELETE_QUOTATION"
    UPDATE_QUOTATION_STATUS = "UPDATE_QUOTATION_STATUS"
    CONVERT_QUOTATION = "CONVERT_QUOTATION"
    EXPIRE_QUOTATION = "EXPIRE_QUOTATION"
    RECORD_PAYMENT = "RECORD_PAYMENT"
    ALLOCATE_PAYMENT = "ALLOCATE_PAYMENT"
    DELETE_PAYMENT = "DELETE_PAYMENT"
    RECORD_SUPPLIER_PAYMENT = "RECORD_SUPPLIER_PAYMENT"
    ALLOCATE_SUPPLIER_PAYMENT = "ALLOCATE_SUPPLIER_PAYMENT"
    DELETE_SUPPLIER_PAYMENT = "DELETE_SUPPLIER_PAYMENT"
    CREATE_GST_RETURN = "CREATE_GST_RETURN"
    FILE_GST_RETURN = "FILE_GST_RETURN"
    AMEND_GST_RETURN = "AMEND_GST_RETURN"
    DELETE_GST_RETURN = "DELETE_GST_RETURN"
    LOCK_GST_PERIOD = "LOCK_GST_PERIOD"
    UNLOCK_GST_PERIOD = "UNLOCK_GST_PERIOD"


class ActivityLog(Base):
    """
    Append-only record of every mutation, written in the same transaction
    as the change it describes.
    """
    __tablename__ = "activity_logs"

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

    # Who performed the action
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Entity being modified
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(action='{self.action}', entity='{self.entity_type}', id='{self.entity_id}')>"
