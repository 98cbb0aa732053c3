"""GST return and period lock schemas."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field, model_validator

from gstbook.core.enum_utils import VALID_GST_RETURN_TYPES, create_uppercase_validator
from gstbook.models.gst import GstReturnType
from gstbook.schemas.base import BaseCreateSchema, BaseResponseSchema, MoneyOut


class _Period(BaseCreateSchema):
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def check_period(self):
        if self.period_end < self.period_start:
            raise ValueError("period_end must be on or after period_start")
        return self


class GstReturnCreate(_Period):
    return_type: GstReturnType = GstReturnType.MONTHLY.value
    notes: Optional[str] = None

    _normalize_type = create_uppercase_validator("return_type", VALID_GST_RETURN_TYPES)


class GstReturnFile(BaseCreateSchema):
    filing_date: date
    adjustments: Decimal = Field(Decimal("0"), max_digits=14, decimal_places=2)
    previous_period_balance: Decimal = Field(Decimal("0"), max_digits=14, decimal_places=2)
    penalties: Decimal = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    interest: Decimal = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    notes: Optional[str] = None


class GstReturnAmend(BaseCreateSchema):
    adjustments: Decimal = Field(..., max_digits=14, decimal_places=2)
    reason: str = Field(..., min_length=1, max_length=500)


class PeriodLockCreate(_Period):
    period_type: GstReturnType = GstReturnType.MONTHLY.value
    reason: Optional[str] = Field(None, max_length=500)

    _normalize_type = create_uppercase_validator("period_type", VALID_GST_RETURN_TYPES)


class GstReturnResponse(BaseResponseSchema):
    id: UUID
    team_id: UUID
    return_number: str
    period_start: date
    period_end: date
    return_type: str
    status: str
    output_gst: MoneyOut
    input_gst: MoneyOut
    net_gst_payable: MoneyOut
    adjustments: MoneyOut
    previous_period_balance: MoneyOut
    penalties: MoneyOut
    interest: MoneyOut
    total_payable: MoneyOut
    due_date: date
    filing_date: Optional[date] = None
    filed_by: Optional[UUID] = None
    sales_breakdown: Optional[Dict[str, Any]] = None
    purchases_breakdown: Optional[Dict[str, Any]] = None
    amendments: Optional[List[Dict[str, Any]]] = None
    notes: Optional[str] = None
    created_at: datetime


class PeriodLockResponse(BaseResponseSchema):
    id: UUID
    period_start: date
    period_end: date
    period_type: str
    locked_by: Optional[UUID] = None
    locked_at: datetime
    reason: Optional[str] = None
    gst_return_id: Optional[UUID] = None
