"""Payment schemas for customer receipts and supplier payments."""
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, model_validator

from gstbook.core.enum_utils import VALID_CURRENCIES, VALID_PAYMENT_METHODS, create_uppercase_validator
from gstbook.models.common import Currency
from gstbook.models.payment import PaymentMethod
from gstbook.schemas.base import BaseCreateSchema, BaseResponseSchema, MoneyOut, PositiveMoney


class AllocationIn(BaseCreateSchema):
    """Part of a payment applied to one invoice or bill."""
    document_id: UUID
    amount: PositiveMoney


class _PaymentCreate(BaseCreateSchema):
    amount: PositiveMoney
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER.value
    currency: Optional[Currency] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)
    allocations: List[AllocationIn] = []

    _normalize_method = create_uppercase_validator("payment_method", VALID_PAYMENT_METHODS)
    _normalize_currency = create_uppercase_validator("currency", VALID_CURRENCIES)

    @model_validator(mode="after")
    def check_allocations(self):
        ids = [a.document_id for a in self.allocations]
        if len(ids) != len(set(ids)):
            raise ValueError("Each document can only be allocated once per payment")
        return self

    def allocation_pairs(self):
        return [(a.document_id, a.amount) for a in self.allocations]

    def payment_kwargs(self) -> dict:
        return {
            "allocations": self.allocation_pairs(),
            "payment_method": self.payment_method,
            "currency": self.currency,
            "reference": self.reference,
            "notes": self.notes,
        }


class CustomerPaymentCreate(_PaymentCreate):
    customer_id: UUID


class SupplierPaymentCreate(_PaymentCreate):
    supplier_id: UUID


class PaymentAllocate(BaseCreateSchema):
    allocations: List[AllocationIn] = Field(..., min_length=1)

    def allocation_pairs(self):
        return [(a.document_id, a.amount) for a in self.allocations]


class PaymentAllocationResponse(BaseResponseSchema):
    id: UUID
    allocated_amount: MoneyOut
    created_at: datetime


class CustomerAllocationResponse(PaymentAllocationResponse):
    invoice_id: UUID


class SupplierAllocationResponse(PaymentAllocationResponse):
    bill_id: UUID


class _PaymentResponse(BaseResponseSchema):
    id: UUID
    team_id: UUID
    payment_date: date
    payment_method: str
    currency: str
    amount: MoneyOut
    allocated_amount: MoneyOut
    unallocated_amount: MoneyOut
    reference: Optional[str] = None
    notes: Optional[str] = None
    reversed_at: Optional[datetime] = None
    reversed_reason: Optional[str] = None
    created_at: datetime


class CustomerPaymentResponse(_PaymentResponse):
    receipt_number: str
    customer_id: UUID
    allocations: List[CustomerAllocationResponse] = []


class SupplierPaymentResponse(_PaymentResponse):
    payment_number: str
    supplier_id: UUID
    allocations: List[SupplierAllocationResponse] = []
