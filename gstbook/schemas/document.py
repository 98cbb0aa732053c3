"""Request and response schemas for invoices, bills, notes and quotations."""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from gstbook.core.enum_utils import VALID_CURRENCIES, VALID_QUOTATION_STATUSES, create_uppercase_validator
from gstbook.models.common import Currency, GstClassification
from gstbook.models.quotation import QuotationStatus
from gstbook.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema, MoneyOut, PositiveMoney


# ==================== LINE ITEMS ====================

class LineItemCreate(BaseCreateSchema):
    product_id: Optional[UUID] = None
    description: str = Field(..., min_length=1, max_length=500)
    unit: Optional[str] = Field(None, max_length=20)
    quantity: Decimal = Field(..., gt=0, max_digits=12, decimal_places=3)
    unit_price: Decimal = Field(..., ge=0, max_digits=14, decimal_places=4)
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100, decimal_places=2)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100, decimal_places=2)
    is_tax_exempt: bool = False


class ClassifiedLineItemCreate(LineItemCreate):
    """Purchase-side and note lines may state their GST classification."""
    gst_classification: Optional[GstClassification] = None

    _normalize_classification = create_uppercase_validator("gst_classification", {c.value for c in GstClassification})


class NoteLineItemCreate(ClassifiedLineItemCreate):
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=0)


class LineItemResponse(BaseResponseSchema):
    id: UUID
    product_id: Optional[UUID] = None
    description: str
    unit: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    tax_rate: Decimal
    is_tax_exempt: bool
    gst_classification: str
    line_total: MoneyOut
    discount_amount: MoneyOut
    tax_amount: MoneyOut
    item_total: MoneyOut
    sort_order: int


class _DocumentHeader(BaseCreateSchema):
    currency: Optional[Currency] = None
    notes: Optional[str] = None

    _normalize_currency = create_uppercase_validator("currency", VALID_CURRENCIES)


class _DocumentResponse(BaseResponseSchema):
    id: UUID
    team_id: UUID
    status: str
    currency: str
    subtotal: MoneyOut
    total_discount: MoneyOut
    total_tax: MoneyOut
    total_amount: MoneyOut
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class _PayableResponse(_DocumentResponse):
    amount_paid: MoneyOut
    amount_due: MoneyOut
    payment_status: str
    is_locked: bool
    locked_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None


class _NoteResponse(_DocumentResponse):
    reason: str
    applied_amount: MoneyOut
    unapplied_amount: MoneyOut
    refunded_amount: MoneyOut
    issued_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


# ==================== INVOICES ====================

class InvoiceCreate(_DocumentHeader):
    customer_id: UUID
    invoice_date: date
    due_date: Optional[date] = None
    payment_terms: Optional[str] = Field(None, max_length=100)
    customer_notes: Optional[str] = None
    terms: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1)


class InvoiceUpdate(BaseUpdateSchema):
    customer_id: Optional[UUID] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_terms: Optional[str] = Field(None, max_length=100)
    customer_notes: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    currency: Optional[Currency] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)

    _normalize_currency = create_uppercase_validator("currency", VALID_CURRENCIES)


class InvoiceResponse(_PayableResponse):
    invoice_number: str
    customer_id: UUID
    invoice_date: date
    due_date: Optional[date] = None
    payment_terms: Optional[str] = None
    customer_notes: Optional[str] = None
    terms: Optional[str] = None
    quotation_id: Optional[UUID] = None
    items: List[LineItemResponse] = []


# ==================== SUPPLIER BILLS ====================

class SupplierBillCreate(_DocumentHeader):
    supplier_id: UUID
    bill_date: date
    due_date: Optional[date] = None
    supplier_reference: Optional[str] = Field(None, max_length=100)
    items: List[ClassifiedLineItemCreate] = Field(..., min_length=1)


class SupplierBillUpdate(BaseUpdateSchema):
    supplier_id: Optional[UUID] = None
    bill_date: Optional[date] = None
    due_date: Optional[date] = None
    supplier_reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    currency: Optional[Currency] = None
    items: Optional[List[ClassifiedLineItemCreate]] = Field(None, min_length=1)

    _normalize_currency = create_uppercase_validator("currency", VALID_CURRENCIES)


class SupplierBillResponse(_PayableResponse):
    bill_number: str
    supplier_id: UUID
    supplier_reference: Optional[str] = None
    bill_date: date
    due_date: Optional[date] = None
    items: List[LineItemResponse] = []


# ==================== CREDIT / DEBIT NOTES ====================

class CreditNoteCreate(_DocumentHeader):
    customer_id: UUID
    invoice_id: Optional[UUID] = None
    credit_note_date: date
    reason: str = Field(..., min_length=1, max_length=500)
    items: List[NoteLineItemCreate] = Field(..., min_length=1)


class CreditNoteUpdate(BaseUpdateSchema):
    customer_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    credit_note_date: Optional[date] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=500)
    notes: Optional[str] = None
    items: Optional[List[NoteLineItemCreate]] = Field(None, min_length=1)


class CreditNoteResponse(_NoteResponse):
    credit_note_number: str
    customer_id: UUID
    invoice_id: Optional[UUID] = None
    credit_note_date: date
    items: List[LineItemResponse] = []


class DebitNoteCreate(_DocumentHeader):
    supplier_id: UUID
    bill_id: Optional[UUID] = None
    debit_note_date: date
    reason: str = Field(..., min_length=1, max_length=500)
    items: List[NoteLineItemCreate] = Field(..., min_length=1)


class DebitNoteUpdate(BaseUpdateSchema):
    supplier_id: Optional[UUID] = None
    bill_id: Optional[UUID] = None
    debit_note_date: Optional[date] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=500)
    notes: Optional[str] = None
    items: Optional[List[NoteLineItemCreate]] = Field(None, min_length=1)


class DebitNoteResponse(_NoteResponse):
    debit_note_number: str
    supplier_id: UUID
    bill_id: Optional[UUID] = None
    debit_note_date: date
    items: List[LineItemResponse] = []


class NoteApply(BaseCreateSchema):
    """Apply part of a note's balance to an invoice (credit) or bill (debit)."""
    target_id: UUID
    amount: PositiveMoney
    application_date: Optional[date] = None


class CancelRequest(BaseCreateSchema):
    reason: Optional[str] = Field(None, max_length=500)


# ==================== QUOTATIONS ====================

class QuotationCreate(_DocumentHeader):
    customer_id: UUID
    quotation_date: date
    valid_until: Optional[date] = None
    customer_notes: Optional[str] = None
    terms: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1)


class QuotationUpdate(BaseUpdateSchema):
    customer_id: Optional[UUID] = None
    quotation_date: Optional[date] = None
    valid_until: Optional[date] = None
    customer_notes: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)


class QuotationStatusUpdate(BaseCreateSchema):
    status: QuotationStatus

    _normalize_status = create_uppercase_validator("status", VALID_QUOTATION_STATUSES)


class QuotationConvert(BaseCreateSchema):
    invoice_date: Optional[date] = None


class QuotationResponse(_DocumentResponse):
    quotation_number: str
    customer_id: UUID
    quotation_date: date
    valid_until: Optional[date] = None
    customer_notes: Optional[str] = None
    terms: Optional[str] = None
    converted_invoice_id: Optional[UUID] = None
    converted_at: Optional[datetime] = None
    items: List[LineItemResponse] = []
