# Models module
from gstbook.models.team import Team, TeamMember, TeamRole, Customer, Supplier
from gstbook.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from gstbook.models.supplier_bill import SupplierBill, SupplierBillItem, SupplierBillStatus
from gstbook.models.credit_note import CreditNote, CreditNoteItem, CreditNoteApplication
from gstbook.models.debit_note import DebitNote, DebitNoteItem, DebitNoteApplication
from gstbook.models.quotation import Quotation, QuotationItem, QuotationStatus
from gstbook.models.payment import (
    CustomerPayment, PaymentAllocation,
    SupplierPayment, SupplierPaymentAllocation,
    PaymentMethod,
)
from gstbook.models.gst import GstReturn, GstPeriodLock, GstReturnStatus, GstReturnType
from gstbook.models.document_sequence import DocumentSequence, DocumentType
from gstbook.models.audit_log import ActivityLog, ActivityType

__all__ = [
    "Team",
    "TeamMember",
    "TeamRole",
    "Customer",
    "Supplier",
    # Sales
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "CreditNote",
    "CreditNoteItem",
    "CreditNoteApplication",
    "Quotation",
    "QuotationItem",
    "QuotationStatus",
    "CustomerPayment",
    "PaymentAllocation",
    # Purchases
    "SupplierBill",
    "SupplierBillItem",
    "SupplierBillStatus",
    "DebitNote",
    "DebitNoteItem",
    "DebitNoteApplication",
    "SupplierPayment",
    "SupplierPaymentAllocation",
    "PaymentMethod",
    # GST
    "GstReturn",
    "GstPeriodLock",
    "GstReturnStatus",
    "GstReturnType",
    "DocumentSequence",
    "DocumentType",
    "ActivityLog",
    "ActivityType",
]
