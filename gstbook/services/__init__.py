# Services module
from gstbook.services.audit_service import ActivityLogService
from gstbook.services.document_sequence_service import DocumentSequenceService
from gstbook.services.invoice_service import InvoiceService
from gstbook.services.supplier_bill_service import SupplierBillService
from gstbook.services.credit_note_service import CreditNoteService
from gstbook.services.debit_note_service import DebitNoteService
from gstbook.services.quotation_service import QuotationService
from gstbook.services.ledger_service import LedgerService

# GST
from gstbook.services.gst_service import GstService

__all__ = [
    "ActivityLogService",
    "DocumentSequenceService",
    "InvoiceService",
    "SupplierBillService",
    "CreditNoteService",
    "DebitNoteService",
    "QuotationService",
    "LedgerService",
    # GST
    "GstService",
]
