"""Credit note service.

A credit note reduces what a customer owes. It may be raised against a
specific invoice, in which case it cannot exceed that invoice's total.
Once issued its balance is applied to invoices through the ledger, refunded,
or (while untouched) cancelled.
"""
from gstbook.core.state_machine import CREDIT_NOTE_TRANSITIONS
from gstbook.models.credit_note import CreditNote, CreditNoteItem
from gstbook.models.document_sequence import DocumentType
from gstbook.models.invoice import Invoice
from gstbook.models.team import Customer
from gstbook.services.document_service import DocumentSpec, NoteDocumentService


class CreditNoteService(NoteDocumentService):
    spec = DocumentSpec(
        model=CreditNote,
        item_model=CreditNoteItem,
        number_field="credit_note_number",
        date_field="credit_note_date",
        counterparty_fk="customer_id",
        counterparty_model=Customer,
        document_type=DocumentType.CREDIT_NOTE.value,
        transitions=CREDIT_NOTE_TRANSITIONS,
        header_fields=("invoice_id", "reason", "notes", "currency"),
        allow_discount=False,
        allow_classification_override=True,
    )
    linked_fk = "invoice_id"
    linked_model = Invoice
    linked_label = "invoice"
