"""Debit note service: supplier-side credit, applied against supplier bills."""
from gstbook.core.state_machine import DEBIT_NOTE_TRANSITIONS
from gstbook.models.debit_note import DebitNote, DebitNoteItem
from gstbook.models.document_sequence import DocumentType
from gstbook.models.supplier_bill import SupplierBill
from gstbook.models.team import Supplier
from gstbook.services.document_service import DocumentSpec, NoteDocumentService


class DebitNoteService(NoteDocumentService):
    spec = DocumentSpec(
        model=DebitNote,
        item_model=DebitNoteItem,
        number_field="debit_note_number",
        date_field="debit_note_date",
        counterparty_fk="supplier_id",
        counterparty_model=Supplier,
        document_type=DocumentType.DEBIT_NOTE.value,
        transitions=DEBIT_NOTE_TRANSITIONS,
        header_fields=("bill_id", "reason", "notes", "currency"),
        allow_discount=False,
        allow_classification_override=True,
    )
    linked_fk = "bill_id"
    linked_model = SupplierBill
    linked_label = "bill"
