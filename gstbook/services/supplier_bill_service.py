"""Supplier bill service: purchase-side mirror of invoices."""
import uuid

from gstbook.core.permissions import Actor
from gstbook.core.state_machine import SUPPLIER_BILL_TRANSITIONS
from gstbook.models.document_sequence import DocumentType
from gstbook.models.supplier_bill import SupplierBill, SupplierBillItem, SupplierBillStatus
from gstbook.models.team import Supplier
from gstbook.services.document_service import DocumentSpec, PayableDocumentService
from gstbook.services.ledger_service import PAYABLE


class SupplierBillService(PayableDocumentService):
    spec = DocumentSpec(
        model=SupplierBill,
        item_model=SupplierBillItem,
        number_field="bill_number",
        date_field="bill_date",
        counterparty_fk="supplier_id",
        counterparty_model=Supplier,
        document_type=DocumentType.SUPPLIER_BILL.value,
        transitions=SUPPLIER_BILL_TRANSITIONS,
        header_fields=("supplier_reference", "due_date", "notes", "currency"),
        allow_classification_override=True,
    )
    ledger_side = PAYABLE
    open_status = SupplierBillStatus.ISSUED.value
    open_verb = "ISSUE"

    async def issue(self, actor: Actor, bill_id: uuid.UUID) -> SupplierBill:
        return await self.open(actor, bill_id)
