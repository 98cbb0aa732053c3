"""Invoice Service.

Sales invoices move DRAFT → SENT → PAID. Sending locks the invoice; PAID is
reached only through payments and credit notes settling it. Cancelling
reverses every allocation against the invoice, unless its date falls in a
locked GST period.
"""
import uuid
import logging
from datetime import date
from typing import Any, Optional

from gstbook.core.permissions import Actor
from gstbook.core.state_machine import INVOICE_TRANSITIONS
from gstbook.models.document_sequence import DocumentType
from gstbook.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from gstbook.models.team import Customer
from gstbook.services.document_service import DocumentSpec, PayableDocumentService
from gstbook.services.ledger_service import RECEIVABLE


logger = logging.getLogger(__name__)


class InvoiceService(PayableDocumentService):
    """Service for sales invoice management."""

    spec = DocumentSpec(
        model=Invoice,
        item_model=InvoiceItem,
        number_field="invoice_number",
        date_field="invoice_date",
        counterparty_fk="customer_id",
        counterparty_model=Customer,
        document_type=DocumentType.INVOICE.value,
        transitions=INVOICE_TRANSITIONS,
        header_fields=("due_date", "payment_terms", "customer_notes", "terms", "notes", "currency"),
    )
    ledger_side = RECEIVABLE
    open_status = InvoiceStatus.SENT.value
    open_verb = "SEND"

    async def _number_prefix(self, team_id: uuid.UUID) -> Optional[str]:
        team = await self._team(team_id)
        return team.invoice_prefix or None

    async def send(self, actor: Actor, invoice_id: uuid.UUID) -> Invoice:
        """Mark a draft invoice as sent. Its lines can no longer be edited."""
        return await self.open(actor, invoice_id)

    async def create_from_quotation(self, actor: Actor, quotation: Any, invoice_date: Optional[date] = None) -> Invoice:
        """
        Draft invoice copying a quotation's lines and totals as they were
        quoted.
        """
        invoice_date = invoice_date or date.today()
        items = [
            InvoiceItem(
                product_id=item.product_id,
                description=item.description,
                unit=item.unit,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount_percent=item.discount_percent,
                tax_rate=item.tax_rate,
                is_tax_exempt=item.is_tax_exempt,
                gst_classification=item.gst_classification,
                line_total=item.line_total,
                discount_amount=item.discount_amount,
                tax_amount=item.tax_amount,
                item_total=item.item_total,
                sort_order=item.sort_order,
            )
            for item in quotation.items
        ]
        number = await self.sequences.get_next_number(
            actor.team_id,
            DocumentType.INVOICE,
            year=invoice_date.year,
            prefix=await self._number_prefix(actor.team_id),
        )
        invoice = Invoice(
            team_id=actor.team_id,
            invoice_number=number,
            customer_id=quotation.customer_id,
            invoice_date=invoice_date,
            currency=quotation.currency,
            status=InvoiceStatus.DRAFT.value,
            subtotal=quotation.subtotal,
            total_discount=quotation.total_discount,
            total_tax=quotation.total_tax,
            total_amount=quotation.total_amount,
            customer_notes=quotation.customer_notes,
            terms=quotation.terms,
            notes=quotation.notes,
            quotation_id=quotation.id,
            created_by=actor.user_id,
            items=items,
        )
        self._init_balances(invoice)
        self.db.add(invoice)
        await self.db.flush()

        await self._log(actor, "CREATE", invoice, {"quotation_number": quotation.quotation_number})
        logger.info("Created invoice %s from quotation %s", number, quotation.quotation_number)
        return invoice
