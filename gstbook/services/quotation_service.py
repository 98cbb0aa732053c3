"""
Quotation service.

Quotations stay editable while DRAFT or SENT. A SENT quotation is accepted,
rejected or expired; an ACCEPTED one is converted into a draft invoice.
Expiry also runs as a scheduled job for SENT quotations past valid_until.
"""
import uuid
import logging
from datetime import date, datetime, timezone
from typing import Optional, Tuple, Union

from sqlalchemy import select

from gstbook.core.enum_utils import get_enum_value
from gstbook.core.exceptions import InvalidTransitionError
from gstbook.core.permissions import Actor
from gstbook.core.state_machine import QUOTATION_TRANSITIONS
from gstbook.models.audit_log import ActivityType
from gstbook.models.document_sequence import DocumentType
from gstbook.models.invoice import Invoice
from gstbook.models.quotation import Quotation, QuotationItem, QuotationStatus
from gstbook.models.team import Customer
from gstbook.services.document_service import DocumentService, DocumentSpec
from gstbook.services.invoice_service import InvoiceService


logger = logging.getLogger(__name__)


class QuotationService(DocumentService):
    spec = DocumentSpec(
        model=Quotation,
        item_model=QuotationItem,
        number_field="quotation_number",
        date_field="quotation_date",
        counterparty_fk="customer_id",
        counterparty_model=Customer,
        document_type=DocumentType.QUOTATION.value,
        transitions=QUOTATION_TRANSITIONS,
        header_fields=("valid_until", "customer_notes", "terms", "notes", "currency"),
    )

    async def update_status(
        self,
        actor: Actor,
        quotation_id: uuid.UUID,
        status: Union[str, QuotationStatus],
    ) -> Quotation:
        """Move a quotation along its table. CONVERTED is only reached by ``convert``."""
        requested = get_enum_value(status).upper()
        quotation = await self.get(actor.team_id, quotation_id, for_update=True)
        QUOTATION_TRANSITIONS.assert_transition(quotation.status, requested)

        previous = quotation.status
        quotation.status = requested
        await self.db.flush()
        await self.activity.log(
            actor.team_id,
            ActivityType.UPDATE_QUOTATION_STATUS,
            user_id=actor.user_id,
            entity_type=self.spec.document_type,
            entity_id=quotation.id,
            description=quotation.quotation_number,
            details={"from": previous, "to": requested},
        )
        return quotation

    async def convert(
        self,
        actor: Actor,
        quotation_id: uuid.UUID,
        invoice_date: Optional[date] = None,
    ) -> Tuple[Quotation, Invoice]:
        """
        Turn an accepted quotation into a draft invoice.

        The invoice gets its own number from the invoice sequence; the
        quotation records which invoice it became.
        """
        quotation = await self.get(actor.team_id, quotation_id, for_update=True)
        if quotation.status != QuotationStatus.ACCEPTED.value:
            raise InvalidTransitionError(
                quotation.status,
                QuotationStatus.CONVERTED.value,
                message="Only accepted quotations can be converted to invoices",
                document_type=self.spec.document_type,
            )
        QUOTATION_TRANSITIONS.assert_transition(quotation.status, QuotationStatus.CONVERTED, system=True)

        invoice = await InvoiceService(self.db).create_from_quotation(actor, quotation, invoice_date)

        quotation.status = QuotationStatus.CONVERTED.value
        quotation.converted_invoice_id = invoice.id
        quotation.converted_at = datetime.now(timezone.utc)
        await self.db.flush()

        await self._log(actor, "CONVERT", quotation, {
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
        })
        return quotation, invoice

    async def expire_overdue(self, today: Optional[date] = None, team_id: Optional[uuid.UUID] = None) -> int:
        """Expire SENT quotations whose valid_until is before ``today``."""
        today = today or date.today()
        stmt = (
            select(Quotation)
            .where(
                Quotation.status == QuotationStatus.SENT.value,
                Quotation.valid_until.is_not(None),
                Quotation.valid_until < today,
            )
            .with_for_update(of=Quotation)
        )
        if team_id:
            stmt = stmt.where(Quotation.team_id == team_id)
        quotations = (await self.db.execute(stmt)).unique().scalars().all()

        for quotation in quotations:
            QUOTATION_TRANSITIONS.assert_transition(quotation.status, QuotationStatus.EXPIRED)
            quotation.status = QuotationStatus.EXPIRED.value
            await self.activity.log(
                quotation.team_id,
                ActivityType.EXPIRE_QUOTATION,
                entity_type=self.spec.document_type,
                entity_id=quotation.id,
                description=quotation.quotation_number,
                details={"valid_until": quotation.valid_until.isoformat()},
            )
        await self.db.flush()

        if quotations:
            logger.info("Expired %d quotation(s)", len(quotations))
        return len(quotations)
