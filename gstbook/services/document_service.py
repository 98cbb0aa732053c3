"""
Generic financial document engine.

Invoices, supplier bills, credit notes, debit notes and quotations share one
lifecycle: a numbered header with line items, editable while in DRAFT,
then moved through the statuses of its transition table. The concrete
services in this package only describe their model wiring (DocumentSpec)
and add the transitions specific to them.

FLOW (create):
    counterparty check → line amounts → mint number → insert → activity log

All methods flush but never commit. The API layer commits once per action.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gstbook.core.exceptions import (
    BalanceExceededError,
    InvalidTransitionError,
    NotFoundError,
    PeriodLockedError,
    ValidationError,
)
from gstbook.core.money import ZERO, format_money
from gstbook.core.permissions import Actor
from gstbook.core.state_machine import TransitionTable
from gstbook.models.audit_log import ActivityType
from gstbook.models.common import NoteStatus, PaymentStatus
from gstbook.models.team import Team, TeamRole
from gstbook.services.audit_service import ActivityLogService
from gstbook.services.calculations import (
    DocumentTotals,
    calculate_item,
    calculate_totals,
    resolve_classification,
)
from gstbook.services.document_sequence_service import DocumentSequenceService
from gstbook.services.gst_service import GstService
from gstbook.services.ledger_service import LedgerService, LedgerSide


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentSpec:
    """How one document type maps onto the shared engine."""
    model: Type[Any]
    item_model: Type[Any]
    number_field: str
    date_field: str
    counterparty_fk: str
    counterparty_model: Type[Any]
    document_type: str
    transitions: TransitionTable
    header_fields: Tuple[str, ...] = ()
    allow_discount: bool = True
    allow_classification_override: bool = False

    @property
    def label(self) -> str:
        return self.transitions.label

    @property
    def counterparty_label(self) -> str:
        return self.counterparty_fk.replace("_id", "")


ITEM_FIELDS = ("product_id", "description", "unit")


class DocumentService:
    """
    Create, edit, delete and transition one document type.

    Subclasses set ``spec`` and may override the ``_validate_*`` hooks.
    """

    spec: DocumentSpec

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityLogService(db)
        self.sequences = DocumentSequenceService(db)

    # ==================== QUERIES ====================

    async def get(self, team_id: uuid.UUID, document_id: uuid.UUID, for_update: bool = False) -> Any:
        model = self.spec.model
        stmt = select(model).where(model.id == document_id, model.team_id == team_id)
        if for_update:
            stmt = stmt.with_for_update(of=model).execution_options(populate_existing=True)
        document = (await self.db.execute(stmt)).unique().scalar_one_or_none()
        if document is None:
            raise NotFoundError(self.spec.label.capitalize())
        return document

    async def list(
        self,
        team_id: uuid.UUID,
        status: Optional[str] = None,
        counterparty_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Any], int]:
        model = self.spec.model
        stmt = select(model).where(model.team_id == team_id)
        if status:
            stmt = stmt.where(model.status == status.upper())
        if counterparty_id:
            stmt = stmt.where(getattr(model, self.spec.counterparty_fk) == counterparty_id)

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar()
        stmt = stmt.order_by(
            getattr(model, self.spec.date_field).desc(),
            getattr(model, self.spec.number_field).desc(),
        ).offset(skip).limit(limit)
        documents = (await self.db.execute(stmt)).unique().scalars().all()
        return list(documents), total

    # ==================== LINE ITEMS ====================

    def build_items(self, items_data: Iterable[Dict[str, Any]]) -> Tuple[List[Any], DocumentTotals]:
        """Line item rows and document totals for the given line inputs."""
        items_data = list(items_data)
        if not items_data:
            raise ValidationError("At least one line item is required")

        lines = []
        for data in items_data:
            line = dict(data)
            if not self.spec.allow_discount:
                line["discount_percent"] = 0
            lines.append(line)

        totals = calculate_totals(lines)
        items = []
        for index, line in enumerate(lines):
            is_exempt = bool(line.get("is_tax_exempt", False))
            amounts = calculate_item(
                line["quantity"],
                line["unit_price"],
                line.get("discount_percent") or 0,
                line.get("tax_rate") or 0,
                is_exempt,
            )
            requested = line.get("gst_classification") if self.spec.allow_classification_override else None
            items.append(self.spec.item_model(
                **{name: line.get(name) for name in ITEM_FIELDS},
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                discount_percent=line.get("discount_percent") or 0,
                tax_rate=line.get("tax_rate") or 0,
                is_tax_exempt=is_exempt,
                gst_classification=resolve_classification(line.get("tax_rate") or 0, is_exempt, requested),
                line_total=amounts.line_total,
                discount_amount=amounts.discount_amount,
                tax_amount=amounts.tax_amount,
                item_total=amounts.item_total,
                sort_order=index,
            ))
        return items, totals

    @staticmethod
    def _apply_totals(document: Any, totals: DocumentTotals) -> None:
        document.subtotal = totals.subtotal
        document.total_discount = totals.total_discount
        document.total_tax = totals.total_tax
        document.total_amount = totals.total_amount

    # ==================== HOOKS ====================

    def _init_balances(self, document: Any) -> None:
        """Set balance columns on a freshly created document."""

    def _refresh_balances(self, document: Any) -> None:
        """Recompute balance columns after the totals changed."""

    async def _validate(self, actor: Actor, document: Any) -> None:
        """Cross-document checks run after totals are known."""

    async def _number_prefix(self, team_id: uuid.UUID) -> Optional[str]:
        return None

    # ==================== HELPERS ====================

    async def _check_counterparty(self, team_id: uuid.UUID, counterparty_id: uuid.UUID) -> None:
        model = self.spec.counterparty_model
        result = await self.db.execute(
            select(model.id).where(model.id == counterparty_id, model.team_id == team_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError(self.spec.counterparty_label.capitalize())

    async def _team(self, team_id: uuid.UUID) -> Team:
        team = await self.db.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team")
        return team

    async def _log(self, actor: Actor, verb: str, document: Any, details: Optional[Dict[str, Any]] = None) -> None:
        await self.activity.log(
            actor.team_id,
            ActivityType(f"{verb}_{self.spec.document_type}"),
            user_id=actor.user_id,
            entity_type=self.spec.document_type,
            entity_id=document.id,
            description=getattr(document, self.spec.number_field),
            details=details,
        )

    def _number(self, document: Any) -> str:
        return getattr(document, self.spec.number_field)

    # ==================== CRUD ====================

    async def create(self, actor: Actor, data: Dict[str, Any]) -> Any:
        """
        Create a DRAFT document with a freshly minted number.

        ``data`` holds the counterparty id, the document date, the header
        fields of this type and an ``items`` list.
        """
        spec = self.spec
        counterparty_id = data.get(spec.counterparty_fk)
        if counterparty_id is None:
            raise ValidationError(f"A {spec.counterparty_label} is required")
        await self._check_counterparty(actor.team_id, counterparty_id)

        document_date: date = data.get(spec.date_field) or date.today()
        items, totals = self.build_items(data.get("items") or [])

        team = await self._team(actor.team_id)
        document = spec.model(
            team_id=actor.team_id,
            status="DRAFT",
            currency=(data.get("currency") or team.default_currency).upper(),
            created_by=actor.user_id,
            items=items,
            **{spec.counterparty_fk: counterparty_id, spec.date_field: document_date},
        )
        for name in spec.header_fields:
            if name in data and name != "currency":
                setattr(document, name, data[name])
        self._apply_totals(document, totals)
        self._init_balances(document)
        await self._validate(actor, document)

        number = await self.sequences.get_next_number(
            actor.team_id,
            spec.document_type,
            year=document_date.year,
            prefix=await self._number_prefix(actor.team_id),
        )
        setattr(document, spec.number_field, number)

        self.db.add(document)
        await self.db.flush()
        await self._log(actor, "CREATE", document, {"total_amount": format_money(document.total_amount)})
        logger.info("Created %s %s for team %s", spec.label, number, actor.team_id)
        return document

    async def update(self, actor: Actor, document_id: uuid.UUID, data: Dict[str, Any]) -> Any:
        """
        Edit header fields and, when ``items`` is given, replace every line.

        Only allowed while the status is editable (DRAFT for most types).
        """
        spec = self.spec
        document = await self.get(actor.team_id, document_id, for_update=True)
        spec.transitions.assert_editable(document.status, "edit")

        if data.get(spec.counterparty_fk) and data[spec.counterparty_fk] != getattr(document, spec.counterparty_fk):
            await self._check_counterparty(actor.team_id, data[spec.counterparty_fk])
            setattr(document, spec.counterparty_fk, data[spec.counterparty_fk])
        if data.get(spec.date_field):
            new_date = data[spec.date_field]
            # The number was minted from the original year's sequence
            if new_date.year != getattr(document, spec.date_field).year:
                raise ValidationError(
                    f"Cannot move {getattr(document, spec.number_field)} to {new_date.year}; "
                    f"create a new {spec.label} instead"
                )
            setattr(document, spec.date_field, new_date)
        for name in spec.header_fields:
            if name in data:
                value = data[name]
                setattr(document, name, value.upper() if name == "currency" and value else value)

        if data.get("items") is not None:
            items, totals = self.build_items(data["items"])
            document.items.clear()
            await self.db.flush()
            document.items.extend(items)
            self._apply_totals(document, totals)
            self._refresh_balances(document)

        await self._validate(actor, document)
        await self.db.flush()
        await self._log(actor, "UPDATE", document)
        return document

    async def delete(self, actor: Actor, document_id: uuid.UUID) -> str:
        document = await self.get(actor.team_id, document_id, for_update=True)
        self.spec.transitions.assert_deletable(document.status)
        await self._before_delete(actor, document)

        number = self._number(document)
        await self._log(actor, "DELETE", document)
        await self.db.delete(document)
        await self.db.flush()
        logger.info("Deleted %s %s", self.spec.label, number)
        return number

    async def _before_delete(self, actor: Actor, document: Any) -> None:
        pass


class PayableDocumentService(DocumentService):
    """Invoices and supplier bills: documents that receive payments and notes."""

    ledger_side: LedgerSide
    open_status: str
    open_verb: str

    def _init_balances(self, document: Any) -> None:
        document.amount_paid = ZERO
        document.amount_due = document.total_amount
        document.payment_status = PaymentStatus.UNPAID.value

    def _refresh_balances(self, document: Any) -> None:
        # Only drafts are edited and drafts never carry payments
        document.amount_due = document.total_amount - document.amount_paid

    async def open(self, actor: Actor, document_id: uuid.UUID) -> Any:
        """Move a DRAFT to its open status and lock its contents."""
        document = await self.get(actor.team_id, document_id, for_update=True)
        self.spec.transitions.assert_transition(document.status, self.open_status)

        document.status = self.open_status
        document.is_locked = True
        document.locked_at = datetime.now(timezone.utc)
        document.locked_by = actor.user_id
        await self.db.flush()

        await self._log(actor, self.open_verb, document)
        return document

    async def cancel(self, actor: Actor, document_id: uuid.UUID, reason: Optional[str] = None) -> Tuple[Any, Dict[str, int]]:
        """
        Cancel a document and undo everything that settled it.

        Refused when the document date falls inside a locked GST period;
        the correction then goes through a credit or debit note.

        Returns:
            (document, counts of reversed payment allocations and note applications)
        """
        spec = self.spec
        document = await self.get(actor.team_id, document_id, for_update=True)
        if document.status == "CANCELLED":
            raise InvalidTransitionError(
                document.status,
                "CANCELLED",
                message=f"{spec.label.capitalize()} is already cancelled",
                document_type=spec.document_type,
            )
        spec.transitions.assert_transition(document.status, "CANCELLED")

        lock = await GstService(self.db).get_lock_for_date(actor.team_id, getattr(document, spec.date_field))
        if lock is not None:
            note_type = "Credit Note" if self.ledger_side.label == "invoice" else "Debit Note"
            raise PeriodLockedError(
                f"Cannot cancel {spec.label} in a locked GST period. Please create a {note_type} instead.",
                details={"period_start": lock.period_start.isoformat(), "period_end": lock.period_end.isoformat()},
            )

        number = self._number(document)
        reversed_counts = await LedgerService(self.db).reverse_document_allocations(
            self.ledger_side,
            actor,
            document,
            f"Auto-reversed due to {self.ledger_side.label} {number} cancellation",
        )

        document.amount_paid = ZERO
        document.amount_due = document.total_amount
        document.payment_status = PaymentStatus.UNPAID.value
        document.status = "CANCELLED"
        document.cancelled_at = datetime.now(timezone.utc)
        document.cancelled_reason = reason
        document.cancelled_by = actor.user_id
        await self.db.flush()

        await self._log(actor, "CANCEL", document, {"reason": reason, **reversed_counts})
        logger.info("Cancelled %s %s (%s)", spec.label, number, reversed_counts)
        return document, reversed_counts


class NoteDocumentService(DocumentService):
    """Credit and debit notes: balance-holding documents applied to payables."""

    linked_fk: str
    linked_model: Type[Any]
    linked_label: str

    def _init_balances(self, document: Any) -> None:
        document.applied_amount = ZERO
        document.unapplied_amount = document.total_amount
        document.refunded_amount = ZERO

    def _refresh_balances(self, document: Any) -> None:
        document.unapplied_amount = document.total_amount - document.applied_amount

    async def _validate(self, actor: Actor, document: Any) -> None:
        if not (document.reason or "").strip():
            raise ValidationError("A reason is required")

        linked_id = getattr(document, self.linked_fk)
        if linked_id is None:
            return
        model = self.linked_model
        linked = (await self.db.execute(
            select(model).where(model.id == linked_id, model.team_id == actor.team_id)
        )).unique().scalar_one_or_none()
        if linked is None:
            raise NotFoundError(self.linked_label.capitalize())
        if getattr(linked, self.spec.counterparty_fk) != getattr(document, self.spec.counterparty_fk):
            raise ValidationError(
                f"The {self.linked_label} belongs to a different {self.spec.counterparty_label}"
            )
        if document.total_amount > linked.total_amount:
            raise BalanceExceededError(
                f"{self.spec.label.capitalize()} total ({format_money(document.total_amount)}) exceeds "
                f"the {self.linked_label} total ({format_money(linked.total_amount)})"
            )

    async def _before_delete(self, actor: Actor, document: Any) -> None:
        actor.require_role(TeamRole.ADMIN, f"delete {self.spec.label}s")

    async def issue(self, actor: Actor, document_id: uuid.UUID) -> Any:
        document = await self.get(actor.team_id, document_id, for_update=True)
        self.spec.transitions.assert_transition(document.status, NoteStatus.ISSUED)

        document.status = NoteStatus.ISSUED.value
        document.applied_amount = ZERO
        document.unapplied_amount = document.total_amount
        document.issued_at = datetime.now(timezone.utc)
        await self.db.flush()

        await self._log(actor, "ISSUE", document)
        return document

    async def refund(self, actor: Actor, document_id: uuid.UUID) -> Any:
        """
        Pay out the unapplied balance.

        ``refunded_amount`` records what was paid out; applied and unapplied
        stay as they were so the note's balance rule still holds, and the
        REFUNDED status closes the note to further applications.
        """
        document = await self.get(actor.team_id, document_id, for_update=True)
        self.spec.transitions.assert_transition(document.status, NoteStatus.REFUNDED)
        if document.unapplied_amount <= 0:
            raise ValidationError(f"{self.spec.label.capitalize()} has no unapplied balance to refund")

        document.refunded_amount = document.unapplied_amount
        document.refunded_at = datetime.now(timezone.utc)
        document.status = NoteStatus.REFUNDED.value
        await self.db.flush()

        await self._log(actor, "REFUND", document, {"refunded_amount": format_money(document.refunded_amount)})
        return document

    async def cancel(self, actor: Actor, document_id: uuid.UUID, reason: Optional[str] = None) -> Any:
        document = await self.get(actor.team_id, document_id, for_update=True)
        self.spec.transitions.assert_transition(document.status, NoteStatus.CANCELLED)
        if document.applied_amount > 0 or document.applications:
            raise InvalidTransitionError(
                document.status,
                NoteStatus.CANCELLED.value,
                message=f"Cannot cancel a {self.spec.label} that has been applied",
                document_type=self.spec.document_type,
            )

        document.status = NoteStatus.CANCELLED.value
        document.cancelled_at = datetime.now(timezone.utc)
        document.cancelled_reason = reason
        await self.db.flush()

        await self._log(actor, "CANCEL", document, {"reason": reason})
        return document
