"""
Balance and application ledger.

Credit notes and customer payments settle invoices; debit notes and supplier
payments settle supplier bills. Both sides share one implementation driven
by a LedgerSide description.

BALANCE RULES:
- note:     applied_amount + unapplied_amount == total_amount
            applied_amount == sum of its application rows
- payment:  allocated_amount + unallocated_amount == amount
            allocated_amount == sum of its allocation rows
- target:   amount_paid == payments allocated + notes applied against it
            amount_due == total_amount - amount_paid

Every method runs inside the caller's transaction and leaves the commit to
it, so a failure anywhere rolls back every balance it touched.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gstbook.core.exceptions import (
    BalanceExceededError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from gstbook.core.money import ZERO, format_money, money_sum, to_money
from gstbook.core.permissions import Actor
from gstbook.core.state_machine import (
    CREDIT_NOTE_TRANSITIONS,
    DEBIT_NOTE_TRANSITIONS,
    INVOICE_TRANSITIONS,
    SUPPLIER_BILL_TRANSITIONS,
    TransitionTable,
    derive_note_status,
    settled_status,
)
from gstbook.models.audit_log import ActivityType
from gstbook.models.common import NoteStatus
from gstbook.models.credit_note import CreditNote, CreditNoteApplication
from gstbook.models.debit_note import DebitNote, DebitNoteApplication
from gstbook.models.document_sequence import DocumentType
from gstbook.models.invoice import Invoice, InvoiceStatus
from gstbook.models.payment import (
    CustomerPayment,
    PaymentAllocation,
    SupplierPayment,
    SupplierPaymentAllocation,
)
from gstbook.models.supplier_bill import SupplierBill, SupplierBillStatus
from gstbook.models.team import Customer, Supplier, Team
from gstbook.services.audit_service import ActivityLogService
from gstbook.services.calculations import calculate_amount_due, determine_payment_status
from gstbook.services.document_sequence_service import DocumentSequenceService


logger = logging.getLogger(__name__)


class LedgerImbalanceError(RuntimeError):
    """A balance rule failed after a mutation. Never expected; the action rolls back."""


@dataclass(frozen=True)
class LedgerSide:
    """Model wiring for one side of the ledger (receivable or payable)."""
    label: str
    target_model: Type[Any]
    target_fk: str
    target_number: str
    target_transitions: TransitionTable
    open_status: str
    counterparty_model: Type[Any]
    counterparty_fk: str
    counterparty_label: str
    note_model: Type[Any]
    note_label: str
    note_number: str
    note_transitions: TransitionTable
    application_model: Type[Any]
    application_note_fk: str
    payment_model: Type[Any]
    payment_number: str
    payment_sequence: str
    allocation_model: Type[Any]
    apply_activity: ActivityType
    record_activity: ActivityType
    allocate_activity: ActivityType
    delete_activity: ActivityType
    payment_entity: str


RECEIVABLE = LedgerSide(
    label="invoice",
    target_model=Invoice,
    target_fk="invoice_id",
    target_number="invoice_number",
    target_transitions=INVOICE_TRANSITIONS,
    open_status=InvoiceStatus.SENT.value,
    counterparty_model=Customer,
    counterparty_fk="customer_id",
    counterparty_label="customer",
    note_model=CreditNote,
    note_label="credit note",
    note_number="credit_note_number",
    note_transitions=CREDIT_NOTE_TRANSITIONS,
    application_model=CreditNoteApplication,
    application_note_fk="credit_note_id",
    payment_model=CustomerPayment,
    payment_number="receipt_number",
    payment_sequence=DocumentType.CUSTOMER_RECEIPT.value,
    allocation_model=PaymentAllocation,
    apply_activity=ActivityType.APPLY_CREDIT_NOTE,
    record_activity=ActivityType.RECORD_PAYMENT,
    allocate_activity=ActivityType.ALLOCATE_PAYMENT,
    delete_activity=ActivityType.DELETE_PAYMENT,
    payment_entity="CUSTOMER_PAYMENT",
)

PAYABLE = LedgerSide(
    label="bill",
    target_model=SupplierBill,
    target_fk="bill_id",
    target_number="bill_number",
    target_transitions=SUPPLIER_BILL_TRANSITIONS,
    open_status=SupplierBillStatus.ISSUED.value,
    counterparty_model=Supplier,
    counterparty_fk="supplier_id",
    counterparty_label="supplier",
    note_model=DebitNote,
    note_label="debit note",
    note_number="debit_note_number",
    note_transitions=DEBIT_NOTE_TRANSITIONS,
    application_model=DebitNoteApplication,
    application_note_fk="debit_note_id",
    payment_model=SupplierPayment,
    payment_number="payment_number",
    payment_sequence=DocumentType.SUPPLIER_PAYMENT.value,
    allocation_model=SupplierPaymentAllocation,
    apply_activity=ActivityType.APPLY_DEBIT_NOTE,
    record_activity=ActivityType.RECORD_SUPPLIER_PAYMENT,
    allocate_activity=ActivityType.ALLOCATE_SUPPLIER_PAYMENT,
    delete_activity=ActivityType.DELETE_SUPPLIER_PAYMENT,
    payment_entity="SUPPLIER_PAYMENT",
)

APPLICABLE_NOTE_STATUSES = {NoteStatus.ISSUED.value, NoteStatus.PARTIAL.value}


def assert_balanced(entity: Any) -> None:
    """
    Check the balance rules of a note, payment or payable document.

    Raises LedgerImbalanceError; callers let it propagate so the whole
    action rolls back.
    """
    if hasattr(entity, "unapplied_amount"):
        applied = to_money(entity.applied_amount)
        if applied + to_money(entity.unapplied_amount) != to_money(entity.total_amount):
            raise LedgerImbalanceError(f"Note {entity.id}: applied + unapplied != total")
        if money_sum(a.applied_amount for a in entity.applications) != applied:
            raise LedgerImbalanceError(f"Note {entity.id}: applications do not sum to applied amount")
        if entity.unapplied_amount < 0:
            raise LedgerImbalanceError(f"Note {entity.id}: negative unapplied amount")
    elif hasattr(entity, "unallocated_amount"):
        allocated = to_money(entity.allocated_amount)
        if allocated + to_money(entity.unallocated_amount) != to_money(entity.amount):
            raise LedgerImbalanceError(f"Payment {entity.id}: allocated + unallocated != amount")
        if money_sum(a.allocated_amount for a in entity.allocations) != allocated:
            raise LedgerImbalanceError(f"Payment {entity.id}: allocations do not sum to allocated amount")
        if entity.unallocated_amount < 0:
            raise LedgerImbalanceError(f"Payment {entity.id}: negative unallocated amount")
    elif hasattr(entity, "amount_due"):
        if entity.amount_paid < 0 or entity.amount_due < 0:
            raise LedgerImbalanceError(f"Document {entity.id}: negative balance")
        if to_money(entity.amount_paid) + to_money(entity.amount_due) < to_money(entity.total_amount):
            raise LedgerImbalanceError(f"Document {entity.id}: paid + due below total")


class LedgerService:
    """Applications of notes and allocations of payments against documents."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityLogService(db)
        self.sequences = DocumentSequenceService(db)

    # ==================== LOOKUPS ====================

    async def _get_for_update(self, model: Type[Any], team_id: uuid.UUID, entity_id: uuid.UUID, label: str) -> Any:
        result = await self.db.execute(
            select(model)
            .where(model.id == entity_id, model.team_id == team_id)
            .with_for_update(of=model)
            .execution_options(populate_existing=True)
        )
        entity = result.unique().scalar_one_or_none()
        if entity is None:
            raise NotFoundError(label.capitalize())
        return entity

    async def _get_counterparty(self, side: LedgerSide, team_id: uuid.UUID, counterparty_id: uuid.UUID) -> Any:
        model = side.counterparty_model
        result = await self.db.execute(
            select(model).where(model.id == counterparty_id, model.team_id == team_id)
        )
        counterparty = result.scalar_one_or_none()
        if counterparty is None:
            raise NotFoundError(side.counterparty_label.capitalize())
        return counterparty

    # ==================== TARGET BALANCES ====================

    def _assert_target_accepts(
        self,
        side: LedgerSide,
        target: Any,
        counterparty_id: uuid.UUID,
        currency: str,
        amount: Decimal,
    ) -> None:
        number = getattr(target, side.target_number)
        if getattr(target, side.counterparty_fk) != counterparty_id:
            raise ValidationError(
                f"{side.label.capitalize()} {number} belongs to a different {side.counterparty_label}"
            )
        if target.currency != currency:
            raise ValidationError(
                f"Currency mismatch: {side.label} {number} is in {target.currency}, not {currency}"
            )
        if target.status not in (side.open_status, "PAID"):
            raise InvalidTransitionError(
                target.status,
                "PAID",
                message=f"Cannot apply amounts to a {target.status.lower()} {side.label}",
                document_type=side.target_transitions.document_type,
            )
        if amount > to_money(target.amount_due):
            raise BalanceExceededError(
                f"Amount {format_money(amount)} exceeds the amount due on {side.label} "
                f"{number} ({format_money(target.amount_due)})",
                details={"amount_due": format_money(target.amount_due)},
            )

    def _settle(self, side: LedgerSide, target: Any, delta: Decimal) -> None:
        """Move ``delta`` onto (or, if negative, off) a target's paid amount."""
        target.amount_paid = to_money(target.amount_paid + delta)
        target.amount_due = calculate_amount_due(target.total_amount, target.amount_paid)
        target.payment_status = determine_payment_status(target.total_amount, target.amount_paid)
        target.status = settled_status(
            side.target_transitions,
            target.status,
            target.payment_status,
            open_status=side.open_status,
        )
        assert_balanced(target)

    def _restore_note(self, side: LedgerSide, note: Any, amount: Decimal) -> None:
        note.applied_amount = to_money(note.applied_amount - amount)
        note.unapplied_amount = to_money(note.unapplied_amount + amount)
        if note.status == NoteStatus.REFUNDED.value:
            # Refunded notes stay closed; released credit is owed back with the refund
            note.refunded_amount = to_money(note.refunded_amount + amount)
            return
        new_status = derive_note_status(note.total_amount, note.unapplied_amount)
        if new_status != note.status:
            side.note_transitions.assert_transition(note.status, new_status, system=True)
            note.status = new_status

    @staticmethod
    def _normalize_allocations(allocations: Iterable[Tuple[uuid.UUID, Any]]) -> List[Tuple[uuid.UUID, Decimal]]:
        normalized: List[Tuple[uuid.UUID, Decimal]] = []
        seen = set()
        for target_id, amount in allocations:
            amount = to_money(amount)
            if amount <= 0:
                raise ValidationError("Allocation amounts must be greater than zero")
            if target_id in seen:
                raise ValidationError("Each document can only be allocated once per payment")
            seen.add(target_id)
            normalized.append((target_id, amount))
        return normalized

    # ==================== NOTE APPLICATION ====================

    async def _apply_note(
        self,
        side: LedgerSide,
        actor: Actor,
        note_id: uuid.UUID,
        target_id: uuid.UUID,
        amount: Any,
        application_date: Optional[date] = None,
    ) -> Any:
        note = await self._get_for_update(side.note_model, actor.team_id, note_id, side.note_label)
        if note.status not in APPLICABLE_NOTE_STATUSES:
            raise InvalidTransitionError(
                note.status,
                NoteStatus.APPLIED.value,
                message=f"Only issued {side.note_label}s can be applied",
                document_type=side.note_transitions.document_type,
            )

        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        if amount > to_money(note.unapplied_amount):
            raise BalanceExceededError(
                f"Amount exceeds the unapplied balance of the {side.note_label} "
                f"({format_money(note.unapplied_amount)})",
                details={"unapplied_amount": format_money(note.unapplied_amount)},
            )

        target = await self._get_for_update(side.target_model, actor.team_id, target_id, side.label)
        self._assert_target_accepts(
            side, target, getattr(note, side.counterparty_fk), note.currency, amount
        )

        application = side.application_model(
            team_id=actor.team_id,
            applied_amount=amount,
            application_date=application_date or date.today(),
            created_by=actor.user_id,
            **{side.application_note_fk: note.id, side.target_fk: target.id},
        )
        note.applications.append(application)

        note.applied_amount = to_money(note.applied_amount + amount)
        note.unapplied_amount = to_money(note.unapplied_amount - amount)
        new_status = derive_note_status(note.total_amount, note.unapplied_amount)
        side.note_transitions.assert_transition(note.status, new_status, system=True)
        note.status = new_status
        assert_balanced(note)

        self._settle(side, target, amount)
        await self.db.flush()

        await self.activity.log(
            actor.team_id,
            side.apply_activity,
            user_id=actor.user_id,
            entity_type=side.note_transitions.document_type,
            entity_id=note.id,
            description=getattr(note, side.note_number),
            details={
                side.target_fk: str(target.id),
                side.target_number: getattr(target, side.target_number),
                "amount": format_money(amount),
            },
        )
        logger.info(
            "Applied %s of %s %s to %s",
            format_money(amount), side.note_label, getattr(note, side.note_number),
            getattr(target, side.target_number),
        )
        return application

    async def apply_credit_note(
        self,
        actor: Actor,
        credit_note_id: uuid.UUID,
        invoice_id: uuid.UUID,
        amount: Any,
        application_date: Optional[date] = None,
    ) -> CreditNoteApplication:
        """Apply part of an issued credit note's balance to an invoice."""
        return await self._apply_note(RECEIVABLE, actor, credit_note_id, invoice_id, amount, application_date)

    async def apply_debit_note(
        self,
        actor: Actor,
        debit_note_id: uuid.UUID,
        bill_id: uuid.UUID,
        amount: Any,
        application_date: Optional[date] = None,
    ) -> DebitNoteApplication:
        """Apply part of an issued debit note's balance to a supplier bill."""
        return await self._apply_note(PAYABLE, actor, debit_note_id, bill_id, amount, application_date)

    # ==================== PAYMENTS ====================

    async def _allocate(
        self,
        side: LedgerSide,
        actor: Actor,
        payment: Any,
        allocations: Sequence[Tuple[uuid.UUID, Decimal]],
    ) -> List[Dict[str, str]]:
        counterparty_id = getattr(payment, side.counterparty_fk)
        applied: List[Dict[str, str]] = []
        # Lock targets in a stable order so concurrent payments cannot deadlock
        for target_id, amount in sorted(allocations, key=lambda pair: str(pair[0])):
            target = await self._get_for_update(side.target_model, actor.team_id, target_id, side.label)
            self._assert_target_accepts(side, target, counterparty_id, payment.currency, amount)

            payment.allocations.append(side.allocation_model(
                allocated_amount=amount,
                **{side.target_fk: target.id},
            ))
            payment.allocated_amount = to_money(payment.allocated_amount + amount)
            payment.unallocated_amount = to_money(payment.unallocated_amount - amount)
            self._settle(side, target, amount)
            applied.append({
                "document_id": str(target.id),
                "document_number": getattr(target, side.target_number),
                "amount": format_money(amount),
            })
        assert_balanced(payment)
        return applied

    async def _record_payment(
        self,
        side: LedgerSide,
        actor: Actor,
        counterparty_id: uuid.UUID,
        amount: Any,
        payment_date: date,
        allocations: Iterable[Tuple[uuid.UUID, Any]] = (),
        payment_method: str = "BANK_TRANSFER",
        currency: Optional[str] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Tuple[Any, List[Dict[str, str]]]:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        allocations = self._normalize_allocations(allocations)
        allocated_total = money_sum(a for _, a in allocations)
        if allocated_total > amount:
            raise BalanceExceededError(
                f"Total allocations ({format_money(allocated_total)}) exceed the payment amount "
                f"({format_money(amount)})"
            )

        await self._get_counterparty(side, actor.team_id, counterparty_id)
        if not currency:
            team = await self.db.get(Team, actor.team_id)
            if team is None:
                raise NotFoundError("Team")
            currency = team.default_currency

        number = await self.sequences.get_next_number(
            actor.team_id, side.payment_sequence, year=payment_date.year
        )
        payment = side.payment_model(
            team_id=actor.team_id,
            payment_date=payment_date,
            payment_method=payment_method,
            amount=amount,
            allocated_amount=ZERO,
            unallocated_amount=amount,
            reference=reference,
            notes=notes,
            created_by=actor.user_id,
            currency=currency.upper(),
            allocations=[],
            **{side.payment_number: number, side.counterparty_fk: counterparty_id},
        )
        self.db.add(payment)

        applied = await self._allocate(side, actor, payment, allocations)
        await self.db.flush()

        await self.activity.log(
            actor.team_id,
            side.record_activity,
            user_id=actor.user_id,
            entity_type=side.payment_entity,
            entity_id=payment.id,
            description=number,
            details={"amount": format_money(amount), "allocations": applied},
        )
        logger.info("Recorded %s %s for %s", side.payment_entity.lower(), number, format_money(amount))
        return payment, applied

    async def record_customer_payment(self, actor: Actor, customer_id: uuid.UUID, amount: Any, payment_date: date, **kwargs: Any):
        """
        Record money received from a customer, optionally split across invoices.

        ``allocations`` is a list of ``(invoice_id, amount)`` pairs. Any
        remainder stays on the payment as an unallocated advance.

        Returns:
            (CustomerPayment, list of applied allocation summaries)
        """
        return await self._record_payment(RECEIVABLE, actor, customer_id, amount, payment_date, **kwargs)

    async def record_supplier_payment(self, actor: Actor, supplier_id: uuid.UUID, amount: Any, payment_date: date, **kwargs: Any):
        """Supplier side of ``record_customer_payment``."""
        return await self._record_payment(PAYABLE, actor, supplier_id, amount, payment_date, **kwargs)

    async def _allocate_existing(
        self,
        side: LedgerSide,
        actor: Actor,
        payment_id: uuid.UUID,
        allocations: Iterable[Tuple[uuid.UUID, Any]],
    ) -> Tuple[Any, List[Dict[str, str]]]:
        payment = await self._get_for_update(side.payment_model, actor.team_id, payment_id, "payment")
        allocations = self._normalize_allocations(allocations)
        if not allocations:
            raise ValidationError("At least one allocation is required")

        requested = money_sum(a for _, a in allocations)
        if requested > to_money(payment.unallocated_amount):
            raise BalanceExceededError(
                f"Total allocations ({format_money(requested)}) exceed the unallocated balance "
                f"({format_money(payment.unallocated_amount)})"
            )

        existing = {getattr(a, side.target_fk) for a in payment.allocations}
        if any(target_id in existing for target_id, _ in allocations):
            raise ValidationError(f"Payment is already allocated to one of these {side.label}s")

        applied = await self._allocate(side, actor, payment, allocations)
        await self.db.flush()

        await self.activity.log(
            actor.team_id,
            side.allocate_activity,
            user_id=actor.user_id,
            entity_type=side.payment_entity,
            entity_id=payment.id,
            description=getattr(payment, side.payment_number),
            details={"allocations": applied},
        )
        return payment, applied

    async def allocate_customer_payment(self, actor: Actor, payment_id: uuid.UUID, allocations: Iterable[Tuple[uuid.UUID, Any]]):
        """Allocate the unallocated balance of an existing receipt."""
        return await self._allocate_existing(RECEIVABLE, actor, payment_id, allocations)

    async def allocate_supplier_payment(self, actor: Actor, payment_id: uuid.UUID, allocations: Iterable[Tuple[uuid.UUID, Any]]):
        return await self._allocate_existing(PAYABLE, actor, payment_id, allocations)

    async def _delete_payment(self, side: LedgerSide, actor: Actor, payment_id: uuid.UUID) -> str:
        payment = await self._get_for_update(side.payment_model, actor.team_id, payment_id, "payment")
        number = getattr(payment, side.payment_number)

        for allocation in sorted(payment.allocations, key=lambda a: str(getattr(a, side.target_fk))):
            target = await self._get_for_update(
                side.target_model, actor.team_id, getattr(allocation, side.target_fk), side.label
            )
            self._settle(side, target, -to_money(allocation.allocated_amount))

        await self.db.delete(payment)
        await self.db.flush()

        await self.activity.log(
            actor.team_id,
            side.delete_activity,
            user_id=actor.user_id,
            entity_type=side.payment_entity,
            entity_id=payment_id,
            description=number,
            details={"amount": format_money(payment.amount)},
        )
        logger.info("Deleted %s %s", side.payment_entity.lower(), number)
        return number

    async def delete_customer_payment(self, actor: Actor, payment_id: uuid.UUID) -> str:
        """Reverse every allocation of a receipt, then delete it."""
        return await self._delete_payment(RECEIVABLE, actor, payment_id)

    async def delete_supplier_payment(self, actor: Actor, payment_id: uuid.UUID) -> str:
        return await self._delete_payment(PAYABLE, actor, payment_id)

    async def get_payments(self, side: LedgerSide, team_id: uuid.UUID, counterparty_id: Optional[uuid.UUID] = None) -> List[Any]:
        model = side.payment_model
        stmt = select(model).where(model.team_id == team_id).order_by(model.payment_date, getattr(model, side.payment_number))
        if counterparty_id:
            stmt = stmt.where(getattr(model, side.counterparty_fk) == counterparty_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_payment(self, side: LedgerSide, team_id: uuid.UUID, payment_id: uuid.UUID) -> Any:
        model = side.payment_model
        result = await self.db.execute(
            select(model).where(model.id == payment_id, model.team_id == team_id)
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment")
        return payment

    # ==================== CANCELLATION ====================

    async def reverse_document_allocations(self, side: LedgerSide, actor: Actor, target: Any, reason: Optional[str] = None) -> Dict[str, int]:
        """
        Undo everything that settled ``target`` before it is cancelled.

        Payment allocations go back to their payments' unallocated balance
        and the payments are stamped as reversed; note applications go back
        to the notes' unapplied balance. The target's own balances are left
        for the caller to reset.
        """
        number = getattr(target, side.target_number)
        target_fk_column = getattr(side.allocation_model, side.target_fk)
        allocation_rows = (await self.db.execute(
            select(side.allocation_model).where(target_fk_column == target.id)
        )).scalars().all()

        reversed_payments = 0
        now = datetime.now(timezone.utc)
        for payment_id in sorted({a.payment_id for a in allocation_rows}, key=str):
            payment = await self._get_for_update(side.payment_model, actor.team_id, payment_id, "payment")
            for allocation in [a for a in payment.allocations if getattr(a, side.target_fk) == target.id]:
                payment.allocated_amount = to_money(payment.allocated_amount - allocation.allocated_amount)
                payment.unallocated_amount = to_money(payment.unallocated_amount + allocation.allocated_amount)
                payment.allocations.remove(allocation)
                reversed_payments += 1
            payment.reversed_at = now
            payment.reversed_reason = reason or f"Auto-reversed due to {side.label} {number} cancellation"
            assert_balanced(payment)

        application_fk_column = getattr(side.application_model, side.target_fk)
        application_rows = (await self.db.execute(
            select(side.application_model).where(application_fk_column == target.id)
        )).scalars().all()

        reversed_notes = 0
        note_fk = side.application_note_fk
        for note_id in sorted({getattr(a, note_fk) for a in application_rows}, key=str):
            note = await self._get_for_update(side.note_model, actor.team_id, note_id, side.note_label)
            for application in [a for a in note.applications if getattr(a, side.target_fk) == target.id]:
                note.applications.remove(application)
                self._restore_note(side, note, to_money(application.applied_amount))
                reversed_notes += 1
            assert_balanced(note)

        await self.db.flush()
        if reversed_payments or reversed_notes:
            logger.info(
                "Reversed %d allocation(s) and %d note application(s) on %s %s",
                reversed_payments, reversed_notes, side.label, number,
            )
        return {"payment_allocations": reversed_payments, "note_applications": reversed_notes}
