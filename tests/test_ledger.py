"""Note applications, payment allocations and their reversal."""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from gstbook.core.exceptions import (
    BalanceExceededError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from gstbook.models.credit_note import CreditNoteApplication
from gstbook.models.payment import CustomerPayment, PaymentAllocation
from gstbook.models.team import Team
from gstbook.services.credit_note_service import CreditNoteService
from gstbook.services.debit_note_service import DebitNoteService
from gstbook.services.document_sequence_service import DocumentSequenceService
from gstbook.services.invoice_service import InvoiceService
from gstbook.services.ledger_service import PAYABLE, RECEIVABLE, LedgerImbalanceError, LedgerService, assert_balanced
from gstbook.services.supplier_bill_service import SupplierBillService
from tests.conftest import bill_data, invoice_data, line


async def sent_invoice(db, seed, actor, unit_price="100", **extra):
    service = InvoiceService(db)
    invoice = await service.create(actor, invoice_data(seed, items=[line(unit_price=unit_price, tax_rate="5")], **extra))
    return await service.send(actor, invoice.id)


async def issued_credit_note(db, seed, actor, amount="100", issue=True):
    service = CreditNoteService(db)
    note = await service.create(actor, {
        "customer_id": seed.customer_id,
        "credit_note_date": date(2025, 1, 20),
        "reason": "Price adjustment",
        "items": [line(unit_price=amount, tax_rate="0")],
    })
    if issue:
        note = await service.issue(actor, note.id)
    return note


def assert_conserved(note=None, *targets):
    if note is not None:
        assert note.applied_amount + note.unapplied_amount == note.total_amount
    for target in targets:
        assert target.amount_paid + target.amount_due == target.total_amount


# ==================== CREDIT NOTES ====================

async def test_apply_credit_note_partially_then_fully(db, seed, member):
    invoice = await sent_invoice(db, seed, member)
    note = await issued_credit_note(db, seed, member, amount="100")
    ledger = LedgerService(db)

    application = await ledger.apply_credit_note(member, note.id, invoice.id, "40")
    assert application.applied_amount == Decimal("40.00")
    assert note.status == "PARTIAL"
    assert note.unapplied_amount == Decimal("60.00")
    assert invoice.amount_paid == Decimal("40.00")
    assert invoice.amount_due == Decimal("65.00")
    assert invoice.payment_status == "PARTIAL"
    assert invoice.status == "SENT"
    assert_conserved(note, invoice)

    await ledger.apply_credit_note(member, note.id, invoice.id, "60")
    assert note.status == "APPLIED"
    assert note.unapplied_amount == Decimal("0.00")
    assert invoice.amount_due == Decimal("5.00")
    assert_conserved(note, invoice)

    with pytest.raises(InvalidTransitionError, match="Only issued credit notes"):
        await ledger.apply_credit_note(member, note.id, invoice.id, "1")


async def test_credit_note_settles_invoice(db, seed, member):
    invoice = await sent_invoice(db, seed, member, unit_price="100")
    note = await issued_credit_note(db, seed, member, amount="200")

    await LedgerService(db).apply_credit_note(member, note.id, invoice.id, "105")

    assert invoice.status == "PAID"
    assert invoice.payment_status == "PAID"
    assert invoice.amount_due == Decimal("0.00")
    assert note.status == "PARTIAL"


async def test_apply_draft_credit_note_fails(db, seed, member):
    invoice = await sent_invoice(db, seed, member)
    note = await issued_credit_note(db, seed, member, issue=False)

    with pytest.raises(InvalidTransitionError):
        await LedgerService(db).apply_credit_note(member, note.id, invoice.id, "10")


async def test_apply_to_draft_invoice_fails(db, seed, member):
    invoice = await InvoiceService(db).create(member, invoice_data(seed))
    note = await issued_credit_note(db, seed, member)

    with pytest.raises(InvalidTransitionError, match="draft invoice"):
        await LedgerService(db).apply_credit_note(member, note.id, invoice.id, "10")


async def test_apply_more_than_invoice_due_fails(db, seed, member):
    invoice = await sent_invoice(db, seed, member, unit_price="20")
    note = await issued_credit_note(db, seed, member, amount="100")

    with pytest.raises(BalanceExceededError, match="exceeds the amount due"):
        await LedgerService(db).apply_credit_note(member, note.id, invoice.id, "50")


async def test_over_application_leaves_balances_unchanged(db, seed, member):
    invoice = await sent_invoice(db, seed, member, unit_price="200")
    note = await issued_credit_note(db, seed, member, amount="100")
    note_id, invoice_id = note.id, invoice.id
    await db.commit()

    with pytest.raises(BalanceExceededError, match="unapplied balance"):
        await LedgerService(db).apply_credit_note(member, note_id, invoice_id, "150")
    await db.rollback()

    note = await CreditNoteService(db).get(seed.team_id, note_id)
    invoice = await InvoiceService(db).get(seed.team_id, invoice_id)
    assert note.status == "ISSUED"
    assert note.applied_amount == Decimal("0.00")
    assert note.unapplied_amount == Decimal("100.00")
    assert invoice.amount_paid == Decimal("0.00")
    assert invoice.amount_due == Decimal("210.00")
    applications = (await db.execute(select(func.count()).select_from(CreditNoteApplication))).scalar()
    assert applications == 0


async def test_credit_note_for_another_customer(db, seed, member):
    invoice = await sent_invoice(db, seed, member, customer_id=seed.other_customer_id)
    note = await issued_credit_note(db, seed, member)

    with pytest.raises(ValidationError, match="different customer"):
        await LedgerService(db).apply_credit_note(member, note.id, invoice.id, "10")


async def test_applied_note_cannot_be_cancelled(db, seed, member):
    invoice = await sent_invoice(db, seed, member)
    note = await issued_credit_note(db, seed, member)
    await LedgerService(db).apply_credit_note(member, note.id, invoice.id, "10")

    with pytest.raises(InvalidTransitionError, match="has been applied"):
        await CreditNoteService(db).cancel(member, note.id)


# ==================== CUSTOMER PAYMENTS ====================

async def test_record_payment_split_across_invoices(db, seed, member):
    first = await sent_invoice(db, seed, member, unit_price="100")
    second = await sent_invoice(db, seed, member, unit_price="200")

    payment, applied = await LedgerService(db).record_customer_payment(
        member,
        seed.customer_id,
        "400",
        date(2025, 2, 1),
        allocations=[(first.id, "105"), (second.id, "100")],
        reference="UTR-1001",
    )

    assert payment.receipt_number == "RCP-2025-0001"
    assert payment.allocated_amount == Decimal("205.00")
    assert payment.unallocated_amount == Decimal("195.00")
    assert len(applied) == 2
    assert first.status == "PAID"
    assert second.status == "SENT"
    assert second.payment_status == "PARTIAL"
    assert_conserved(None, first, second)
    assert_balanced(payment)


async def test_allocations_cannot_exceed_payment(db, seed, member):
    invoice = await sent_invoice(db, seed, member)

    with pytest.raises(BalanceExceededError, match="exceed the payment amount"):
        await LedgerService(db).record_customer_payment(
            member, seed.customer_id, "50", date(2025, 2, 1), allocations=[(invoice.id, "60")]
        )


async def test_payment_currency_must_match(db, seed, member):
    invoice = await sent_invoice(db, seed, member)

    with pytest.raises(ValidationError, match="Currency mismatch"):
        await LedgerService(db).record_customer_payment(
            member, seed.customer_id, "50", date(2025, 2, 1), allocations=[(invoice.id, "50")], currency="USD"
        )


async def test_payment_defaults_to_team_currency(db, seed, member):
    team = await db.get(Team, seed.team_id)
    team.default_currency = "BTN"
    await db.flush()
    invoice = await sent_invoice(db, seed, member)
    assert invoice.currency == "BTN"

    payment, _ = await LedgerService(db).record_customer_payment(
        member, seed.customer_id, "105", date(2025, 2, 1), allocations=[(invoice.id, "105")]
    )

    assert payment.currency == "BTN"
    assert invoice.status == "PAID"


async def test_failing_allocation_rolls_back_whole_payment(db, seed, member):
    first = await sent_invoice(db, seed, member)
    second = await sent_invoice(db, seed, member)
    # Allocations are processed in id order; the later one fails after the earlier one settled
    earlier_id, later_id = sorted([first.id, second.id], key=str)
    await db.commit()

    with pytest.raises(BalanceExceededError, match="exceeds the amount due"):
        await LedgerService(db).record_customer_payment(
            member, seed.customer_id, "500", date(2025, 2, 1),
            allocations=[(earlier_id, "10"), (later_id, "400")],
        )
    await db.rollback()

    invoices = InvoiceService(db)
    for invoice_id in (earlier_id, later_id):
        invoice = await invoices.get(seed.team_id, invoice_id)
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.amount_due == Decimal("105.00")
        assert invoice.status == "SENT"
    payments = (await db.execute(select(func.count()).select_from(CustomerPayment))).scalar()
    assert payments == 0
    assert await DocumentSequenceService(db).preview_next_number(
        seed.team_id, "CUSTOMER_RECEIPT", year=2025
    ) == "RCP-2025-0001"


async def test_allocate_advance_later(db, seed, member):
    ledger = LedgerService(db)
    payment, applied = await ledger.record_customer_payment(member, seed.customer_id, "150", date(2025, 2, 1))
    assert applied == []
    assert payment.unallocated_amount == Decimal("150.00")

    invoice = await sent_invoice(db, seed, member)
    payment, applied = await ledger.allocate_customer_payment(member, payment.id, [(invoice.id, "105")])

    assert payment.unallocated_amount == Decimal("45.00")
    assert invoice.status == "PAID"

    with pytest.raises(BalanceExceededError):
        await ledger.allocate_customer_payment(member, payment.id, [(invoice.id, "50")])


async def test_delete_payment_reopens_invoice(db, seed, member):
    invoice = await sent_invoice(db, seed, member)
    ledger = LedgerService(db)
    payment, _ = await ledger.record_customer_payment(
        member, seed.customer_id, "105", date(2025, 2, 1), allocations=[(invoice.id, "105")]
    )
    assert invoice.status == "PAID"

    assert await ledger.delete_customer_payment(member, payment.id) == "RCP-2025-0001"

    assert invoice.status == "SENT"
    assert invoice.amount_paid == Decimal("0.00")
    assert invoice.payment_status == "UNPAID"
    with pytest.raises(NotFoundError):
        await ledger.get_payment(RECEIVABLE, seed.team_id, payment.id)


# ==================== CANCELLATION ====================

async def test_cancel_reverses_payment_allocations(db, seed, member):
    invoice = await sent_invoice(db, seed, member)
    ledger = LedgerService(db)
    first, _ = await ledger.record_customer_payment(
        member, seed.customer_id, "60", date(2025, 2, 1), allocations=[(invoice.id, "60")]
    )
    second, _ = await ledger.record_customer_payment(
        member, seed.customer_id, "45", date(2025, 2, 2), allocations=[(invoice.id, "45")]
    )
    assert invoice.status == "PAID"

    cancelled, counts = await InvoiceService(db).cancel(member, invoice.id, "Order withdrawn")

    assert counts == {"payment_allocations": 2, "note_applications": 0}
    assert cancelled.status == "CANCELLED"
    assert cancelled.amount_paid == Decimal("0.00")
    assert cancelled.amount_due == cancelled.total_amount
    for payment, amount in ((first, "60.00"), (second, "45.00")):
        payment = await ledger.get_payment(RECEIVABLE, seed.team_id, payment.id)
        assert payment.unallocated_amount == Decimal(amount)
        assert payment.allocated_amount == Decimal("0.00")
        assert payment.allocations == []
        assert payment.reversed_at is not None
    remaining = (await db.execute(
        select(func.count()).select_from(PaymentAllocation).where(PaymentAllocation.invoice_id == invoice.id)
    )).scalar()
    assert remaining == 0


async def test_cancel_restores_credit_note_balance(db, seed, member):
    invoice = await sent_invoice(db, seed, member)
    note = await issued_credit_note(db, seed, member, amount="100")
    await LedgerService(db).apply_credit_note(member, note.id, invoice.id, "100")
    assert note.status == "APPLIED"

    _, counts = await InvoiceService(db).cancel(member, invoice.id)

    assert counts == {"payment_allocations": 0, "note_applications": 1}
    note = await CreditNoteService(db).get(seed.team_id, note.id)
    assert note.status == "ISSUED"
    assert note.unapplied_amount == Decimal("100.00")
    assert note.applications == []
    assert_conserved(note)


async def test_cancel_after_refund_keeps_note_refunded(db, seed, member):
    invoice = await sent_invoice(db, seed, member)
    notes = CreditNoteService(db)
    note = await issued_credit_note(db, seed, member, amount="100")
    await LedgerService(db).apply_credit_note(member, note.id, invoice.id, "40")
    note = await notes.refund(member, note.id)
    assert note.refunded_amount == Decimal("60.00")

    cancelled, counts = await InvoiceService(db).cancel(member, invoice.id)

    assert cancelled.status == "CANCELLED"
    assert counts == {"payment_allocations": 0, "note_applications": 1}
    note = await notes.get(seed.team_id, note.id)
    assert note.status == "REFUNDED"
    assert note.applied_amount == Decimal("0.00")
    assert note.unapplied_amount == Decimal("100.00")
    assert note.refunded_amount == Decimal("100.00")
    assert note.applications == []
    assert_conserved(note)


async def test_cancel_bill_after_debit_note_refund(db, seed, member):
    bills = SupplierBillService(db)
    bill = await bills.create(member, bill_data(seed, items=[line(unit_price="400", tax_rate="5")]))
    bill = await bills.issue(member, bill.id)
    notes = DebitNoteService(db)
    note = await notes.create(member, {
        "supplier_id": seed.supplier_id,
        "debit_note_date": date(2025, 1, 28),
        "reason": "Damaged stock",
        "items": [line(unit_price="50", tax_rate="0")],
    })
    note = await notes.issue(member, note.id)
    await LedgerService(db).apply_debit_note(member, note.id, bill.id, "20")
    await notes.refund(member, note.id)

    cancelled, counts = await bills.cancel(member, bill.id)

    assert cancelled.status == "CANCELLED"
    assert counts == {"payment_allocations": 0, "note_applications": 1}
    note = await notes.get(seed.team_id, note.id)
    assert note.status == "REFUNDED"
    assert note.unapplied_amount == Decimal("50.00")
    assert note.refunded_amount == Decimal("50.00")
    assert_conserved(note)


# ==================== PAYABLE SIDE ====================

async def test_debit_note_and_supplier_payment_settle_bill(db, seed, member):
    bills = SupplierBillService(db)
    bill = await bills.create(member, bill_data(seed, items=[line(unit_price="400", tax_rate="5")]))
    bill = await bills.issue(member, bill.id)

    notes = DebitNoteService(db)
    note = await notes.create(member, {
        "supplier_id": seed.supplier_id,
        "bill_id": bill.id,
        "debit_note_date": date(2025, 1, 28),
        "reason": "Short supply",
        "items": [line(unit_price="20", tax_rate="0")],
    })
    note = await notes.issue(member, note.id)

    ledger = LedgerService(db)
    await ledger.apply_debit_note(member, note.id, bill.id, "20")
    assert bill.amount_due == Decimal("400.00")
    assert note.status == "APPLIED"

    payment, applied = await ledger.record_supplier_payment(
        member, seed.supplier_id, "400", date(2025, 2, 5), allocations=[(bill.id, "400")]
    )
    assert payment.payment_number == "PAY-2025-0001"
    assert bill.status == "PAID"
    assert_conserved(note, bill)

    _, counts = await bills.cancel(member, bill.id)
    assert counts == {"payment_allocations": 1, "note_applications": 1}
    payment = await ledger.get_payment(PAYABLE, seed.team_id, payment.id)
    assert payment.unallocated_amount == Decimal("400.00")


def test_assert_balanced_detects_drift():
    class Note:
        id = "n1"
        applied_amount = Decimal("10.00")
        unapplied_amount = Decimal("80.00")
        total_amount = Decimal("100.00")
        applications = []

    with pytest.raises(LedgerImbalanceError):
        assert_balanced(Note())
