"""Document lifecycle: create, edit, delete and status moves."""
from datetime import date
from decimal import Decimal

import pytest

from gstbook.core.exceptions import (
    BalanceExceededError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from gstbook.models.team import Team
from gstbook.services.audit_service import ActivityLogService
from gstbook.services.credit_note_service import CreditNoteService
from gstbook.services.debit_note_service import DebitNoteService
from gstbook.services.invoice_service import InvoiceService
from gstbook.services.quotation_service import QuotationService
from gstbook.services.supplier_bill_service import SupplierBillService
from tests.conftest import bill_data, invoice_data, line


def credit_note_data(seed, amount="100.00", invoice_id=None, **extra):
    data = {
        "customer_id": seed.customer_id,
        "credit_note_date": date(2025, 1, 25),
        "reason": "Damaged goods returned",
        "invoice_id": invoice_id,
        "items": [line(unit_price=amount, tax_rate="0")],
    }
    data.update(extra)
    return data


# ==================== INVOICES ====================

async def test_create_invoice(db, seed, member):
    invoice = await InvoiceService(db).create(member, invoice_data(seed, items=[
        line(quantity="3", unit_price="33.335", tax_rate="5"),
        line(quantity="1", unit_price="200", tax_rate="0"),
    ]))

    assert invoice.invoice_number == "INV-2025-0001"
    assert invoice.status == "DRAFT"
    assert invoice.currency == "INR"
    assert invoice.subtotal == Decimal("300.01")
    assert invoice.total_tax == Decimal("5.00")
    assert invoice.total_amount == Decimal("305.01")
    assert invoice.amount_due == invoice.total_amount
    assert invoice.payment_status == "UNPAID"
    assert [i.gst_classification for i in invoice.items] == ["STANDARD", "ZERO_RATED"]
    assert sum(i.item_total for i in invoice.items) == invoice.total_amount


async def test_invoice_numbers_follow_the_document_year(db, seed, member):
    service = InvoiceService(db)
    first = await service.create(member, invoice_data(seed, invoice_date=date(2024, 12, 31)))
    second = await service.create(member, invoice_data(seed, invoice_date=date(2025, 1, 1)))
    third = await service.create(member, invoice_data(seed, invoice_date=date(2025, 1, 2)))

    assert [first.invoice_number, second.invoice_number, third.invoice_number] == [
        "INV-2024-0001", "INV-2025-0001", "INV-2025-0002",
    ]


async def test_create_invoice_for_another_teams_customer(db, seed, member):
    with pytest.raises(NotFoundError):
        await InvoiceService(db).create(member, invoice_data(seed, customer_id=seed.foreign_customer_id))


async def test_create_invoice_needs_items(db, seed, member):
    with pytest.raises(ValidationError):
        await InvoiceService(db).create(member, invoice_data(seed, items=[]))


async def test_update_replaces_lines(db, seed, member):
    service = InvoiceService(db)
    invoice = await service.create(member, invoice_data(seed))

    updated = await service.update(member, invoice.id, {
        "items": [line(quantity="2", unit_price="50"), line(unit_price="10", tax_rate="12")],
        "notes": "Revised",
    })

    assert len(updated.items) == 2
    assert updated.subtotal == Decimal("110.00")
    assert updated.total_tax == Decimal("6.20")
    assert updated.total_amount == Decimal("116.20")
    assert updated.amount_due == Decimal("116.20")
    assert updated.notes == "Revised"


async def test_update_keeps_date_within_numbered_year(db, seed, member):
    service = InvoiceService(db)
    invoice = await service.create(member, invoice_data(seed, invoice_date=date(2025, 12, 20)))

    moved = await service.update(member, invoice.id, {"invoice_date": date(2025, 12, 31)})
    assert moved.invoice_date == date(2025, 12, 31)

    with pytest.raises(ValidationError, match="Cannot move INV-2025-0001 to 2026"):
        await service.update(member, invoice.id, {"invoice_date": date(2026, 1, 2)})
    assert invoice.invoice_number == "INV-2025-0001"


async def test_sent_invoice_is_locked(db, seed, member):
    service = InvoiceService(db)
    invoice = await service.create(member, invoice_data(seed))
    sent = await service.send(member, invoice.id)

    assert sent.status == "SENT"
    assert sent.is_locked
    with pytest.raises(InvalidTransitionError, match="Can only edit draft invoices"):
        await service.update(member, invoice.id, {"notes": "Too late"})
    with pytest.raises(InvalidTransitionError, match="Cannot delete a sent invoice"):
        await service.delete(member, invoice.id)
    with pytest.raises(InvalidTransitionError):
        await service.send(member, invoice.id)


async def test_delete_draft_invoice(db, seed, member):
    service = InvoiceService(db)
    invoice = await service.create(member, invoice_data(seed))

    assert await service.delete(member, invoice.id) == "INV-2025-0001"
    with pytest.raises(NotFoundError):
        await service.get(seed.team_id, invoice.id)


async def test_cancel_draft_invoice(db, seed, member):
    service = InvoiceService(db)
    invoice = await service.create(member, invoice_data(seed))

    cancelled, counts = await service.cancel(member, invoice.id, "Duplicate")

    assert cancelled.status == "CANCELLED"
    assert cancelled.cancelled_reason == "Duplicate"
    assert counts == {"payment_allocations": 0, "note_applications": 0}
    with pytest.raises(InvalidTransitionError, match="already cancelled"):
        await service.cancel(member, invoice.id)


async def test_list_invoices(db, seed, member):
    service = InvoiceService(db)
    await service.create(member, invoice_data(seed))
    sent = await service.create(member, invoice_data(seed, customer_id=seed.other_customer_id))
    await service.send(member, sent.id)

    invoices, total = await service.list(seed.team_id)
    assert total == 2
    drafts, total = await service.list(seed.team_id, status="draft")
    assert total == 1 and drafts[0].status == "DRAFT"
    by_customer, total = await service.list(seed.team_id, counterparty_id=seed.other_customer_id)
    assert total == 1 and by_customer[0].id == sent.id


async def test_activity_is_logged(db, seed, member):
    invoice = await InvoiceService(db).create(member, invoice_data(seed))
    await InvoiceService(db).send(member, invoice.id)

    logs, total = await ActivityLogService(db).get_activity(seed.team_id, entity_id=invoice.id)
    assert total == 2
    assert {log.action for log in logs} == {"CREATE_INVOICE", "SEND_INVOICE"}


# ==================== SUPPLIER BILLS ====================

async def test_bill_lifecycle(db, seed, member):
    service = SupplierBillService(db)
    bill = await service.create(member, bill_data(seed, items=[
        line(unit_price="400", tax_rate="5"),
        line(unit_price="60", tax_rate="0", gst_classification="ZERO_RATED"),
        line(unit_price="40", tax_rate="0", is_tax_exempt=True),
    ], supplier_reference="PW/881"))

    assert bill.bill_number == "BILL-2025-0001"
    assert bill.total_amount == Decimal("520.00")
    assert [i.gst_classification for i in bill.items] == ["STANDARD", "ZERO_RATED", "EXEMPT"]

    issued = await service.issue(member, bill.id)
    assert issued.status == "ISSUED"
    with pytest.raises(InvalidTransitionError):
        await service.update(member, bill.id, {"notes": "x"})


async def test_bill_rejects_inconsistent_classification(db, seed, member):
    with pytest.raises(ValidationError):
        await SupplierBillService(db).create(member, bill_data(seed, items=[
            line(unit_price="100", tax_rate="5", gst_classification="ZERO_RATED"),
        ]))


# ==================== NOTES ====================

async def test_credit_note_requires_reason(db, seed, member):
    with pytest.raises(ValidationError, match="reason"):
        await CreditNoteService(db).create(member, credit_note_data(seed, reason="  "))


async def test_credit_note_cannot_exceed_linked_invoice(db, seed, member):
    invoice = await InvoiceService(db).create(member, invoice_data(seed))
    with pytest.raises(BalanceExceededError):
        await CreditNoteService(db).create(member, credit_note_data(seed, amount="500", invoice_id=invoice.id))


async def test_credit_note_linked_invoice_must_match_customer(db, seed, member):
    invoice = await InvoiceService(db).create(member, invoice_data(seed, customer_id=seed.other_customer_id))
    with pytest.raises(ValidationError, match="different customer"):
        await CreditNoteService(db).create(member, credit_note_data(seed, invoice_id=invoice.id))


async def test_issue_credit_note_twice_fails(db, seed, member):
    service = CreditNoteService(db)
    note = await service.create(member, credit_note_data(seed))
    assert note.credit_note_number == "CN-2025-0001"
    assert note.unapplied_amount == Decimal("100.00")

    issued = await service.issue(member, note.id)
    assert issued.status == "ISSUED"
    with pytest.raises(InvalidTransitionError):
        await service.issue(member, note.id)


async def test_refund_credit_note(db, seed, member):
    service = CreditNoteService(db)
    note = await service.create(member, credit_note_data(seed, amount="80"))
    with pytest.raises(InvalidTransitionError):
        await service.refund(member, note.id)

    await service.issue(member, note.id)
    refunded = await service.refund(member, note.id)

    assert refunded.status == "REFUNDED"
    assert refunded.refunded_amount == Decimal("80.00")
    assert refunded.applied_amount + refunded.unapplied_amount == refunded.total_amount
    with pytest.raises(InvalidTransitionError):
        await service.refund(member, note.id)


async def test_cancel_unapplied_credit_note(db, seed, member):
    service = CreditNoteService(db)
    note = await service.create(member, credit_note_data(seed))
    await service.issue(member, note.id)

    cancelled = await service.cancel(member, note.id, "Raised in error")
    assert cancelled.status == "CANCELLED"


async def test_note_delete_needs_admin(db, seed, member, admin):
    service = CreditNoteService(db)
    note = await service.create(member, credit_note_data(seed))

    with pytest.raises(PermissionDeniedError):
        await service.delete(member, note.id)
    assert await service.delete(admin, note.id) == "CN-2025-0001"


async def test_debit_note_lifecycle(db, seed, member):
    service = DebitNoteService(db)
    note = await service.create(member, {
        "supplier_id": seed.supplier_id,
        "debit_note_date": date(2025, 2, 3),
        "reason": "Short supply",
        "items": [line(unit_price="30", tax_rate="5")],
    })

    assert note.debit_note_number == "DN-2025-0001"
    assert note.total_amount == Decimal("31.50")
    issued = await service.issue(member, note.id)
    assert issued.status == "ISSUED"


async def test_note_lines_carry_no_discount(db, seed, member):
    note = await CreditNoteService(db).create(
        member, credit_note_data(seed, items=[line(unit_price="100", tax_rate="0", discount_percent=Decimal("10"))])
    )
    assert note.total_discount == Decimal("0.00")
    assert note.total_amount == Decimal("100.00")


# ==================== QUOTATIONS ====================

def quotation_data(seed, **extra):
    data = {
        "customer_id": seed.customer_id,
        "quotation_date": date(2025, 3, 1),
        "valid_until": date(2025, 3, 31),
        "items": [line(quantity="4", unit_price="25", tax_rate="5")],
    }
    data.update(extra)
    return data


async def test_quotation_convert(db, seed, member):
    service = QuotationService(db)
    quotation = await service.create(member, quotation_data(seed))
    assert quotation.quotation_number == "QT-2025-0001"

    with pytest.raises(InvalidTransitionError, match="Only accepted quotations"):
        await service.convert(member, quotation.id)

    await service.update_status(member, quotation.id, "SENT")
    await service.update_status(member, quotation.id, "accepted")
    converted, invoice = await service.convert(member, quotation.id, invoice_date=date(2025, 3, 5))

    assert converted.status == "CONVERTED"
    assert converted.converted_invoice_id == invoice.id
    assert invoice.invoice_number == "INV-2025-0001"
    assert invoice.status == "DRAFT"
    assert invoice.quotation_id == quotation.id
    assert invoice.total_amount == quotation.total_amount == Decimal("105.00")
    assert len(invoice.items) == 1

    with pytest.raises(InvalidTransitionError):
        await service.delete(member, quotation.id)


async def test_quotation_status_guard(db, seed, member):
    service = QuotationService(db)
    quotation = await service.create(member, quotation_data(seed))

    with pytest.raises(InvalidTransitionError):
        await service.update_status(member, quotation.id, "ACCEPTED")
    with pytest.raises(InvalidTransitionError):
        await service.update_status(member, quotation.id, "CONVERTED")

    await service.update_status(member, quotation.id, "SENT")
    updated = await service.update(member, quotation.id, {"terms": "50% advance"})
    assert updated.terms == "50% advance"


async def test_expire_overdue_quotations(db, seed, member):
    service = QuotationService(db)
    overdue = await service.create(member, quotation_data(seed, valid_until=date(2025, 3, 10)))
    current = await service.create(member, quotation_data(seed, valid_until=date(2025, 4, 30)))
    draft = await service.create(member, quotation_data(seed, valid_until=date(2025, 3, 10)))
    await service.update_status(member, overdue.id, "SENT")
    await service.update_status(member, current.id, "SENT")

    assert await service.expire_overdue(today=date(2025, 4, 1)) == 1

    assert (await service.get(seed.team_id, overdue.id)).status == "EXPIRED"
    assert (await service.get(seed.team_id, current.id)).status == "SENT"
    assert (await service.get(seed.team_id, draft.id)).status == "DRAFT"


async def test_new_team_defaults_to_btn(db):
    team = Team(name="Thimphu Supplies")
    db.add(team)
    await db.flush()

    assert team.default_currency == "BTN"
    assert team.invoice_prefix == "INV"
