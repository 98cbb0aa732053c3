"""GST aggregation, returns and period locks."""
from datetime import date
from decimal import Decimal

import pytest

from gstbook.config import settings
from gstbook.core.exceptions import (
    InvalidTransitionError,
    PeriodLockedError,
    PermissionDeniedError,
    ValidationError,
)
from gstbook.services.gst_service import (
    FILING_LOCK_REASON,
    GstService,
    calculate_due_date,
    generate_return_number,
)
from gstbook.services.invoice_service import InvoiceService
from gstbook.services.ledger_service import LedgerService
from gstbook.services.supplier_bill_service import SupplierBillService
from tests.conftest import bill_data, invoice_data, line

JAN_START, JAN_END = date(2025, 1, 1), date(2025, 1, 31)


async def paid_invoice(db, seed, actor, items, invoice_date=date(2025, 1, 15)):
    service = InvoiceService(db)
    invoice = await service.create(actor, invoice_data(seed, items=items, invoice_date=invoice_date))
    invoice = await service.send(actor, invoice.id)
    await LedgerService(db).record_customer_payment(
        actor, seed.customer_id, invoice.total_amount, invoice_date, allocations=[(invoice.id, invoice.total_amount)]
    )
    return invoice


# ==================== AGGREGATION ====================

async def test_period_aggregation(db, seed, member):
    invoice = await paid_invoice(db, seed, member, [
        line(unit_price="1000", tax_rate="5"),
        line(unit_price="200", tax_rate="0"),
    ])
    assert invoice.status == "PAID"
    await SupplierBillService(db).create(member, bill_data(seed, items=[line(unit_price="400", tax_rate="5")]))

    summary = await GstService(db).calculate_gst_for_period(seed.team_id, JAN_START, JAN_END)

    assert summary.output_gst == Decimal("50.00")
    assert summary.input_gst == Decimal("20.00")
    assert summary.net_gst_payable == Decimal("30.00")
    assert summary.sales_breakdown["standard"]["sales"] == Decimal("1000.00")
    assert summary.sales_breakdown["zero_rated"]["sales"] == Decimal("200.00")
    assert summary.sales_breakdown["zero_rated"]["gst"] == Decimal("0.00")
    assert summary.purchases_breakdown["standard"]["purchases"] == Decimal("400.00")

    as_dict = summary.as_dict()
    assert as_dict["net_gst_payable"] == "30.00"
    assert as_dict["sales_breakdown"]["standard"] == {"sales": "1000.00", "gst": "50.00"}


async def test_unpaid_invoices_are_excluded_on_cash_basis(db, seed, member):
    service = InvoiceService(db)
    invoice = await service.create(member, invoice_data(seed, items=[line(unit_price="1000", tax_rate="5")]))
    await service.send(member, invoice.id)

    summary = await GstService(db).calculate_gst_for_period(seed.team_id, JAN_START, JAN_END)
    assert summary.output_gst == Decimal("0.00")


async def test_accrual_output_basis_counts_sent_invoices(db, seed, member, monkeypatch):
    monkeypatch.setattr(settings, "GST_OUTPUT_BASIS", "accrual")
    service = InvoiceService(db)
    sent = await service.create(member, invoice_data(seed, items=[line(unit_price="1000", tax_rate="5")]))
    await service.send(member, sent.id)
    await service.create(member, invoice_data(seed, items=[line(unit_price="500", tax_rate="5")]))

    summary = await GstService(db).calculate_gst_for_period(seed.team_id, JAN_START, JAN_END)
    assert summary.output_gst == Decimal("50.00")


async def test_exempt_and_cancelled_purchases(db, seed, member):
    bills = SupplierBillService(db)
    await bills.create(member, bill_data(seed, items=[
        line(unit_price="300", tax_rate="5"),
        line(unit_price="100", tax_rate="0", is_tax_exempt=True),
    ]))
    cancelled = await bills.create(member, bill_data(seed, items=[line(unit_price="900", tax_rate="5")]))
    await bills.cancel(member, cancelled.id)
    await bills.create(member, bill_data(seed, items=[line(unit_price="700", tax_rate="5")], bill_date=date(2025, 2, 1)))

    summary = await GstService(db).calculate_gst_for_period(seed.team_id, JAN_START, JAN_END)

    assert summary.input_gst == Decimal("15.00")
    assert summary.purchases_breakdown["exempt"]["purchases"] == Decimal("100.00")
    assert summary.net_gst_payable == Decimal("-15.00")


async def test_invalid_period(db, seed):
    with pytest.raises(ValidationError):
        await GstService(db).calculate_gst_for_period(seed.team_id, JAN_END, JAN_START)


async def test_current_period_summary_is_month_to_date(db, seed, member):
    await paid_invoice(db, seed, member, [line(unit_price="100", tax_rate="5")], invoice_date=date(2025, 12, 31))

    summary = await GstService(db).get_current_period_summary(seed.team_id, today=date(2025, 12, 10))
    assert summary.output_gst == Decimal("5.00")


# ==================== RETURN NUMBERS ====================

@pytest.mark.parametrize(
    "period_start, return_type, expected",
    [
        (date(2025, 3, 1), "MONTHLY", "GST-2025-03"),
        (date(2025, 1, 1), "QUARTERLY", "GST-2025-Q1"),
        (date(2025, 10, 1), "quarterly", "GST-2025-Q4"),
        (date(2025, 1, 1), "ANNUAL", "GST-2025-ANNUAL"),
    ],
)
def test_return_numbers(period_start, return_type, expected):
    assert generate_return_number(period_start, return_type) == expected


def test_due_date():
    assert calculate_due_date(date(2025, 1, 31)) == date(2025, 2, 20)
    assert calculate_due_date(date(2025, 12, 31)) == date(2026, 1, 20)


# ==================== RETURNS ====================

async def test_create_and_file_return(db, seed, member, owner):
    await paid_invoice(db, seed, member, [line(unit_price="1000", tax_rate="5")])
    service = GstService(db)

    gst_return = await service.create_return(member, JAN_START, JAN_END, "MONTHLY", notes="January")
    assert gst_return.return_number == "GST-2025-01"
    assert gst_return.status == "DRAFT"
    assert gst_return.output_gst == Decimal("50.00")
    assert gst_return.total_payable == Decimal("50.00")
    assert gst_return.due_date == date(2025, 2, 20)
    assert gst_return.sales_breakdown["standard"]["sales"] == "1000.00"

    with pytest.raises(ValidationError, match="already exists"):
        await service.create_return(member, JAN_START, JAN_END, "MONTHLY")
    with pytest.raises(PermissionDeniedError):
        await service.file_return(member, gst_return.id, date(2025, 2, 10))

    filed = await service.file_return(
        owner, gst_return.id, date(2025, 2, 10), adjustments=Decimal("5"), penalties=Decimal("2"), interest=Decimal("1")
    )
    assert filed.status == "FILED"
    assert filed.filed_by == seed.owner_id
    assert filed.total_payable == Decimal("58.00")

    locks = await service.get_period_locks(seed.team_id)
    assert len(locks) == 1
    assert locks[0].reason == FILING_LOCK_REASON
    assert locks[0].gst_return_id == gst_return.id
    assert await service.is_date_locked(seed.team_id, date(2025, 1, 31))
    assert not await service.is_date_locked(seed.team_id, date(2025, 2, 1))

    with pytest.raises(InvalidTransitionError, match="Only draft returns can be filed"):
        await service.file_return(owner, gst_return.id, date(2025, 2, 11))
    with pytest.raises(InvalidTransitionError, match="Only draft returns can be deleted"):
        await service.delete_return(owner, gst_return.id)


async def test_amend_keeps_history(db, seed, member, owner):
    service = GstService(db)
    gst_return = await service.create_return(member, JAN_START, JAN_END, "MONTHLY")

    with pytest.raises(InvalidTransitionError):
        await service.amend_return(member, gst_return.id, Decimal("10"), "Missed invoice")

    await service.file_return(owner, gst_return.id, date(2025, 2, 10))
    await service.amend_return(member, gst_return.id, Decimal("10"), "Missed invoice")
    amended = await service.amend_return(member, gst_return.id, Decimal("-4.50"), "Corrected credit")

    assert amended.status == "AMENDED"
    assert amended.adjustments == Decimal("-4.50")
    assert amended.total_payable == Decimal("-4.50")
    assert [entry["new_adjustments"] for entry in amended.amendments] == ["10.00", "-4.50"]
    assert amended.amendments[1]["previous_adjustments"] == "10.00"

    with pytest.raises(ValidationError):
        await service.amend_return(member, gst_return.id, Decimal("1"), " ")


async def test_delete_draft_return(db, seed, member):
    service = GstService(db)
    gst_return = await service.create_return(member, date(2025, 1, 1), date(2025, 3, 31), "QUARTERLY")
    assert gst_return.return_number == "GST-2025-Q1"

    assert await service.delete_return(member, gst_return.id) == "GST-2025-Q1"
    assert await service.get_returns(seed.team_id) == []


# ==================== PERIOD LOCKS ====================

async def test_filed_period_blocks_cancellation(db, seed, member, owner):
    invoices = InvoiceService(db)
    january = await invoices.create(member, invoice_data(seed, invoice_date=date(2025, 1, 15)))
    february = await invoices.create(member, invoice_data(seed, invoice_date=date(2025, 2, 15)))
    await invoices.send(member, january.id)
    await invoices.send(member, february.id)

    service = GstService(db)
    gst_return = await service.create_return(owner, JAN_START, JAN_END, "MONTHLY")
    await service.file_return(owner, gst_return.id, date(2025, 2, 10))

    with pytest.raises(PeriodLockedError, match="Please create a Credit Note instead"):
        await invoices.cancel(member, january.id)

    cancelled, _ = await invoices.cancel(member, february.id)
    assert cancelled.status == "CANCELLED"


async def test_locked_period_blocks_bill_cancellation(db, seed, member, owner):
    bills = SupplierBillService(db)
    bill = await bills.create(member, bill_data(seed))
    await GstService(db).create_period_lock(owner, JAN_START, JAN_END, "MONTHLY", reason="Books closed")

    with pytest.raises(PeriodLockedError, match="Debit Note"):
        await bills.cancel(member, bill.id)


async def test_manual_locks(db, seed, member, owner):
    service = GstService(db)

    with pytest.raises(PermissionDeniedError):
        await service.create_period_lock(member, JAN_START, JAN_END, "MONTHLY")

    lock = await service.create_period_lock(owner, JAN_START, JAN_END, "monthly")
    assert lock.period_type == "MONTHLY"
    assert lock.reason == "Manual period lock"
    assert await service.is_period_locked(seed.team_id, date(2025, 1, 1), date(2025, 3, 31))
    assert not await service.is_period_locked(seed.team_id, date(2025, 2, 1), date(2025, 2, 28))

    with pytest.raises(PeriodLockedError):
        await service.create_period_lock(owner, JAN_START, JAN_END, "MONTHLY")
    with pytest.raises(PeriodLockedError):
        await service.create_return(owner, JAN_START, JAN_END, "MONTHLY")

    with pytest.raises(PermissionDeniedError):
        await service.remove_period_lock(member, lock.id)
    await service.remove_period_lock(owner, lock.id)
    assert await service.get_period_locks(seed.team_id) == []
