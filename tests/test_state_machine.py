import pytest

from gstbook.core.exceptions import InvalidTransitionError
from gstbook.core.state_machine import (
    CREDIT_NOTE_TRANSITIONS,
    GST_RETURN_TRANSITIONS,
    INVOICE_TRANSITIONS,
    QUOTATION_TRANSITIONS,
    SUPPLIER_BILL_TRANSITIONS,
    derive_note_status,
    settled_status,
)


def test_invoice_transitions():
    assert INVOICE_TRANSITIONS.can_transition("DRAFT", "SENT")
    assert INVOICE_TRANSITIONS.can_transition("SENT", "CANCELLED")
    assert not INVOICE_TRANSITIONS.can_transition("CANCELLED", "SENT")
    assert not INVOICE_TRANSITIONS.can_transition("DRAFT", "PAID")
    assert INVOICE_TRANSITIONS.is_terminal("CANCELLED")


def test_paid_is_reached_only_by_the_system():
    assert not INVOICE_TRANSITIONS.can_transition("SENT", "PAID")
    assert INVOICE_TRANSITIONS.can_transition("SENT", "PAID", system=True)
    with pytest.raises(InvalidTransitionError) as exc_info:
        INVOICE_TRANSITIONS.assert_transition("SENT", "PAID")
    assert exc_info.value.status_code == 409
    assert "SENT" in exc_info.value.message


def test_bill_transitions():
    assert SUPPLIER_BILL_TRANSITIONS.can_transition("DRAFT", "ISSUED")
    assert not SUPPLIER_BILL_TRANSITIONS.can_transition("ISSUED", "DRAFT")


def test_editable_and_deletable():
    INVOICE_TRANSITIONS.assert_editable("DRAFT")
    with pytest.raises(InvalidTransitionError) as exc_info:
        INVOICE_TRANSITIONS.assert_editable("SENT")
    assert exc_info.value.message == "Can only edit draft invoices"

    with pytest.raises(InvalidTransitionError) as exc_info:
        INVOICE_TRANSITIONS.assert_deletable("SENT")
    assert exc_info.value.message == "Cannot delete a sent invoice"

    QUOTATION_TRANSITIONS.assert_editable("SENT")
    QUOTATION_TRANSITIONS.assert_deletable("REJECTED")
    with pytest.raises(InvalidTransitionError):
        QUOTATION_TRANSITIONS.assert_deletable("CONVERTED")


def test_note_issue_twice_fails():
    CREDIT_NOTE_TRANSITIONS.assert_transition("DRAFT", "ISSUED")
    with pytest.raises(InvalidTransitionError):
        CREDIT_NOTE_TRANSITIONS.assert_transition("ISSUED", "ISSUED")


def test_quotation_conversion_is_system_only():
    assert not QUOTATION_TRANSITIONS.can_transition("ACCEPTED", "CONVERTED")
    assert QUOTATION_TRANSITIONS.can_transition("ACCEPTED", "CONVERTED", system=True)
    assert not QUOTATION_TRANSITIONS.can_transition("DRAFT", "ACCEPTED")


def test_gst_return_amendments_chain():
    assert GST_RETURN_TRANSITIONS.can_transition("DRAFT", "FILED")
    assert GST_RETURN_TRANSITIONS.can_transition("FILED", "AMENDED")
    assert GST_RETURN_TRANSITIONS.can_transition("AMENDED", "AMENDED")
    assert not GST_RETURN_TRANSITIONS.can_transition("DRAFT", "AMENDED")


@pytest.mark.parametrize(
    "total, unapplied, expected",
    [("100", "100", "ISSUED"), ("100", "40", "PARTIAL"), ("100", "0", "APPLIED")],
)
def test_derive_note_status(total, unapplied, expected):
    assert derive_note_status(total, unapplied) == expected


def test_settled_status():
    assert settled_status(INVOICE_TRANSITIONS, "SENT", "PAID", open_status="SENT") == "PAID"
    assert settled_status(INVOICE_TRANSITIONS, "PAID", "PARTIAL", open_status="SENT") == "SENT"
    assert settled_status(INVOICE_TRANSITIONS, "SENT", "PARTIAL", open_status="SENT") == "SENT"
