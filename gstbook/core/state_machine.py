"""
Status transition tables for every financial document type.

The tables are plain data: the document engine asks ``assert_transition``
before writing a new status and never hardcodes allowed moves inline.

TRANSITIONS:
━━━━━━━━━━━━
• Invoice:     DRAFT → SENT → PAID, any non-terminal → CANCELLED
• Bill:        DRAFT → ISSUED → PAID, any non-terminal → CANCELLED
• Notes:       DRAFT → ISSUED → PARTIAL → APPLIED, ISSUED/PARTIAL → REFUNDED
• Quotation:   DRAFT → SENT → ACCEPTED/REJECTED/EXPIRED, ACCEPTED → CONVERTED
• GST return:  DRAFT → FILED → AMENDED (→ AMENDED)

System-only moves (e.g. SENT → PAID) are made by the ledger when balances
change; a caller asking for them directly is rejected.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Optional, Set, Tuple

from gstbook.core.enum_utils import get_enum_value
from gstbook.core.exceptions import InvalidTransitionError
from gstbook.core.money import ZERO, to_money


@dataclass(frozen=True)
class TransitionTable:
    document_type: str
    transitions: Dict[str, FrozenSet[str]]
    system_only: FrozenSet[Tuple[str, str]] = frozenset()
    editable: FrozenSet[str] = frozenset({"DRAFT"})
    deletable: FrozenSet[str] = frozenset({"DRAFT"})
    labels: Dict[str, str] = field(default_factory=dict)

    def allowed(self, current: str) -> Set[str]:
        return set(self.transitions.get(current, frozenset()))

    def can_transition(self, current: Any, requested: Any, system: bool = False) -> bool:
        current = get_enum_value(current)
        requested = get_enum_value(requested)
        if requested not in self.transitions.get(current, frozenset()):
            return False
        if (current, requested) in self.system_only and not system:
            return False
        return True

    def assert_transition(self, current: Any, requested: Any, system: bool = False) -> None:
        """Raise InvalidTransitionError unless current → requested is allowed."""
        if not self.can_transition(current, requested, system=system):
            raise InvalidTransitionError(
                get_enum_value(current),
                get_enum_value(requested),
                document_type=self.document_type,
            )

    def is_terminal(self, status: Any) -> bool:
        return not self.transitions.get(get_enum_value(status))

    def assert_editable(self, status: Any, action: str = "edit") -> None:
        status = get_enum_value(status)
        if status not in self.editable:
            allowed = " or ".join(s.lower() for s in sorted(self.editable))
            raise InvalidTransitionError(
                status,
                status,
                message=f"Can only {action} {allowed} {self.label}s",
                document_type=self.document_type,
            )

    def assert_deletable(self, status: Any) -> None:
        status = get_enum_value(status)
        if status not in self.deletable:
            raise InvalidTransitionError(
                status,
                "DELETED",
                message=f"Cannot delete a {status.lower()} {self.label}",
                document_type=self.document_type,
            )

    @property
    def label(self) -> str:
        return self.document_type.replace("_", " ").lower()


def _table(pairs: Dict[str, Set[str]]) -> Dict[str, FrozenSet[str]]:
    return {state: frozenset(targets) for state, targets in pairs.items()}


INVOICE_TRANSITIONS = TransitionTable(
    document_type="INVOICE",
    transitions=_table({
        "DRAFT": {"SENT", "CANCELLED"},
        "SENT": {"PAID", "CANCELLED"},
        "PAID": {"SENT", "CANCELLED"},
        "CANCELLED": set(),
    }),
    system_only=frozenset({("SENT", "PAID"), ("PAID", "SENT")}),
)

SUPPLIER_BILL_TRANSITIONS = TransitionTable(
    document_type="SUPPLIER_BILL",
    transitions=_table({
        "DRAFT": {"ISSUED", "CANCELLED"},
        "ISSUED": {"PAID", "CANCELLED"},
        "PAID": {"ISSUED", "CANCELLED"},
        "CANCELLED": set(),
    }),
    system_only=frozenset({("ISSUED", "PAID"), ("PAID", "ISSUED")}),
)

_NOTE_TRANSITIONS = _table({
    "DRAFT": {"ISSUED", "CANCELLED"},
    "ISSUED": {"PARTIAL", "APPLIED", "REFUNDED", "CANCELLED"},
    "PARTIAL": {"ISSUED", "PARTIAL", "APPLIED", "REFUNDED"},
    # Reopened when the document it was applied to is cancelled
    "APPLIED": {"ISSUED", "PARTIAL"},
    "REFUNDED": set(),
    "CANCELLED": set(),
})
_NOTE_SYSTEM_ONLY = frozenset({
    ("ISSUED", "PARTIAL"),
    ("ISSUED", "APPLIED"),
    ("PARTIAL", "ISSUED"),
    ("PARTIAL", "PARTIAL"),
    ("PARTIAL", "APPLIED"),
    ("APPLIED", "ISSUED"),
    ("APPLIED", "PARTIAL"),
})

CREDIT_NOTE_TRANSITIONS = TransitionTable(
    document_type="CREDIT_NOTE",
    transitions=_NOTE_TRANSITIONS,
    system_only=_NOTE_SYSTEM_ONLY,
)

DEBIT_NOTE_TRANSITIONS = TransitionTable(
    document_type="DEBIT_NOTE",
    transitions=_NOTE_TRANSITIONS,
    system_only=_NOTE_SYSTEM_ONLY,
)

QUOTATION_TRANSITIONS = TransitionTable(
    document_type="QUOTATION",
    transitions=_table({
        "DRAFT": {"SENT"},
        "SENT": {"ACCEPTED", "REJECTED", "EXPIRED"},
        "ACCEPTED": {"CONVERTED"},
        "REJECTED": set(),
        "EXPIRED": set(),
        "CONVERTED": set(),
    }),
    # Conversion goes through the convert operation, which mints the invoice
    system_only=frozenset({("ACCEPTED", "CONVERTED")}),
    editable=frozenset({"DRAFT", "SENT"}),
    deletable=frozenset({"DRAFT", "SENT", "ACCEPTED", "REJECTED", "EXPIRED"}),
)

GST_RETURN_TRANSITIONS = TransitionTable(
    document_type="GST_RETURN",
    transitions=_table({
        "DRAFT": {"FILED"},
        "FILED": {"AMENDED"},
        "AMENDED": {"AMENDED"},
    }),
)


def derive_note_status(total_amount: Decimal, unapplied_amount: Decimal) -> str:
    """Status of an issued note after an application changes its balance."""
    unapplied = to_money(unapplied_amount)
    if unapplied <= ZERO:
        return "APPLIED"
    if unapplied < to_money(total_amount):
        return "PARTIAL"
    return "ISSUED"


def settled_status(
    table: TransitionTable,
    current: str,
    payment_status: str,
    paid_status: str = "PAID",
    open_status: Optional[str] = None,
) -> str:
    """
    Document status after its balance moved.

    A fully paid document moves to ``paid_status``; a PAID document whose
    balance was reopened falls back to ``open_status``. Any other status is
    left alone.
    """
    if payment_status == "PAID" and current != paid_status:
        table.assert_transition(current, paid_status, system=True)
        return paid_status
    if payment_status != "PAID" and current == paid_status and open_status:
        table.assert_transition(current, open_status, system=True)
        return open_status
    return current
