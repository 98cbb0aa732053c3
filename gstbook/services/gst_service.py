"""
GST period aggregation, returns and period locks.

Output GST comes from sales invoices, input GST from supplier bills. Only
STANDARD lines carry tax; ZERO_RATED and EXEMPT lines only add to the sales
or purchase volume in the breakdown.

ACCOUNTING BASIS (settings):
- GST_OUTPUT_BASIS=cash     only PAID invoices dated in the period (default)
- GST_OUTPUT_BASIS=accrual  every SENT or PAID invoice dated in the period
- GST_INPUT_BASIS=accrual   every bill dated in the period except cancelled
                            ones, drafts included (default)
- GST_INPUT_BASIS=cash      only PAID bills
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gstbook.config import settings
from gstbook.core.enum_utils import get_enum_value
from gstbook.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PeriodLockedError,
    ValidationError,
)
from gstbook.core.money import ZERO, format_money, to_money
from gstbook.core.permissions import Actor
from gstbook.core.state_machine import GST_RETURN_TRANSITIONS
from gstbook.models.audit_log import ActivityType
from gstbook.models.common import GstClassification
from gstbook.models.gst import GstPeriodLock, GstReturn, GstReturnStatus, GstReturnType
from gstbook.models.invoice import Invoice, InvoiceStatus
from gstbook.models.supplier_bill import SupplierBill, SupplierBillStatus
from gstbook.models.team import TeamRole
from gstbook.services.audit_service import ActivityLogService


logger = logging.getLogger(__name__)

FILING_LOCK_REASON = "Automatically locked upon filing GST return"

_BUCKETS = {
    GstClassification.STANDARD.value: "standard",
    GstClassification.ZERO_RATED.value: "zero_rated",
    GstClassification.EXEMPT.value: "exempt",
}


@dataclass
class GstPeriodSummary:
    output_gst: Decimal
    input_gst: Decimal
    net_gst_payable: Decimal
    sales_breakdown: Dict[str, Dict[str, Decimal]] = field(default_factory=dict)
    purchases_breakdown: Dict[str, Dict[str, Decimal]] = field(default_factory=dict)

    @staticmethod
    def breakdown_as_json(breakdown: Dict[str, Dict[str, Decimal]]) -> Dict[str, Dict[str, str]]:
        """Money as fixed 2dp strings, for JSON columns and responses."""
        return {
            bucket: {key: format_money(value) for key, value in values.items()}
            for bucket, values in breakdown.items()
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "output_gst": format_money(self.output_gst),
            "input_gst": format_money(self.input_gst),
            "net_gst_payable": format_money(self.net_gst_payable),
            "sales_breakdown": self.breakdown_as_json(self.sales_breakdown),
            "purchases_breakdown": self.breakdown_as_json(self.purchases_breakdown),
        }


def _aggregate(documents: Iterable[Any], volume_key: str) -> Dict[str, Dict[str, Decimal]]:
    breakdown = {bucket: {volume_key: ZERO, "gst": ZERO} for bucket in _BUCKETS.values()}
    for document in documents:
        for item in document.items:
            bucket = _BUCKETS.get(item.gst_classification, "exempt")
            breakdown[bucket][volume_key] += item.taxable_amount
            if bucket == "standard":
                breakdown[bucket]["gst"] += item.tax_amount
    for values in breakdown.values():
        for key in values:
            values[key] = to_money(values[key])
    return breakdown


def generate_return_number(period_start: date, return_type: Union[str, GstReturnType]) -> str:
    """
    GST return number for a period.

    Examples:
        >>> generate_return_number(date(2025, 3, 1), "MONTHLY")
        'GST-2025-03'
        >>> generate_return_number(date(2025, 4, 1), "QUARTERLY")
        'GST-2025-Q2'
        >>> generate_return_number(date(2025, 1, 1), "ANNUAL")
        'GST-2025-ANNUAL'
    """
    return_type = get_enum_value(return_type).upper()
    if return_type == GstReturnType.MONTHLY.value:
        return f"GST-{period_start.year}-{period_start.month:02d}"
    if return_type == GstReturnType.QUARTERLY.value:
        quarter = (period_start.month - 1) // 3 + 1
        return f"GST-{period_start.year}-Q{quarter}"
    return f"GST-{period_start.year}-ANNUAL"


def calculate_due_date(period_end: date) -> date:
    """The configured day of the month following the period end."""
    year, month = period_end.year, period_end.month + 1
    if month > 12:
        year, month = year + 1, 1
    return date(year, month, settings.GST_RETURN_DUE_DAY)


def calculate_total_payable(
    net_gst_payable: Decimal,
    adjustments: Decimal,
    previous_period_balance: Decimal,
    penalties: Decimal,
    interest: Decimal,
) -> Decimal:
    return to_money(net_gst_payable + adjustments + previous_period_balance + penalties + interest)


class GstService:
    """GST return preparation, filing and period locking."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityLogService(db)

    # ==================== AGGREGATION ====================

    def _output_statuses(self) -> List[str]:
        if settings.GST_OUTPUT_BASIS == "accrual":
            return [InvoiceStatus.SENT.value, InvoiceStatus.PAID.value]
        return [InvoiceStatus.PAID.value]

    def _input_statuses(self) -> List[str]:
        if settings.GST_INPUT_BASIS == "cash":
            return [SupplierBillStatus.PAID.value]
        return [
            SupplierBillStatus.DRAFT.value,
            SupplierBillStatus.ISSUED.value,
            SupplierBillStatus.PAID.value,
        ]

    async def calculate_gst_for_period(
        self,
        team_id: uuid.UUID,
        period_start: date,
        period_end: date,
    ) -> GstPeriodSummary:
        """
        Output and input GST for the inclusive date range.

        ``net_gst_payable`` may be negative, meaning a refund position.
        """
        if period_end < period_start:
            raise ValidationError("Period end must be on or after period start")

        invoices = (await self.db.execute(
            select(Invoice).where(
                Invoice.team_id == team_id,
                Invoice.status.in_(self._output_statuses()),
                Invoice.invoice_date >= period_start,
                Invoice.invoice_date <= period_end,
            )
        )).scalars().all()

        bills = (await self.db.execute(
            select(SupplierBill).where(
                SupplierBill.team_id == team_id,
                SupplierBill.status.in_(self._input_statuses()),
                SupplierBill.bill_date >= period_start,
                SupplierBill.bill_date <= period_end,
            )
        )).scalars().all()

        sales = _aggregate(invoices, "sales")
        purchases = _aggregate(bills, "purchases")
        output_gst = sales["standard"]["gst"]
        input_gst = purchases["standard"]["gst"]

        return GstPeriodSummary(
            output_gst=output_gst,
            input_gst=input_gst,
            net_gst_payable=to_money(output_gst - input_gst),
            sales_breakdown=sales,
            purchases_breakdown=purchases,
        )

    async def get_current_period_summary(self, team_id: uuid.UUID, today: Optional[date] = None) -> GstPeriodSummary:
        """Month to date."""
        today = today or date.today()
        start = today.replace(day=1)
        next_month = date(today.year + (today.month // 12), today.month % 12 + 1, 1)
        end = date.fromordinal(next_month.toordinal() - 1)
        return await self.calculate_gst_for_period(team_id, start, end)

    # ==================== PERIOD LOCKS ====================

    async def is_period_locked(self, team_id: uuid.UUID, period_start: date, period_end: date) -> bool:
        """True if an existing lock lies within [period_start, period_end]."""
        result = await self.db.execute(
            select(GstPeriodLock.id)
            .where(
                GstPeriodLock.team_id == team_id,
                GstPeriodLock.period_start >= period_start,
                GstPeriodLock.period_end <= period_end,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_lock_for_date(self, team_id: uuid.UUID, day: date) -> Optional[GstPeriodLock]:
        result = await self.db.execute(
            select(GstPeriodLock)
            .where(
                GstPeriodLock.team_id == team_id,
                GstPeriodLock.period_start <= day,
                GstPeriodLock.period_end >= day,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def is_date_locked(self, team_id: uuid.UUID, day: date) -> bool:
        return await self.get_lock_for_date(team_id, day) is not None

    async def get_period_locks(self, team_id: uuid.UUID) -> List[GstPeriodLock]:
        result = await self.db.execute(
            select(GstPeriodLock)
            .where(GstPeriodLock.team_id == team_id)
            .order_by(GstPeriodLock.period_start)
        )
        return list(result.scalars().all())

    async def create_period_lock(
        self,
        actor: Actor,
        period_start: date,
        period_end: date,
        period_type: Union[str, GstReturnType],
        reason: Optional[str] = None,
        gst_return_id: Optional[uuid.UUID] = None,
    ) -> GstPeriodLock:
        actor.require_role(TeamRole.OWNER, "lock GST periods")
        if period_end < period_start:
            raise ValidationError("Period end must be on or after period start")
        if await self.is_period_locked(actor.team_id, period_start, period_end):
            raise PeriodLockedError("This period is already locked")

        lock = GstPeriodLock(
            team_id=actor.team_id,
            period_start=period_start,
            period_end=period_end,
            period_type=get_enum_value(period_type).upper(),
            locked_by=actor.user_id,
            reason=reason or "Manual period lock",
            gst_return_id=gst_return_id,
        )
        self.db.add(lock)
        await self.db.flush()

        await self.activity.log(
            actor.team_id,
            ActivityType.LOCK_GST_PERIOD,
            user_id=actor.user_id,
            entity_type="GST_PERIOD_LOCK",
            entity_id=lock.id,
            description=f"{period_start.isoformat()} to {period_end.isoformat()}",
        )
        logger.info("Locked GST period %s..%s for team %s", period_start, period_end, actor.team_id)
        return lock

    async def remove_period_lock(self, actor: Actor, lock_id: uuid.UUID) -> None:
        actor.require_role(TeamRole.OWNER, "unlock GST periods")
        lock = (await self.db.execute(
            select(GstPeriodLock).where(
                GstPeriodLock.id == lock_id,
                GstPeriodLock.team_id == actor.team_id,
            )
        )).scalar_one_or_none()
        if lock is None:
            raise NotFoundError("Period lock")

        await self.db.delete(lock)
        await self.activity.log(
            actor.team_id,
            ActivityType.UNLOCK_GST_PERIOD,
            user_id=actor.user_id,
            entity_type="GST_PERIOD_LOCK",
            entity_id=lock_id,
            description=f"{lock.period_start.isoformat()} to {lock.period_end.isoformat()}",
        )
        logger.warning("Removed GST period lock %s for team %s", lock_id, actor.team_id)

    # ==================== RETURNS ====================

    async def get_returns(self, team_id: uuid.UUID) -> List[GstReturn]:
        result = await self.db.execute(
            select(GstReturn)
            .where(GstReturn.team_id == team_id)
            .order_by(GstReturn.period_start)
        )
        return list(result.scalars().all())

    async def get_return(self, team_id: uuid.UUID, return_id: uuid.UUID, for_update: bool = False) -> GstReturn:
        stmt = select(GstReturn).where(GstReturn.id == return_id, GstReturn.team_id == team_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        gst_return = (await self.db.execute(stmt)).scalar_one_or_none()
        if gst_return is None:
            raise NotFoundError("GST return")
        return gst_return

    async def create_return(
        self,
        actor: Actor,
        period_start: date,
        period_end: date,
        return_type: Union[str, GstReturnType],
        notes: Optional[str] = None,
    ) -> GstReturn:
        """Draft a return from the period's figures."""
        if period_end < period_start:
            raise ValidationError("Period end must be on or after period start")
        if await self.is_period_locked(actor.team_id, period_start, period_end):
            raise PeriodLockedError("This period is already locked")

        return_type = get_enum_value(return_type).upper()
        return_number = generate_return_number(period_start, return_type)
        existing = (await self.db.execute(
            select(GstReturn.id).where(
                GstReturn.team_id == actor.team_id,
                GstReturn.return_number == return_number,
            )
        )).scalar_one_or_none()
        if existing is not None:
            raise ValidationError(f"A GST return for this period already exists ({return_number})")

        summary = await self.calculate_gst_for_period(actor.team_id, period_start, period_end)

        gst_return = GstReturn(
            team_id=actor.team_id,
            return_number=return_number,
            period_start=period_start,
            period_end=period_end,
            return_type=return_type,
            status=GstReturnStatus.DRAFT.value,
            output_gst=summary.output_gst,
            input_gst=summary.input_gst,
            net_gst_payable=summary.net_gst_payable,
            adjustments=ZERO,
            previous_period_balance=ZERO,
            penalties=ZERO,
            interest=ZERO,
            total_payable=summary.net_gst_payable,
            due_date=calculate_due_date(period_end),
            sales_breakdown=summary.breakdown_as_json(summary.sales_breakdown),
            purchases_breakdown=summary.breakdown_as_json(summary.purchases_breakdown),
            amendments=[],
            notes=notes,
            created_by=actor.user_id,
        )
        self.db.add(gst_return)
        await self.db.flush()

        await self.activity.log(
            actor.team_id,
            ActivityType.CREATE_GST_RETURN,
            user_id=actor.user_id,
            entity_type="GST_RETURN",
            entity_id=gst_return.id,
            description=return_number,
        )
        return gst_return

    async def file_return(
        self,
        actor: Actor,
        return_id: uuid.UUID,
        filing_date: date,
        adjustments: Decimal = ZERO,
        previous_period_balance: Decimal = ZERO,
        penalties: Decimal = ZERO,
        interest: Decimal = ZERO,
        notes: Optional[str] = None,
    ) -> GstReturn:
        """
        File a draft return and lock its period.

        Total payable is recomputed from the net GST and the filing
        adjustments.
        """
        actor.require_role(TeamRole.OWNER, "file GST returns")
        gst_return = await self.get_return(actor.team_id, return_id, for_update=True)
        if not GST_RETURN_TRANSITIONS.can_transition(gst_return.status, GstReturnStatus.FILED):
            raise InvalidTransitionError(
                gst_return.status,
                GstReturnStatus.FILED.value,
                message="Only draft returns can be filed",
                document_type="GST_RETURN",
            )

        gst_return.adjustments = to_money(adjustments)
        gst_return.previous_period_balance = to_money(previous_period_balance)
        gst_return.penalties = to_money(penalties)
        gst_return.interest = to_money(interest)
        gst_return.total_payable = calculate_total_payable(
            gst_return.net_gst_payable,
            gst_return.adjustments,
            gst_return.previous_period_balance,
            gst_return.penalties,
            gst_return.interest,
        )
        gst_return.status = GstReturnStatus.FILED.value
        gst_return.filing_date = filing_date
        gst_return.filed_by = actor.user_id
        if notes:
            gst_return.notes = notes

        self.db.add(GstPeriodLock(
            team_id=actor.team_id,
            period_start=gst_return.period_start,
            period_end=gst_return.period_end,
            period_type=gst_return.return_type,
            locked_by=actor.user_id,
            reason=FILING_LOCK_REASON,
            gst_return_id=gst_return.id,
        ))
        await self.db.flush()

        await self.activity.log(
            actor.team_id,
            ActivityType.FILE_GST_RETURN,
            user_id=actor.user_id,
            entity_type="GST_RETURN",
            entity_id=gst_return.id,
            description=gst_return.return_number,
            details={"total_payable": format_money(gst_return.total_payable)},
        )
        logger.info("Filed GST return %s for team %s", gst_return.return_number, actor.team_id)
        return gst_return

    async def amend_return(
        self,
        actor: Actor,
        return_id: uuid.UUID,
        adjustments: Decimal,
        reason: str,
    ) -> GstReturn:
        """
        Replace the adjustments of a filed return.

        The previous value is kept in the amendment history; earlier entries
        are never rewritten.
        """
        gst_return = await self.get_return(actor.team_id, return_id, for_update=True)
        GST_RETURN_TRANSITIONS.assert_transition(gst_return.status, GstReturnStatus.AMENDED)
        if not reason or not reason.strip():
            raise ValidationError("An amendment reason is required")

        new_adjustments = to_money(adjustments)
        entry = {
            "date": datetime.now(timezone.utc).isoformat(),
            "user_id": str(actor.user_id) if actor.user_id else None,
            "reason": reason.strip(),
            "previous_adjustments": format_money(gst_return.adjustments),
            "new_adjustments": format_money(new_adjustments),
        }
        # Reassign so the JSON column is flagged dirty
        gst_return.amendments = list(gst_return.amendments or []) + [entry]
        gst_return.adjustments = new_adjustments
        gst_return.total_payable = calculate_total_payable(
            gst_return.net_gst_payable,
            new_adjustments,
            gst_return.previous_period_balance,
            gst_return.penalties,
            gst_return.interest,
        )
        gst_return.status = GstReturnStatus.AMENDED.value
        await self.db.flush()

        await self.activity.log(
            actor.team_id,
            ActivityType.AMEND_GST_RETURN,
            user_id=actor.user_id,
            entity_type="GST_RETURN",
            entity_id=gst_return.id,
            description=gst_return.return_number,
            details=entry,
        )
        return gst_return

    async def delete_return(self, actor: Actor, return_id: uuid.UUID) -> str:
        gst_return = await self.get_return(actor.team_id, return_id, for_update=True)
        if gst_return.status != GstReturnStatus.DRAFT.value:
            raise InvalidTransitionError(
                gst_return.status,
                "DELETED",
                message="Only draft returns can be deleted",
                document_type="GST_RETURN",
            )
        return_number = gst_return.return_number
        await self.db.delete(gst_return)
        await self.activity.log(
            actor.team_id,
            ActivityType.DELETE_GST_RETURN,
            user_id=actor.user_id,
            entity_type="GST_RETURN",
            entity_id=return_id,
            description=return_number,
        )
        return return_number
