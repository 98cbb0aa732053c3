"""
API endpoints for customer receipts and supplier payments.

Recording a payment allocates it across open invoices (or bills) in the
same transaction. Customer receipts trigger a receipt email once the
transaction has committed.
"""
import functools
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from gstbook.api.actions import run_action
from gstbook.api.deps import DB, CurrentActor
from gstbook.models.team import Customer, Team
from gstbook.schemas.base import dump
from gstbook.schemas.payment import (
    CustomerPaymentCreate,
    CustomerPaymentResponse,
    PaymentAllocate,
    SupplierPaymentCreate,
    SupplierPaymentResponse,
)
from gstbook.services.email_service import send_payment_receipt_notification
from gstbook.services.ledger_service import PAYABLE, RECEIVABLE, LedgerService

router = APIRouter()


# ==================== CUSTOMER RECEIPTS ====================

@router.get("/customer")
async def list_customer_payments(db: DB, actor: CurrentActor, customer_id: Optional[UUID] = None):
    payments = await LedgerService(db).get_payments(RECEIVABLE, actor.team_id, customer_id)
    return {"items": [dump(CustomerPaymentResponse, p) for p in payments], "total": len(payments)}


@router.get("/customer/{payment_id}")
async def get_customer_payment(payment_id: UUID, db: DB, actor: CurrentActor):
    return dump(CustomerPaymentResponse, await LedgerService(db).get_payment(RECEIVABLE, actor.team_id, payment_id))


@router.post("/customer", status_code=status.HTTP_201_CREATED)
async def record_customer_payment(payment_in: CustomerPaymentCreate, db: DB, actor: CurrentActor):
    """
    Record a customer receipt.

    Any amount not allocated stays on the receipt as an advance that can be
    allocated later.
    """
    receipt_email = {}

    async def action():
        payment, applied = await LedgerService(db).record_customer_payment(
            actor,
            payment_in.customer_id,
            payment_in.amount,
            payment_in.payment_date,
            **payment_in.payment_kwargs(),
        )
        customer = await db.get(Customer, payment.customer_id)
        team = await db.get(Team, actor.team_id)
        receipt_email.update(
            to_email=customer.email,
            customer_name=customer.name,
            receipt_number=payment.receipt_number,
            amount=payment.amount,
            currency=payment.currency,
            payment_date=payment.payment_date.isoformat(),
            allocations=applied,
            team_name=team.name if team else "",
        )
        return {
            "success": "Payment recorded",
            "payment_id": payment.id,
            "receipt_number": payment.receipt_number,
            "allocations": applied,
            "payment": dump(CustomerPaymentResponse, payment),
        }

    return await run_action(
        db,
        "Failed to record payment",
        action,
        success_status=status.HTTP_201_CREATED,
        after_commit=lambda result: functools.partial(send_payment_receipt_notification, **receipt_email),
    )


@router.post("/customer/{payment_id}/allocate")
async def allocate_customer_payment(payment_id: UUID, allocate_in: PaymentAllocate, db: DB, actor: CurrentActor):
    async def action():
        payment, applied = await LedgerService(db).allocate_customer_payment(
            actor, payment_id, allocate_in.allocation_pairs()
        )
        return {
            "success": "Payment allocated",
            "payment_id": payment.id,
            "allocations": applied,
            "payment": dump(CustomerPaymentResponse, payment),
        }

    return await run_action(db, "Failed to allocate payment", action)


@router.delete("/customer/{payment_id}")
async def delete_customer_payment(payment_id: UUID, db: DB, actor: CurrentActor):
    """Delete a receipt and reopen every invoice it settled."""
    async def action():
        number = await LedgerService(db).delete_customer_payment(actor, payment_id)
        return {"success": f"Payment {number} deleted", "payment_id": payment_id}

    return await run_action(db, "Failed to delete payment", action)


# ==================== SUPPLIER PAYMENTS ====================

@router.get("/supplier")
async def list_supplier_payments(db: DB, actor: CurrentActor, supplier_id: Optional[UUID] = None):
    payments = await LedgerService(db).get_payments(PAYABLE, actor.team_id, supplier_id)
    return {"items": [dump(SupplierPaymentResponse, p) for p in payments], "total": len(payments)}


@router.get("/supplier/{payment_id}")
async def get_supplier_payment(payment_id: UUID, db: DB, actor: CurrentActor):
    return dump(SupplierPaymentResponse, await LedgerService(db).get_payment(PAYABLE, actor.team_id, payment_id))


@router.post("/supplier", status_code=status.HTTP_201_CREATED)
async def record_supplier_payment(payment_in: SupplierPaymentCreate, db: DB, actor: CurrentActor):
    async def action():
        payment, applied = await LedgerService(db).record_supplier_payment(
            actor,
            payment_in.supplier_id,
            payment_in.amount,
            payment_in.payment_date,
            **payment_in.payment_kwargs(),
        )
        return {
            "success": "Payment recorded",
            "payment_id": payment.id,
            "payment_number": payment.payment_number,
            "allocations": applied,
            "payment": dump(SupplierPaymentResponse, payment),
        }

    return await run_action(db, "Failed to record payment", action, success_status=status.HTTP_201_CREATED)


@router.post("/supplier/{payment_id}/allocate")
async def allocate_supplier_payment(payment_id: UUID, allocate_in: PaymentAllocate, db: DB, actor: CurrentActor):
    async def action():
        payment, applied = await LedgerService(db).allocate_supplier_payment(
            actor, payment_id, allocate_in.allocation_pairs()
        )
        return {
            "success": "Payment allocated",
            "payment_id": payment.id,
            "allocations": applied,
            "payment": dump(SupplierPaymentResponse, payment),
        }

    return await run_action(db, "Failed to allocate payment", action)


@router.delete("/supplier/{payment_id}")
async def delete_supplier_payment(payment_id: UUID, db: DB, actor: CurrentActor):
    async def action():
        number = await LedgerService(db).delete_supplier_payment(actor, payment_id)
        return {"success": f"Payment {number} deleted", "payment_id": payment_id}

    return await run_action(db, "Failed to delete payment", action)
