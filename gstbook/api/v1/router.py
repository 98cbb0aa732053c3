from fastapi import APIRouter

from gstbook.api.v1.endpoints import (
    # Sales
    invoices,
    quotations,
    credit_notes,
    # Purchases
    supplier_bills,
    debit_notes,
    # Payments
    payments,
    # GST
    gst,
    # Audit & numbering
    activity,
    sequences,
)

api_router = APIRouter(prefix="/api/v1")

# ==================== Sales ====================
api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["Invoices"]
)
api_router.include_router(
    quotations.router,
    prefix="/quotations",
    tags=["Quotations"]
)
api_router.include_router(
    credit_notes.router,
    prefix="/credit-notes",
    tags=["Credit Notes"]
)

# ==================== Purchases ====================
api_router.include_router(
    supplier_bills.router,
    prefix="/supplier-bills",
    tags=["Supplier Bills"]
)
api_router.include_router(
    debit_notes.router,
    prefix="/debit-notes",
    tags=["Debit Notes"]
)

# ==================== Payments ====================
api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["Payments"]
)

# ==================== GST ====================
api_router.include_router(
    gst.router,
    prefix="/gst",
    tags=["GST"]
)

# ==================== Activity & Sequences ====================
api_router.include_router(
    activity.router,
    prefix="/activity",
    tags=["Activity"]
)
api_router.include_router(
    sequences.router,
    prefix="/sequences",
    tags=["Document Sequences"]
)
