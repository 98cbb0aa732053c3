"""HTTP surface: envelopes, status codes and identity headers."""
import uuid

from gstbook.models.team import TeamRole
from gstbook.services.notification_service import notification_dispatcher


def invoice_payload(seed, invoice_date="2025-01-15", unit_price="100", quantity="1", tax_rate="5", customer_id=None):
    return {
        "customer_id": str(customer_id or seed.customer_id),
        "invoice_date": invoice_date,
        "items": [{"description": "Widget", "quantity": quantity, "unit_price": unit_price, "tax_rate": tax_rate}],
    }


async def create_sent_invoice(client, seed, **kwargs):
    response = await client.post("/api/v1/invoices", json=invoice_payload(seed, **kwargs))
    assert response.status_code == 201, response.text
    invoice_id = response.json()["invoice_id"]
    response = await client.post(f"/api/v1/invoices/{invoice_id}/send")
    assert response.status_code == 200, response.text
    return response.json()["invoice"]


# ==================== IDENTITY ====================

async def test_invalid_team_header(client):
    response = await client.get("/api/v1/invoices", headers={"X-Team-ID": "not-a-uuid"})
    assert response.status_code == 401
    assert response.json() == {"error": "Missing or invalid X-Team-ID header"}


async def test_non_member_is_refused(client):
    response = await client.get("/api/v1/invoices", headers={"X-User-ID": str(uuid.uuid4())})
    assert response.status_code == 403
    assert response.json() == {"error": "Not a member of this team"}


async def test_owner_only_endpoint(client, seed):
    body = {"document_type": "INVOICE", "starting_number": 100, "year": 2025}

    response = await client.post("/api/v1/sequences/initialize", json=body)
    assert response.status_code == 403
    assert response.json()["error"] == "Insufficient team role. Required: OWNER or higher"

    response = await client.post("/api/v1/sequences/initialize", json=body, headers=seed.headers(TeamRole.OWNER))
    assert response.status_code == 200
    assert response.json()["last_number"] == 100

    response = await client.get("/api/v1/sequences/INVOICE/preview", params={"year": 2025})
    assert response.json()["next_number"] == "INV-2025-0101"


# ==================== INVOICES ====================

async def test_create_invoice(client, seed):
    response = await client.post("/api/v1/invoices", json=invoice_payload(seed, quantity="3", unit_price="33.335"))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] == "Invoice created"
    assert body["invoice_number"] == "INV-2025-0001"
    invoice = body["invoice"]
    assert invoice["subtotal"] == "100.01"
    assert invoice["total_tax"] == "5.00"
    assert invoice["total_amount"] == "105.01"
    assert invoice["items"][0]["gst_classification"] == "STANDARD"

    response = await client.get(f"/api/v1/invoices/{body['invoice_id']}")
    assert response.status_code == 200
    assert response.json()["amount_due"] == "105.01"

    listing = (await client.get("/api/v1/invoices", params={"status": "draft"})).json()
    assert listing["total"] == 1
    assert listing["items"][0]["invoice_number"] == "INV-2025-0001"


async def test_request_validation_error_envelope(client, seed):
    payload = invoice_payload(seed)
    payload["items"] = []

    response = await client.post("/api/v1/invoices", json=payload)

    assert response.status_code == 422
    body = response.json()
    assert body["error"].startswith("items")
    assert body["details"]


async def test_unknown_invoice(client):
    response = await client.get(f"/api/v1/invoices/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json() == {"error": "Invoice not found"}


async def test_foreign_customer_is_not_found(client, seed):
    response = await client.post("/api/v1/invoices", json=invoice_payload(seed, customer_id=seed.foreign_customer_id))
    assert response.status_code == 404
    assert response.json() == {"error": "Customer not found"}


async def test_edit_sent_invoice_conflicts(client, seed):
    invoice = await create_sent_invoice(client, seed)

    response = await client.put(f"/api/v1/invoices/{invoice['id']}", json={"notes": "late edit"})
    assert response.status_code == 409
    assert response.json() == {"error": "Can only edit draft invoices"}

    response = await client.delete(f"/api/v1/invoices/{invoice['id']}")
    assert response.status_code == 409


# ==================== PAYMENTS ====================

async def test_payment_settles_and_cancel_reverses(client, seed):
    invoice = await create_sent_invoice(client, seed)

    response = await client.post("/api/v1/payments/customer", json={
        "customer_id": str(seed.customer_id),
        "amount": "150.00",
        "payment_date": "2025-01-20",
        "payment_method": "upi",
        "allocations": [{"document_id": invoice["id"], "amount": "105.00"}],
    })
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["receipt_number"] == "RCP-2025-0001"
    assert body["payment"]["unallocated_amount"] == "45.00"
    assert body["payment"]["payment_method"] == "UPI"
    payment_id = body["payment_id"]

    invoice = (await client.get(f"/api/v1/invoices/{invoice['id']}")).json()
    assert invoice["status"] == "PAID"
    assert invoice["amount_due"] == "0.00"

    response = await client.post(f"/api/v1/invoices/{invoice['id']}/cancel", json={"reason": "Returned"})
    assert response.status_code == 200
    body = response.json()
    assert body["reversed_allocations"] == 1
    assert body["invoice"]["status"] == "CANCELLED"
    assert body["invoice"]["amount_due"] == "105.00"

    payment = (await client.get(f"/api/v1/payments/customer/{payment_id}")).json()
    assert payment["unallocated_amount"] == "150.00"
    assert payment["allocations"] == []
    await notification_dispatcher.drain()


async def test_over_allocation_is_rejected(client, seed):
    invoice = await create_sent_invoice(client, seed)

    response = await client.post("/api/v1/payments/customer", json={
        "customer_id": str(seed.customer_id),
        "amount": "50.00",
        "payment_date": "2025-01-20",
        "allocations": [{"document_id": invoice["id"], "amount": "80.00"}],
    })

    assert response.status_code == 400
    assert "exceed the payment amount" in response.json()["error"]
    listing = (await client.get("/api/v1/payments/customer")).json()
    assert listing["total"] == 0


async def test_supplier_payment(client, seed):
    response = await client.post("/api/v1/supplier-bills", json={
        "supplier_id": str(seed.supplier_id),
        "bill_date": "2025-01-20",
        "items": [{"description": "Stock", "quantity": "2", "unit_price": "100", "tax_rate": "5"}],
    })
    assert response.status_code == 201, response.text
    bill_id = response.json()["bill_id"]
    assert (await client.post(f"/api/v1/supplier-bills/{bill_id}/issue")).status_code == 200

    response = await client.post("/api/v1/payments/supplier", json={
        "supplier_id": str(seed.supplier_id),
        "amount": "210.00",
        "payment_date": "2025-01-25",
        "allocations": [{"document_id": bill_id, "amount": "210.00"}],
    })
    assert response.status_code == 201, response.text
    assert response.json()["payment_number"] == "PAY-2025-0001"

    bill = (await client.get(f"/api/v1/supplier-bills/{bill_id}")).json()
    assert bill["status"] == "PAID"


# ==================== NOTES ====================

async def test_credit_note_flow(client, seed):
    invoice = await create_sent_invoice(client, seed)
    response = await client.post("/api/v1/credit-notes", json={
        "customer_id": str(seed.customer_id),
        "invoice_id": invoice["id"],
        "credit_note_date": "2025-01-22",
        "reason": "Damaged in transit",
        "items": [{"description": "Credit", "quantity": "1", "unit_price": "100", "tax_rate": "0"}],
    })
    assert response.status_code == 201, response.text
    note_id = response.json()["credit_note_id"]

    response = await client.post(f"/api/v1/credit-notes/{note_id}/apply", json={"target_id": invoice["id"], "amount": "10"})
    assert response.status_code == 409

    assert (await client.post(f"/api/v1/credit-notes/{note_id}/issue")).status_code == 200
    response = await client.post(f"/api/v1/credit-notes/{note_id}/apply", json={"target_id": invoice["id"], "amount": "150"})
    assert response.status_code == 400
    assert response.json() == {"error": "Amount exceeds the unapplied balance of the credit note (100.00)"}

    response = await client.post(f"/api/v1/credit-notes/{note_id}/apply", json={"target_id": invoice["id"], "amount": "60"})
    assert response.status_code == 200
    body = response.json()
    assert body["applied_amount"] == "60.00"
    assert body["credit_note"]["status"] == "PARTIAL"
    assert body["credit_note"]["unapplied_amount"] == "40.00"

    invoice = (await client.get(f"/api/v1/invoices/{invoice['id']}")).json()
    assert invoice["amount_paid"] == "60.00"
    assert invoice["payment_status"] == "PARTIAL"


# ==================== GST ====================

async def test_gst_return_and_period_lock(client, seed):
    owner = seed.headers(TeamRole.OWNER)
    january = await create_sent_invoice(client, seed, invoice_date="2025-01-15")
    february = await create_sent_invoice(client, seed, invoice_date="2025-02-15")

    response = await client.post("/api/v1/gst/returns", json={
        "period_start": "2025-01-01", "period_end": "2025-01-31", "return_type": "monthly",
    })
    assert response.status_code == 201, response.text
    return_id = response.json()["return_id"]
    assert response.json()["return_number"] == "GST-2025-01"

    response = await client.post(f"/api/v1/gst/returns/{return_id}/file", json={"filing_date": "2025-02-12"})
    assert response.status_code == 403

    response = await client.post(f"/api/v1/gst/returns/{return_id}/file", json={"filing_date": "2025-02-12"}, headers=owner)
    assert response.status_code == 200
    assert response.json()["gst_return"]["status"] == "FILED"

    check = (await client.get("/api/v1/gst/locks/check", params={"date": "2025-01-15"})).json()
    assert check["is_locked"] is True

    response = await client.post(f"/api/v1/invoices/{january['id']}/cancel")
    assert response.status_code == 423
    assert response.json() == {
        "error": "Cannot cancel invoice in a locked GST period. Please create a Credit Note instead."
    }

    response = await client.post(f"/api/v1/invoices/{february['id']}/cancel")
    assert response.status_code == 200

    response = await client.post(f"/api/v1/gst/returns/{return_id}/amend", json={"adjustments": "12.50", "reason": "Late bill"})
    assert response.status_code == 200
    assert response.json()["gst_return"]["status"] == "AMENDED"
    assert len(response.json()["gst_return"]["amendments"]) == 1


async def test_gst_summary(client, seed):
    response = await client.get("/api/v1/gst/summary", params={"period_start": "2025-01-01", "period_end": "2025-01-31"})
    assert response.status_code == 200
    body = response.json()
    assert body["net_gst_payable"] == "0.00"
    assert body["is_locked"] is False

    response = await client.get("/api/v1/gst/summary", params={"period_start": "2025-02-01", "period_end": "2025-01-01"})
    assert response.status_code == 422
    assert "error" in response.json()


async def test_manual_lock_endpoints(client, seed):
    owner = seed.headers(TeamRole.OWNER)
    body = {"period_start": "2025-03-01", "period_end": "2025-03-31", "reason": "Audit"}

    assert (await client.post("/api/v1/gst/locks", json=body)).status_code == 403
    response = await client.post("/api/v1/gst/locks", json=body, headers=owner)
    assert response.status_code == 201
    lock_id = response.json()["lock_id"]

    assert (await client.post("/api/v1/gst/locks", json=body, headers=owner)).status_code == 423
    assert (await client.get("/api/v1/gst/locks")).json()["total"] == 1

    response = await client.delete(f"/api/v1/gst/locks/{lock_id}", headers=owner)
    assert response.status_code == 200
    assert (await client.get("/api/v1/gst/locks")).json()["total"] == 0


# ==================== QUOTATIONS AND ACTIVITY ====================

async def test_quotation_to_invoice(client, seed):
    response = await client.post("/api/v1/quotations", json={
        "customer_id": str(seed.customer_id),
        "quotation_date": "2025-03-01",
        "valid_until": "2025-03-31",
        "items": [{"description": "Install", "quantity": "1", "unit_price": "500", "tax_rate": "5"}],
    })
    assert response.status_code == 201, response.text
    quotation_id = response.json()["quotation_id"]

    for status in ("sent", "accepted"):
        response = await client.put(f"/api/v1/quotations/{quotation_id}/status", json={"status": status})
        assert response.status_code == 200, response.text
    assert response.json()["success"] == "Quotation marked accepted"

    response = await client.post(f"/api/v1/quotations/{quotation_id}/convert", json={"invoice_date": "2025-03-02"})
    assert response.status_code == 200
    body = response.json()
    assert body["invoice_number"] == "INV-2025-0001"
    assert body["invoice"]["total_amount"] == "525.00"

    response = await client.post(f"/api/v1/quotations/{quotation_id}/convert")
    assert response.status_code == 409


async def test_activity_log(client, seed):
    invoice = await create_sent_invoice(client, seed)

    response = await client.get("/api/v1/activity", params={"entity_id": invoice["id"]})
    assert response.status_code == 200
    actions = {item["action"] for item in response.json()["items"]}
    assert actions == {"CREATE_INVOICE", "SEND_INVOICE"}


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["version"] == "1.0.0"
