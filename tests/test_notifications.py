"""Post-commit notifications and background jobs."""
import logging
from contextlib import asynccontextmanager
from datetime import date

from gstbook.config import settings
from gstbook.jobs import quotation_jobs
from gstbook.jobs.scheduler import run_quotation_expiry
from gstbook.services.email_service import send_payment_receipt_notification
from gstbook.services.notification_service import NotificationDispatcher, notification_dispatcher
from gstbook.services.quotation_service import QuotationService
from tests.conftest import line


async def test_dispatcher_logs_failures(caplog):
    dispatcher = NotificationDispatcher()

    async def broken():
        raise ConnectionError("smtp down")

    async def working():
        return True

    with caplog.at_level(logging.ERROR, logger="gstbook.services.notification_service"):
        failed = dispatcher.dispatch(broken, description="receipt RCP-2025-0001")
        sent = dispatcher.dispatch(working)
        await dispatcher.drain()

    assert failed.result() is None
    assert sent.result() is True
    assert dispatcher.pending == 0
    assert "Failed to send receipt RCP-2025-0001" in caplog.text


async def test_receipt_email_skipped_without_address_or_when_disabled(monkeypatch):
    assert await send_payment_receipt_notification(
        None, "Acme Retail", "RCP-2025-0001", "10.00", "INR", "2025-01-20", []
    ) is False

    monkeypatch.setattr(settings, "EMAIL_NOTIFICATIONS_ENABLED", False)
    assert await send_payment_receipt_notification(
        "accounts@acme.test", "Acme Retail", "RCP-2025-0001", "10.00", "INR", "2025-01-20", []
    ) is False


async def test_receipt_email_is_sent_after_commit(client, seed, monkeypatch):
    sent = []

    async def fake_notification(**kwargs):
        sent.append(kwargs)
        return True

    monkeypatch.setattr(
        "gstbook.api.v1.endpoints.payments.send_payment_receipt_notification", fake_notification
    )

    response = await client.post("/api/v1/payments/customer", json={
        "customer_id": str(seed.customer_id),
        "amount": "75.00",
        "payment_date": "2025-01-20",
    })
    assert response.status_code == 201
    await notification_dispatcher.drain()

    assert len(sent) == 1
    assert sent[0]["to_email"] == "accounts@acme.test"
    assert sent[0]["receipt_number"] == "RCP-2025-0001"
    assert sent[0]["team_name"] == "Druk Traders"


async def test_failed_payment_sends_nothing(client, seed, monkeypatch):
    sent = []

    async def fake_notification(**kwargs):
        sent.append(kwargs)

    monkeypatch.setattr(
        "gstbook.api.v1.endpoints.payments.send_payment_receipt_notification", fake_notification
    )

    response = await client.post("/api/v1/payments/customer", json={
        "customer_id": str(seed.foreign_customer_id),
        "amount": "75.00",
        "payment_date": "2025-01-20",
    })
    assert response.status_code == 404
    await notification_dispatcher.drain()
    assert sent == []


async def test_quotation_expiry_job(session_factory, seed, member, monkeypatch):
    async with session_factory() as session:
        service = QuotationService(session)
        quotation = await service.create(member, {
            "customer_id": seed.customer_id,
            "quotation_date": date(2025, 3, 1),
            "valid_until": date(2025, 3, 15),
            "items": [line()],
        })
        await service.update_status(member, quotation.id, "SENT")
        quotation_id = quotation.id
        await session.commit()

    @asynccontextmanager
    async def test_session():
        async with session_factory() as session:
            yield session
            await session.commit()

    monkeypatch.setattr(quotation_jobs, "get_db_session", test_session)

    result = await quotation_jobs.expire_overdue_quotations(today=date(2025, 4, 1))
    assert result["expired"] == 1

    async with session_factory() as session:
        quotation = await QuotationService(session).get(seed.team_id, quotation_id)
        assert quotation.status == "EXPIRED"


async def test_scheduled_run_logs_failures(monkeypatch, caplog):
    async def broken(today=None):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(quotation_jobs, "expire_overdue_quotations", broken)

    with caplog.at_level(logging.ERROR, logger="gstbook.jobs.scheduler"):
        await run_quotation_expiry()

    assert "expire_overdue_quotations' failed" in caplog.text
