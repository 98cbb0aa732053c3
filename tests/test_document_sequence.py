import asyncio

import pytest

from gstbook.core.exceptions import ValidationError
from gstbook.services.document_sequence_service import (
    DocumentSequenceService,
    format_document_number,
    parse_document_number,
)


def test_format_and_parse():
    assert format_document_number("INV", 2025, 7) == "INV-2025-0007"
    assert format_document_number("INV", 2025, 12345) == "INV-2025-12345"
    assert parse_document_number("CN-2024-0042") == ("CN", 2024, 42)
    with pytest.raises(ValidationError):
        parse_document_number("CN-42")


async def test_numbers_are_sequential_per_type_and_year(db, seed):
    service = DocumentSequenceService(db)

    assert await service.get_next_number(seed.team_id, "INVOICE", year=2025) == "INV-2025-0001"
    assert await service.get_next_number(seed.team_id, "INVOICE", year=2025) == "INV-2025-0002"
    assert await service.get_next_number(seed.team_id, "CREDIT_NOTE", year=2025) == "CN-2025-0001"
    assert await service.get_next_number(seed.team_id, "INVOICE", year=2026) == "INV-2026-0001"
    assert await service.get_next_number(seed.other_team_id, "INVOICE", year=2025) == "INV-2025-0001"
    assert await service.get_current_number(seed.team_id, "INVOICE", year=2025) == 2


async def test_custom_prefix(db, seed):
    number = await DocumentSequenceService(db).get_next_number(seed.team_id, "INVOICE", year=2025, prefix="DT")
    assert number == "DT-2025-0001"


async def test_rollback_releases_the_number(db, seed):
    service = DocumentSequenceService(db)
    assert await service.get_next_number(seed.team_id, "SUPPLIER_BILL", year=2025) == "BILL-2025-0001"
    await db.rollback()

    assert await service.get_next_number(seed.team_id, "SUPPLIER_BILL", year=2025) == "BILL-2025-0001"


async def test_concurrent_minting_has_no_gaps_or_duplicates(session_factory, seed):
    async def mint():
        async with session_factory() as session:
            number = await DocumentSequenceService(session).get_next_number(seed.team_id, "INVOICE", year=2025)
            await session.commit()
            return number

    numbers = await asyncio.gather(*(mint() for _ in range(8)))

    assert sorted(parse_document_number(n)[2] for n in numbers) == list(range(1, 9))


async def test_preview_does_not_consume(db, seed):
    service = DocumentSequenceService(db)
    assert await service.preview_next_number(seed.team_id, "QUOTATION", year=2025) == "QT-2025-0001"
    assert await service.preview_next_number(seed.team_id, "QUOTATION", year=2025) == "QT-2025-0001"
    assert await service.get_next_number(seed.team_id, "QUOTATION", year=2025) == "QT-2025-0001"


async def test_initialize_sequence(db, seed):
    service = DocumentSequenceService(db)
    await service.initialize_sequence(seed.team_id, "CUSTOMER_RECEIPT", starting_number=41, year=2025)
    assert await service.get_next_number(seed.team_id, "CUSTOMER_RECEIPT", year=2025) == "RCP-2025-0042"

    with pytest.raises(ValidationError):
        await service.initialize_sequence(seed.team_id, "CUSTOMER_RECEIPT", starting_number=-1, year=2025)


async def test_unknown_document_type(db, seed):
    with pytest.raises(ValidationError):
        await DocumentSequenceService(db).get_next_number(seed.team_id, "PURCHASE_ORDER", year=2025)
