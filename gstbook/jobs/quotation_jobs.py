"""
Quotation Jobs

Background job that expires SENT quotations once their valid_until date
has passed.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from gstbook.database import get_db_session
from gstbook.services.quotation_service import QuotationService

logger = logging.getLogger(__name__)


async def expire_overdue_quotations(today: Optional[date] = None) -> Dict[str, Any]:
    """Expire overdue quotations for every team in one transaction."""
    logger.info("Starting quotation expiry...")
    start_time = datetime.now(timezone.utc)

    async with get_db_session() as session:
        expired = await QuotationService(session).expire_overdue(today=today)

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info("Quotation expiry completed: %d expired in %.2fs", expired, duration)
    return {"expired": expired, "duration_seconds": duration}
