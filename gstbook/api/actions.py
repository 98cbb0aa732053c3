"""
Action runner for mutating endpoints.

Each mutating endpoint is one action: run the service call, commit once,
and answer with ``{"success": ..., ...}`` or ``{"error": message}``.

ERROR MAPPING:
- FinanceError subclasses   → their status code, message passed through
- serialization/lock errors → 409 ConcurrencyError (never retried here)
- anything else             → 500 with a generic "Failed to ..." message,
                              logged with traceback
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from gstbook.core.exceptions import ConcurrencyError, FinanceError
from gstbook.services.notification_service import notification_dispatcher


logger = logging.getLogger(__name__)

# PostgreSQL: serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}


def is_concurrency_failure(exc: DBAPIError) -> bool:
    if isinstance(exc, OperationalError):
        message = str(exc.orig).lower()
        if "database is locked" in message or "busy" in message:
            return True
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def run_action(
    db: AsyncSession,
    failure_message: str,
    action: Callable[[], Awaitable[Dict[str, Any]]],
    success_status: int = 200,
    after_commit: Optional[Callable[[Dict[str, Any]], Callable[[], Awaitable[Any]]]] = None,
) -> JSONResponse:
    """
    Run ``action`` in the request's transaction and commit it.

    ``after_commit`` receives the action's result and returns the
    notification to schedule; it only runs when the commit succeeded.
    """
    try:
        result = await action()
        await db.commit()
    except FinanceError as e:
        await db.rollback()
        logger.warning("%s: %s (%s)", failure_message, e.message, e.error_code)
        return error_response(e.status_code, e.message)
    except DBAPIError as e:
        await db.rollback()
        if is_concurrency_failure(e):
            conflict = ConcurrencyError()
            logger.warning("%s: concurrent modification (%s)", failure_message, e.orig)
            return error_response(conflict.status_code, conflict.message)
        logger.exception(failure_message)
        return error_response(500, failure_message)
    except Exception:
        await db.rollback()
        logger.exception(failure_message)
        return error_response(500, failure_message)

    if after_commit is not None:
        notification_dispatcher.dispatch(after_commit(result), description="post-commit notification")

    return JSONResponse(status_code=success_status, content=jsonable_encoder(result))
