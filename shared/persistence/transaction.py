"""
Transactional executor.

Every mutation that touches more than one Order row (or an Order plus the
owner's cart) goes through ``atomic``. The block either commits as a whole or
is rolled back as a whole; failures are logged with the operation name and
re-raised to the caller.

Usage:
    async with atomic(db, "webhook_payment_captured"):
        await OrderRepository.mark_paid(db, ...)
        await CartRepository.clear(db, user_id)
"""
import time
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession, operation: str):
    started = time.perf_counter()
    try:
        yield db
        await db.commit()
    except Exception as exc:
        await db.rollback()
        logger.error(
            "transaction_rolled_back",
            operation=operation,
            error_type=type(exc).__name__,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        raise
    logger.info(
        "transaction_committed",
        operation=operation,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
