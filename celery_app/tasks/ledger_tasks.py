"""
Periodic ledger maintenance.

- reconcile_credit_balances: reports users whose balance differs from the
  sum of their ledger entries. Nothing is corrected automatically.
- retry_processing_payments: finishes automated payments whose credit step
  failed and left them in processing.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine

from celery_app.worker import celery_app, TaskBase
from app.core.config import settings
from app.core.exceptions import PaymentIncompleteError
from app.core.logging_config import get_audit_logger
from app.db.base import engine_options, make_session_factory
from app.models.credit import CreditBalance, CreditTransaction
from app.services.payment.intake import PaymentIntake

logger = logging.getLogger(__name__)


@asynccontextmanager
async def worker_session():
    """
    Session on a short-lived engine.

    Each task run gets its own event loop from asyncio.run, so pooled
    connections cannot be shared between runs.
    """
    engine = create_async_engine(settings.DATABASE_URL_MASTER, **engine_options(settings.DATABASE_URL_MASTER))
    session = make_session_factory(engine)()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


async def find_balance_mismatches(db) -> Dict[str, Dict[str, int]]:
    """
    Compare each balance with its ledger sum.

    Returns:
        Mapping of user id to {"balance": ..., "ledger": ...} for every mismatch
    """
    ledger = (
        select(
            CreditTransaction.user_id.label("user_id"),
            func.sum(CreditTransaction.amount).label("total"),
        )
        .group_by(CreditTransaction.user_id)
        .subquery()
    )
    result = await db.execute(
        select(CreditBalance.user_id, CreditBalance.amount, func.coalesce(ledger.c.total, 0))
        .outerjoin(ledger, ledger.c.user_id == CreditBalance.user_id)
        .where(CreditBalance.amount != func.coalesce(ledger.c.total, 0))
    )
    return {
        user_id: {"balance": balance, "ledger": int(total)}
        for user_id, balance, total in result.all()
    }


async def _reconcile_async() -> Dict[str, Any]:
    async with worker_session() as db:
        mismatches = await find_balance_mismatches(db)

    audit = get_audit_logger(task="reconcile_credit_balances")
    for user_id, values in mismatches.items():
        audit.error("balance_ledger_mismatch", user_id=user_id, **values)

    return {
        "mismatches": len(mismatches),
        "users": sorted(mismatches),
        "executed_at": datetime.now(timezone.utc).isoformat(),
    }


@celery_app.task(base=TaskBase, name="reconcile_credit_balances")
def reconcile_credit_balances() -> dict:
    """Daily check that every balance equals its ledger sum."""
    logger.info("Starting credit balance reconciliation")
    result = asyncio.run(_reconcile_async())
    if result["mismatches"]:
        logger.error(f"Credit reconciliation found {result['mismatches']} mismatched balance(s)")
    else:
        logger.info("Credit reconciliation found no mismatches")
    return result


async def retry_stuck_payments(db, older_than_minutes: int) -> Dict[str, Any]:
    """
    Complete automated payments stuck in processing.

    Returns:
        Counts of completed and still failing payments
    """
    intake = PaymentIntake(db)
    stuck = await intake.find_stuck_payments(older_than_minutes)

    completed, failed = 0, 0
    for transaction_id in stuck:
        try:
            await intake.complete_processing_payment(transaction_id)
            completed += 1
        except PaymentIncompleteError:
            # Logged by the intake; picked up again on the next run
            failed += 1

    return {"found": len(stuck), "completed": completed, "failed": failed}


async def _retry_async() -> Dict[str, Any]:
    async with worker_session() as db:
        return await retry_stuck_payments(db, settings.PAYMENT_PROCESSING_RETRY_AFTER_MINUTES)


@celery_app.task(base=TaskBase, name="retry_processing_payments")
def retry_processing_payments() -> dict:
    """Finish automated payments whose credit step failed."""
    result = asyncio.run(_retry_async())
    if result["found"]:
        logger.info(
            f"Retried {result['found']} processing payment(s): "
            f"{result['completed']} completed, {result['failed']} still failing"
        )
    return result
