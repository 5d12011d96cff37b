"""
Celery worker configuration and initialization.
"""

from celery import Celery
from celery.signals import worker_ready, worker_shutdown
import logging
from typing import Any

from app.core.config import settings

logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery(
    "codegen_credits",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "celery_app.tasks.ledger_tasks",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    accept_content=settings.CELERY_ACCEPT_CONTENT,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,
    result_expires=settings.TASK_RESULT_EXPIRY,
    task_track_started=True,
    task_time_limit=settings.TASK_TIMEOUT,
    task_soft_time_limit=settings.TASK_TIMEOUT - 30,  # Soft limit 30 seconds before hard limit
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "reconcile-credit-balances": {
            "task": "reconcile_credit_balances",
            "schedule": float(settings.RECONCILE_INTERVAL_SECONDS),
        },
        "retry-processing-payments": {
            "task": "retry_processing_payments",
            "schedule": float(settings.PAYMENT_RETRY_INTERVAL_SECONDS),
        },
    },
)

celery_app.conf.task_routes = {
    "reconcile_credit_balances": {"queue": "ledger"},
    "retry_processing_payments": {"queue": "ledger"},
}


@worker_ready.connect
def on_worker_ready(**kwargs):
    """Called when worker is ready to accept tasks."""
    logger.info("Celery worker is ready")


@worker_shutdown.connect
def on_worker_shutdown(**kwargs):
    """Called when worker is shutting down."""
    logger.info("Celery worker is shutting down")


class TaskBase(celery_app.Task):
    """Base class for all tasks with common functionality."""

    max_retries = settings.TASK_MAX_RETRIES
    default_retry_delay = settings.TASK_RETRY_DELAY

    def before_start(self, task_id: str, args: Any, kwargs: Any) -> None:
        logger.info(f"Task {self.name} [{task_id}] starting")

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        logger.info(f"Task {self.name} [{task_id}] succeeded: {retval}")

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(f"Task {self.name} [{task_id}] failed: {exc}", exc_info=einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.warning(f"Task {self.name} [{task_id}] retrying: {exc}")
