"""
Celery tasks package.
"""

from celery_app.tasks import ledger_tasks

__all__ = [
    "ledger_tasks",
]
