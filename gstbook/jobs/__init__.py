"""
Background Jobs Module

Handles scheduled tasks for:
- Expiring quotations past their validity date
"""

from gstbook.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from gstbook.jobs.quotation_jobs import expire_overdue_quotations

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "expire_overdue_quotations",
]
