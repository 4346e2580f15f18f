# app/tasks/subscription_tasks.py
import asyncio
import logging
from dataclasses import asdict

from app.core.celery_app import celery_app
from app.core.database import db_manager
from app.modules.subscription.renewal import renewal_scheduler

logger = logging.getLogger(__name__)


async def _run_scan(scan):
    # Each asyncio.run gets a fresh loop; pooled connections from the last run are bound to a closed one
    try:
        return await scan()
    finally:
        await db_manager.close()


@celery_app.task(name="tasks.process_subscription_renewals")
def process_subscription_renewals():
    """
    A periodic task that renews or expires ACTIVE subscriptions past their billing date.
    """
    logger.info("--- Running periodic task: Processing subscription renewals ---")
    report = asyncio.run(_run_scan(renewal_scheduler.run_renewal_scan))
    return asdict(report)


@celery_app.task(name="tasks.process_trial_endings")
def process_trial_endings():
    """
    A periodic task that expires TRIAL subscriptions whose trial has ended.
    """
    logger.info("--- Running periodic task: Processing trial endings ---")
    report = asyncio.run(_run_scan(renewal_scheduler.run_trial_expiry_scan))
    return asdict(report)
