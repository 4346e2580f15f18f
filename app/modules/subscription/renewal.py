import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.uow import UnitOfWork
from app.models.subscription_model import Subscription
from app.modules.subscription.state_machine import RenewalAction, renewal_decision, trial_expiry_decision
from app.repository.subscription_repository import SubscriptionRepository, subscription_repository

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    scanned: int = 0
    renewed: int = 0
    expired: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, action: RenewalAction):
        if action == RenewalAction.RENEWED:
            self.renewed += 1
        elif action == RenewalAction.EXPIRED:
            self.expired += 1
        else:
            self.skipped += 1


class RenewalScheduler:
    """
    Batch driver for the daily renewal and trial-expiry scans.

    Each subscription is handled in its own unit of work: a failure is logged
    and counted, and the scan moves on to the next one. There is no locking,
    so only one instance should run the scans at a time.
    """

    def __init__(
        self,
        repository: SubscriptionRepository = subscription_repository,
        uow: Optional[Callable] = None,
    ):
        self.repository = repository
        self.uow = uow or UnitOfWork()

    async def _scan(
        self,
        label: str,
        find_ids: Callable[[AsyncSession, datetime], Awaitable[List[str]]],
        decide: Callable[[Subscription, datetime], RenewalAction],
        now: datetime,
    ) -> ScanReport:
        async with self.uow() as db:
            subscription_ids = await find_ids(db, now)

        report = ScanReport(scanned=len(subscription_ids))
        for subscription_id in subscription_ids:
            try:
                async with self.uow() as db:
                    subscription = await self.repository.get(db, subscription_id)
                    if subscription is None:
                        report.record(RenewalAction.SKIPPED)
                        continue
                    action = decide(subscription, now)
                    if action != RenewalAction.SKIPPED:
                        await self.repository.save(db, subscription)
                report.record(action)
                logger.info(f"{label}: subscription {subscription_id} {action.value.lower()}")
            except Exception as e:
                report.failed += 1
                logger.error(f"Failed to process {label} for subscription {subscription_id}: {e}")

        logger.info(f"{label} finished: {report}")
        return report

    async def run_renewal_scan(self, now: Optional[datetime] = None) -> ScanReport:
        logger.info("Processing subscription renewals")
        return await self._scan(
            "renewal",
            self.repository.list_due_for_renewal_ids,
            renewal_decision,
            now or datetime.utcnow(),
        )

    async def run_trial_expiry_scan(self, now: Optional[datetime] = None) -> ScanReport:
        logger.info("Processing trial endings")
        return await self._scan(
            "trial expiry",
            self.repository.list_trials_ending_ids,
            trial_expiry_decision,
            now or datetime.utcnow(),
        )


renewal_scheduler = RenewalScheduler()
