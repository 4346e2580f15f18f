import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.subscription_model import Subscription
from app.modules.subscription import state_machine
from app.modules.subscription.state_machine import ChargeOutcome
from app.repository.subscription_repository import SubscriptionRepository, subscription_repository

logger = logging.getLogger(__name__)


class CompensationStatus(str, enum.Enum):
    APPLIED = "APPLIED"
    FAILED = "FAILED"


@dataclass
class CompensationOutcome:
    """Result of the subscription-side step of a payment saga."""
    status: CompensationStatus
    subscription_id: str
    error: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.status == CompensationStatus.APPLIED


class SubscriptionTransitions:
    """
    The only way the payment sagas touch a subscription.

    Each call applies one state-machine transition and persists it as an
    independent write. Failures are logged and reported in the returned
    outcome, never raised.
    """

    def __init__(self, repository: SubscriptionRepository = subscription_repository):
        self.repository = repository

    async def _apply(
        self,
        db: AsyncSession,
        subscription: Subscription,
        transition: Callable[[Subscription], Subscription],
        label: str,
    ) -> CompensationOutcome:
        subscription_id = subscription.id
        try:
            transition(subscription)
            await self.repository.save(db, subscription)
        except Exception as e:
            logger.error(
                f"Failed to update subscription status for subscription: {subscription_id} ({label}): {e}",
                exc_info=True,
            )
            return CompensationOutcome(CompensationStatus.FAILED, subscription_id, error=str(e))

        logger.info(f"Subscription {subscription_id} status updated to {subscription.status.value}")
        return CompensationOutcome(CompensationStatus.APPLIED, subscription_id)

    async def apply_charge_outcome(
        self, db: AsyncSession, subscription: Subscription, outcome: ChargeOutcome
    ) -> CompensationOutcome:
        return await self._apply(
            db,
            subscription,
            lambda sub: state_machine.apply_charge_outcome(sub, outcome),
            f"charge {outcome.value}",
        )

    async def apply_refund(self, db: AsyncSession, subscription: Subscription) -> CompensationOutcome:
        return await self._apply(db, subscription, state_machine.apply_refund, "refund")


subscription_transitions = SubscriptionTransitions()
