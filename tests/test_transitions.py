import pytest

from app.models.subscription_model import SubscriptionStatus
from app.modules.subscription.state_machine import ChargeOutcome
from app.modules.subscription.transitions import CompensationStatus, SubscriptionTransitions


@pytest.mark.asyncio
async def test_charge_outcome_is_persisted(subscription_repo, make_subscription, mock_db_session):
    subscription = make_subscription(status=SubscriptionStatus.TRIAL)
    transitions = SubscriptionTransitions(subscription_repo)

    outcome = await transitions.apply_charge_outcome(mock_db_session, subscription, ChargeOutcome.SUCCESS)

    assert outcome.status == CompensationStatus.APPLIED
    assert outcome.subscription_id == subscription.id
    assert subscription_repo.items[subscription.id].status == SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
async def test_write_failure_is_returned_not_raised(subscription_repo, make_subscription, mock_db_session):
    subscription_repo.fail_all_saves = True
    subscription = make_subscription(status=SubscriptionStatus.ACTIVE)
    transitions = SubscriptionTransitions(subscription_repo)

    outcome = await transitions.apply_refund(mock_db_session, subscription)

    assert outcome.status == CompensationStatus.FAILED
    assert not outcome.applied
    assert outcome.error
