import pytest
from datetime import datetime

from app.core.exceptions import ConflictError, ValidationError
from app.models.subscription_model import BillingCycle, SubscriptionStatus
from app.modules.subscription import state_machine
from app.modules.subscription.state_machine import ChargeOutcome, RenewalAction


def test_add_months_clamps_to_end_of_month():
    assert state_machine.add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert state_machine.add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)
    assert state_machine.compute_cycle_end(datetime(2024, 2, 29), "YEARLY") == datetime(2025, 2, 28)
    assert state_machine.add_months(datetime(2024, 11, 15, 9, 30), 3) == datetime(2025, 2, 15, 9, 30)


@pytest.mark.parametrize(
    "cycle, expected",
    [
        ("DAILY", datetime(2024, 3, 11)),
        ("weekly", datetime(2024, 3, 17)),
        (BillingCycle.MONTHLY, datetime(2024, 4, 10)),
        ("QUARTERLY", datetime(2024, 6, 10)),
        ("YEARLY", datetime(2025, 3, 10)),
        ("FORTNIGHTLY", datetime(2024, 4, 10)),
        (None, datetime(2024, 4, 10)),
    ],
)
def test_compute_cycle_end(cycle, expected):
    assert state_machine.compute_cycle_end(datetime(2024, 3, 10), cycle) == expected


@pytest.mark.parametrize("status", list(SubscriptionStatus))
def test_charge_outcome_accepted_from_any_status(make_subscription, status):
    subscription = make_subscription(status=status)
    state_machine.apply_charge_outcome(subscription, ChargeOutcome.SUCCESS)
    assert subscription.status == SubscriptionStatus.ACTIVE

    subscription = make_subscription(status=status)
    state_machine.apply_charge_outcome(subscription, ChargeOutcome.FAILURE)
    assert subscription.status == SubscriptionStatus.PAUSED


def test_refund_moves_to_pending_even_when_cancelled(make_subscription):
    subscription = make_subscription(status=SubscriptionStatus.CANCELLED)
    state_machine.apply_refund(subscription)
    assert subscription.status == SubscriptionStatus.PENDING


def test_renewal_decision_renews_auto_renew_subscription(make_subscription):
    now = datetime(2024, 2, 2)
    subscription = make_subscription(status=SubscriptionStatus.ACTIVE, next_billing_date=datetime(2024, 2, 1))

    assert state_machine.renewal_decision(subscription, now) == RenewalAction.RENEWED
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.start_date == now
    assert subscription.end_date == datetime(2024, 3, 2)
    assert subscription.next_billing_date == datetime(2024, 3, 2)


def test_renewal_decision_expires_without_auto_renew(make_subscription):
    subscription = make_subscription(
        status=SubscriptionStatus.ACTIVE, auto_renew=False, next_billing_date=datetime(2024, 2, 1)
    )
    assert state_machine.renewal_decision(subscription, datetime(2024, 2, 2)) == RenewalAction.EXPIRED
    assert subscription.status == SubscriptionStatus.EXPIRED


def test_renewal_decision_skips_not_due_or_inactive(make_subscription):
    not_due = make_subscription(status=SubscriptionStatus.ACTIVE, next_billing_date=datetime(2024, 3, 1))
    paused = make_subscription(status=SubscriptionStatus.PAUSED, next_billing_date=datetime(2024, 1, 1))
    now = datetime(2024, 2, 2)

    assert state_machine.renewal_decision(not_due, now) == RenewalAction.SKIPPED
    assert state_machine.renewal_decision(paused, now) == RenewalAction.SKIPPED
    assert paused.status == SubscriptionStatus.PAUSED


def test_trial_expiry_decision(make_subscription):
    ended = make_subscription(status=SubscriptionStatus.TRIAL, trial_end_date=datetime(2024, 1, 15))
    running = make_subscription(status=SubscriptionStatus.TRIAL, trial_end_date=datetime(2024, 1, 30))
    now = datetime(2024, 1, 20)

    assert state_machine.trial_expiry_decision(ended, now) == RenewalAction.EXPIRED
    assert ended.status == SubscriptionStatus.EXPIRED
    assert state_machine.trial_expiry_decision(running, now) == RenewalAction.SKIPPED
    assert running.status == SubscriptionStatus.TRIAL


def test_cancel_sets_reason_and_end_date(make_subscription):
    now = datetime(2024, 1, 10)
    subscription = make_subscription(status=SubscriptionStatus.ACTIVE)

    state_machine.cancel(subscription, "Too expensive", now)

    assert subscription.status == SubscriptionStatus.CANCELLED
    assert subscription.cancellation_reason == "Too expensive"
    assert subscription.end_date == now
    assert subscription.next_billing_date is None

    with pytest.raises(ConflictError):
        state_machine.cancel(subscription, "again", now)


def test_pause_and_resume(make_subscription):
    subscription = make_subscription(status=SubscriptionStatus.ACTIVE)

    state_machine.pause(subscription)
    assert subscription.status == SubscriptionStatus.PAUSED
    with pytest.raises(ValidationError):
        state_machine.pause(subscription)

    state_machine.resume(subscription)
    assert subscription.status == SubscriptionStatus.ACTIVE
    with pytest.raises(ValidationError):
        state_machine.resume(subscription)
