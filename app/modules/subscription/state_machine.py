"""
Subscription lifecycle transitions and billing-cycle date arithmetic.

Everything here is pure: functions mutate the subscription they are given and
return it (or a RenewalAction), without touching the database.
"""
import calendar
import enum
from datetime import datetime, timedelta
from typing import Optional, Union

from app.core.exceptions import ConflictError, ValidationError
from app.models.subscription_model import BillingCycle, Subscription, SubscriptionStatus


class ChargeOutcome(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class RenewalAction(str, enum.Enum):
    RENEWED = "RENEWED"
    EXPIRED = "EXPIRED"
    SKIPPED = "SKIPPED"


def add_months(start: datetime, months: int) -> datetime:
    """Calendar month addition, clamped to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def _normalize_cycle(billing_cycle: Union[BillingCycle, str, None]) -> Optional[BillingCycle]:
    if isinstance(billing_cycle, BillingCycle):
        return billing_cycle
    if not billing_cycle:
        return None
    try:
        return BillingCycle(str(billing_cycle).strip().upper())
    except ValueError:
        return None


def compute_cycle_end(start: datetime, billing_cycle: Union[BillingCycle, str, None]) -> datetime:
    """
    End of one billing period starting at `start`.
    Unknown cycles fall back to one month.
    """
    cycle = _normalize_cycle(billing_cycle)
    if cycle == BillingCycle.DAILY:
        return start + timedelta(days=1)
    if cycle == BillingCycle.WEEKLY:
        return start + timedelta(weeks=1)
    if cycle == BillingCycle.QUARTERLY:
        return add_months(start, 3)
    if cycle == BillingCycle.YEARLY:
        return add_months(start, 12)
    return add_months(start, 1)


def apply_charge_outcome(subscription: Subscription, outcome: ChargeOutcome) -> Subscription:
    # Accepted from any current status
    if outcome == ChargeOutcome.SUCCESS:
        subscription.status = SubscriptionStatus.ACTIVE
    else:
        subscription.status = SubscriptionStatus.PAUSED
    return subscription


def apply_refund(subscription: Subscription) -> Subscription:
    # Unconditional, including CANCELLED subscriptions; see DESIGN.md
    subscription.status = SubscriptionStatus.PENDING
    return subscription


def start_period(subscription: Subscription, now: datetime) -> Subscription:
    subscription.start_date = now
    subscription.end_date = compute_cycle_end(now, subscription.billing_cycle)
    subscription.next_billing_date = subscription.end_date
    return subscription


def renewal_decision(subscription: Subscription, now: datetime) -> RenewalAction:
    if subscription.status != SubscriptionStatus.ACTIVE:
        return RenewalAction.SKIPPED
    if subscription.next_billing_date is None or subscription.next_billing_date >= now:
        return RenewalAction.SKIPPED

    if subscription.auto_renew:
        start_period(subscription, now)
        return RenewalAction.RENEWED

    subscription.status = SubscriptionStatus.EXPIRED
    return RenewalAction.EXPIRED


def trial_expiry_decision(subscription: Subscription, now: datetime) -> RenewalAction:
    # Trials always expire; there is no automatic conversion to a paid charge
    if subscription.status != SubscriptionStatus.TRIAL:
        return RenewalAction.SKIPPED
    if subscription.trial_end_date is None or subscription.trial_end_date >= now:
        return RenewalAction.SKIPPED

    subscription.status = SubscriptionStatus.EXPIRED
    return RenewalAction.EXPIRED


# --- Direct user actions ---

def cancel(subscription: Subscription, reason: str, now: datetime) -> Subscription:
    if subscription.status == SubscriptionStatus.CANCELLED:
        raise ConflictError("Subscription already cancelled", details={"subscription_id": subscription.id})

    subscription.status = SubscriptionStatus.CANCELLED
    subscription.cancellation_reason = reason
    subscription.end_date = now
    subscription.next_billing_date = None
    return subscription


def pause(subscription: Subscription) -> Subscription:
    if subscription.status != SubscriptionStatus.ACTIVE:
        raise ValidationError("Only active subscriptions can be paused")
    subscription.status = SubscriptionStatus.PAUSED
    return subscription


def resume(subscription: Subscription) -> Subscription:
    if subscription.status != SubscriptionStatus.PAUSED:
        raise ValidationError("Only paused subscriptions can be resumed")
    subscription.status = SubscriptionStatus.ACTIVE
    return subscription
