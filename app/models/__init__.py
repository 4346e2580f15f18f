from .payment_model import Payment, PaymentStatus
from .plan_model import SubscriptionPlan
from .subscription_model import Subscription, SubscriptionStatus, BillingCycle

__all__ = [
    "Payment",
    "PaymentStatus",
    "SubscriptionPlan",
    "Subscription",
    "SubscriptionStatus",
    "BillingCycle",
]
