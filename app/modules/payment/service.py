import asyncio
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, NoReturn, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    BillingError,
    ConflictError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from app.models.payment_model import Payment, PaymentStatus
from app.models.subscription_model import Subscription
from app.modules.notification.publisher import (
    EventPublisher,
    event_publisher,
    notify_user,
    publish_payment_event,
)
from app.modules.payment.provider import PaymentProvider, get_payment_provider
from app.modules.subscription.state_machine import ChargeOutcome
from app.modules.subscription.transitions import (
    CompensationOutcome,
    CompensationStatus,
    SubscriptionTransitions,
    subscription_transitions,
)
from app.repository.payment_repository import PaymentRepository, payment_repository
from app.repository.subscription_repository import SubscriptionRepository, subscription_repository
from app.schemas.payment_schema import PaymentRequest, PaymentResponse

logger = logging.getLogger(__name__)

# Fixed 1% platform fee kept on refunds
REFUND_RATE = Decimal("0.99")
CENTS = Decimal("0.01")


def compute_refund_amount(amount: Decimal) -> Decimal:
    return (Decimal(amount) * REFUND_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)


def build_payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=payment.id,
        user_id=payment.user_id,
        subscription_id=payment.subscription_id,
        amount=payment.amount,
        status=payment.status,
        transaction_id=payment.transaction_id,
        refund_amount=payment.refund_amount,
        created_at=payment.created_at,
    )


@dataclass
class ChargeResult:
    """
    `response` is projected right after the payment's own write. A failed
    subscription write rolls the session back and expires `payment`, so
    callers read the projection rather than the ORM instance.
    """
    payment: Payment
    subscription_outcome: CompensationOutcome
    response: Optional[PaymentResponse] = None
    # False when even the terminal payment write failed; the record is still PENDING
    payment_recorded: bool = True

    @property
    def succeeded(self) -> bool:
        return (
            self.payment_recorded
            and self.response is not None
            and self.response.status == PaymentStatus.SUCCEEDED
        )


@dataclass
class RefundResult:
    payment: Payment
    refund_amount: Decimal
    subscription_outcome: CompensationOutcome
    response: Optional[PaymentResponse] = None


class PaymentService:
    def __init__(
        self,
        payments: PaymentRepository = payment_repository,
        subscriptions: SubscriptionRepository = subscription_repository,
        transitions: SubscriptionTransitions = subscription_transitions,
        provider: Optional[PaymentProvider] = None,
        publisher: EventPublisher = event_publisher,
        provider_timeout: Optional[float] = None,
    ):
        self.payments = payments
        self.subscriptions = subscriptions
        self.transitions = transitions
        self.provider = provider or get_payment_provider()
        self.publisher = publisher
        self.provider_timeout = provider_timeout or settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS

    async def _validate_subscription(self, db: AsyncSession, user_id: str, subscription_id: str) -> Subscription:
        subscription = await self.subscriptions.get(db, subscription_id)
        if not subscription:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        if subscription.user_id != user_id:
            raise AuthorizationError(
                "Subscription does not belong to user",
                details={"subscription_id": subscription_id},
            )
        return subscription

    async def _get_owned_payment(self, db: AsyncSession, user_id: str, payment_id: str, action: str) -> Payment:
        payment = await self.payments.get(db, payment_id)
        if not payment:
            raise NotFoundError("Payment not found", details={"payment_id": payment_id})
        if payment.user_id != user_id:
            raise AuthorizationError(f"Unauthorized to {action} this payment", details={"payment_id": payment_id})
        return payment

    async def _call_provider(self, call) -> str:
        try:
            return await asyncio.wait_for(call, timeout=self.provider_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Payment provider did not answer within {self.provider_timeout}s") from e
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Payment provider error: {e}") from e

    # ========== CHARGE PATH ==========

    async def process_payment(self, db: AsyncSession, user_id: str, request: PaymentRequest) -> ChargeResult:
        """
        Charges the caller and brings the subscription in line with the outcome.

        The payment and the subscription are separate durable writes. Once the
        PENDING payment exists, every failure ends with the payment marked FAILED,
        the subscription PAUSED and a ProviderError raised to the caller.
        """
        logger.info(f"Processing payment for user: {user_id}, subscription: {request.subscription_id}")

        if request.amount is None or request.amount <= 0:
            raise ValidationError("Amount must be positive")
        amount = Decimal(request.amount)
        # The provider must be charged exactly what the Numeric(12, 2) column stores
        if amount != amount.quantize(CENTS):
            raise ValidationError("Amount cannot have more than 2 decimal places", details={"amount": str(amount)})
        amount = amount.quantize(CENTS)

        subscription = await self._validate_subscription(db, user_id, request.subscription_id)
        plan_name = subscription.plan_name

        payment = Payment(
            id=str(uuid.uuid4()),
            user_id=user_id,
            subscription_id=request.subscription_id,
            amount=amount,
            status=PaymentStatus.PENDING,
        )
        payment = await self.payments.save(db, payment)
        payment_id = payment.id

        transaction_id = None
        try:
            transaction_id = await self._call_provider(
                self.provider.charge(request.payment_method_token, amount)
            )

            payment.transition_to(PaymentStatus.SUCCEEDED)
            payment.transaction_id = transaction_id
            payment = await self.payments.save(db, payment)
        except Exception as e:
            await self._fail_charge(
                db, user_id, payment, payment_id, request.subscription_id, plan_name, amount, transaction_id, e
            )
        response = build_payment_response(payment)

        outcome = await self.transitions.apply_charge_outcome(db, subscription, ChargeOutcome.SUCCESS)

        self._send_payment_success_notification(user_id, payment_id, amount, request.subscription_id, plan_name)
        publish_payment_event(
            self.publisher,
            "PAYMENT_SUCCESS",
            user_id,
            payment_id,
            request.subscription_id,
            amount=amount,
        )

        logger.info(f"Payment successful for user: {user_id}, paymentId: {payment_id}")
        return ChargeResult(payment=payment, subscription_outcome=outcome, response=response)

    async def _fail_charge(
        self,
        db: AsyncSession,
        user_id: str,
        payment: Payment,
        payment_id: str,
        subscription_id: str,
        plan_name: str,
        amount: Decimal,
        transaction_id: Optional[str],
        error: Exception,
    ) -> NoReturn:
        """Marks the charge FAILED, pauses the subscription and raises ProviderError."""
        error_message = error.detail if isinstance(error, BillingError) else str(error)
        # The durable state is PENDING here whatever the in-memory object says
        payment.status = PaymentStatus.FAILED
        if transaction_id:
            payment.transaction_id = transaction_id

        recorded = True
        response = None
        try:
            payment = await self.payments.save(db, payment)
            response = build_payment_response(payment)
        except Exception as save_error:
            recorded = False
            logger.error(f"Failed to record FAILED status for payment: {payment_id}: {save_error}")

        # Re-read: a failed write above rolls the session back and expires loaded rows
        try:
            subscription = await self.subscriptions.get(db, subscription_id)
        except Exception as read_error:
            logger.error(f"Failed to reload subscription {subscription_id} for compensation: {read_error}")
            outcome = CompensationOutcome(CompensationStatus.FAILED, subscription_id, error=str(read_error))
        else:
            if subscription is None:
                outcome = CompensationOutcome(CompensationStatus.FAILED, subscription_id, error="Subscription not found")
            else:
                outcome = await self.transitions.apply_charge_outcome(db, subscription, ChargeOutcome.FAILURE)

        self._send_payment_failure_notification(
            user_id,
            payment_id,
            amount,
            subscription_id=subscription_id,
            plan_name=plan_name,
            error_message=error_message,
        )

        logger.error(f"Payment failed for user: {user_id}, subscription: {subscription_id}: {error_message}")
        result = ChargeResult(
            payment=payment, subscription_outcome=outcome, response=response, payment_recorded=recorded
        )
        raise ProviderError(
            f"Payment processing failed: {error_message}",
            details={"payment_id": payment_id},
            result=result,
        ) from error

    # ========== REFUND PATH ==========

    async def cancel_payment(self, db: AsyncSession, user_id: str, payment_id: str) -> RefundResult:
        """
        Refunds a successful payment minus the 1% platform fee and moves the
        subscription to PENDING. A provider failure leaves the payment SUCCEEDED
        so the whole cancellation can be retried.
        """
        logger.info(f"Processing cancellation for payment: {payment_id}, user: {user_id}")

        payment = await self._get_owned_payment(db, user_id, payment_id, "cancel")

        if payment.status == PaymentStatus.REFUNDED:
            raise ConflictError("Payment already refunded", details={"payment_id": payment_id})
        if payment.status != PaymentStatus.SUCCEEDED:
            raise ValidationError(
                "Only successful payments can be cancelled",
                details={"payment_id": payment_id, "status": payment.status.value},
            )

        subscription = await self._validate_subscription(db, user_id, payment.subscription_id)
        plan_name = subscription.plan_name

        refund_amount = compute_refund_amount(payment.amount)
        try:
            refund_transaction_id = await self._call_provider(
                self.provider.refund(payment.transaction_id, refund_amount)
            )
        except ProviderError as e:
            logger.error(f"Refund failed for payment: {payment_id}: {e.detail}")
            raise ProviderError(f"Refund processing failed: {e.detail}", details={"payment_id": payment_id}) from e

        payment.transition_to(PaymentStatus.REFUNDED)
        payment.refund_amount = refund_amount
        payment.refund_transaction_id = refund_transaction_id
        payment = await self.payments.save(db, payment)
        response = build_payment_response(payment)

        outcome = await self.transitions.apply_refund(db, subscription)

        self._send_refund_notification(
            user_id, payment_id, response.amount, response.subscription_id, plan_name, refund_amount
        )
        publish_payment_event(
            self.publisher,
            "PAYMENT_REFUNDED",
            user_id,
            payment_id,
            response.subscription_id,
            refundAmount=refund_amount,
        )

        logger.info(f"Payment cancelled and refund processed for payment: {payment_id}")
        return RefundResult(
            payment=payment, refund_amount=refund_amount, subscription_outcome=outcome, response=response
        )

    # ========== QUERIES ==========

    async def get_payment(self, db: AsyncSession, user_id: str, payment_id: str) -> Payment:
        return await self._get_owned_payment(db, user_id, payment_id, "view")

    async def list_user_payments(self, db: AsyncSession, user_id: str) -> List[Payment]:
        return await self.payments.list_by_user(db, user_id)

    # ========== NOTIFICATIONS ==========

    def _send_payment_success_notification(
        self, user_id: str, payment_id: str, amount: Decimal, subscription_id: str, plan_name: str
    ):
        notify_user(
            self.publisher,
            user_id,
            "PAYMENT_SUCCESS",
            "Payment Successful",
            f"Your payment of ${amount:.2f} for {plan_name} has been processed successfully.",
            {
                "paymentId": payment_id,
                "amount": amount,
                "subscriptionId": subscription_id,
                "subscriptionName": plan_name,
            },
        )

    def _send_payment_failure_notification(
        self,
        user_id: str,
        payment_id: str,
        amount: Decimal,
        subscription_id: str,
        plan_name: str,
        error_message: str,
    ):
        notify_user(
            self.publisher,
            user_id,
            "PAYMENT_FAILED",
            "Payment Failed",
            f"Your payment of ${amount:.2f} for {plan_name} has failed. Please try again.",
            {
                "paymentId": payment_id,
                "amount": amount,
                "subscriptionId": subscription_id,
                "error": error_message,
            },
        )

    def _send_refund_notification(
        self,
        user_id: str,
        payment_id: str,
        original_amount: Decimal,
        subscription_id: str,
        plan_name: str,
        refund_amount: Decimal,
    ):
        notify_user(
            self.publisher,
            user_id,
            "PAYMENT_REFUNDED",
            "Refund Processed",
            f"Your refund of ${refund_amount:.2f} for {plan_name} has been processed. "
            "The amount will be credited to your account within 5-7 business days.",
            {
                "paymentId": payment_id,
                "originalAmount": original_amount,
                "refundAmount": refund_amount,
                "subscriptionId": subscription_id,
            },
        )


payment_service = PaymentService()
