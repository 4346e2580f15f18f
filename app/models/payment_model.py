import enum
from sqlalchemy import Column, String, Numeric, DateTime, Index, Enum as SQLAlchemyEnum, func

from app.core.exceptions import ConflictError
from .base import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# Allowed status moves; FAILED and REFUNDED are terminal
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED},
    PaymentStatus.SUCCEEDED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    # Lookup only; the subscription aggregate is owned elsewhere
    subscription_id = Column(String(36), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(SQLAlchemyEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    transaction_id = Column(String, nullable=True, index=True)

    refund_amount = Column(Numeric(12, 2), nullable=True)
    refund_transaction_id = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def can_transition_to(self, status: PaymentStatus) -> bool:
        return status in PAYMENT_TRANSITIONS.get(self.status, set())

    def transition_to(self, status: PaymentStatus) -> "Payment":
        if not self.can_transition_to(status):
            raise ConflictError(
                f"Payment cannot move from {self.status.value} to {status.value}",
                details={"payment_id": self.id},
            )
        self.status = status
        return self
