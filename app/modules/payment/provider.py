import asyncio
import hashlib
import hmac
import json
import logging
import random
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional

import httpx

from app.core.config import settings
from app.core.exceptions import ProviderError

logger = logging.getLogger(__name__)


class PaymentProvider(ABC):
    """Contract the billing sagas need from an external payment provider."""

    @abstractmethod
    async def charge(self, token: str, amount: Decimal) -> str:
        """Charge `amount` against a payment-method token, returning the transaction reference."""

    @abstractmethod
    async def refund(self, transaction_ref: str, amount: Decimal) -> str:
        """Refund `amount` of a settled transaction, returning the refund reference."""


class HttpPaymentProvider(PaymentProvider):
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        merchant_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.PAYMENT_PROVIDER_URL or "").rstrip("/")
        self.api_key = api_key or settings.PAYMENT_PROVIDER_API_KEY or ""
        self.merchant_id = merchant_id or settings.PAYMENT_PROVIDER_MERCHANT_ID or ""
        self.timeout = timeout or settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    def _body_sha256(self, body: dict) -> str:
        body_json = json.dumps(body, separators=(",", ":"))
        return hashlib.sha256(body_json.encode()).hexdigest()

    def _get_api_signature(self, http_method: str, body: dict) -> str:
        """HMAC-SHA256 over METHOD:merchant:sha256(body):key."""
        string_to_sign = f"{http_method.upper()}:{self.merchant_id}:{self._body_sha256(body)}:{self.api_key}"
        return hmac.new(self.api_key.encode(), string_to_sign.encode(), hashlib.sha256).hexdigest()

    async def _post(self, path: str, payload: dict, reference_key: str) -> str:
        if not self.base_url:
            raise ProviderError("Payment provider URL is not configured")

        headers = {
            "signature": self._get_api_signature("POST", payload),
            "merchant": self.merchant_id,
            "Content-Type": "application/json",
            "timestamp": datetime.utcnow().strftime("%Y%m%d%H%M%S"),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/{path.lstrip('/')}", headers=headers, json=payload)
                response.raise_for_status()
                response_data = response.json()
        except httpx.TimeoutException as e:
            raise ProviderError(f"Payment provider timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(f"HTTP error with payment provider: {e.response.text}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Payment provider request failed: {e}") from e

        if response_data.get("status") != "succeeded":
            error_message = response_data.get("message", "Unknown payment provider error")
            raise ProviderError(f"Payment provider declined the request: {error_message}")

        reference = response_data.get(reference_key)
        if not reference:
            raise ProviderError(f"Payment provider response missing '{reference_key}'")
        return str(reference)

    async def charge(self, token: str, amount: Decimal) -> str:
        payload = {"paymentMethodToken": token, "amount": str(amount)}
        return await self._post("/charges", payload, "transactionId")

    async def refund(self, transaction_ref: str, amount: Decimal) -> str:
        payload = {"transactionId": transaction_ref, "amount": str(amount)}
        return await self._post("/refunds", payload, "refundId")


class SimulatedPaymentProvider(PaymentProvider):
    """
    Stand-in provider with network-like latency and failure injection.
    The token `tok_fail` is always declined; other calls fail at `failure_rate`.
    """
    DECLINED_TOKEN = "tok_fail"

    def __init__(self, delay: Optional[float] = None, failure_rate: Optional[float] = None):
        self.delay = settings.SIMULATED_PROVIDER_DELAY_SECONDS if delay is None else delay
        self.failure_rate = settings.SIMULATED_PROVIDER_FAILURE_RATE if failure_rate is None else failure_rate

    def _should_fail(self) -> bool:
        return self.failure_rate > 0 and random.random() < self.failure_rate

    async def charge(self, token: str, amount: Decimal) -> str:
        logger.info(f"Processing payment with token: {token}, amount: {amount}")
        await asyncio.sleep(self.delay)
        if token == self.DECLINED_TOKEN or self._should_fail():
            raise ProviderError("Card declined by payment provider")
        return "txn_" + uuid.uuid4().hex[:16]

    async def refund(self, transaction_ref: str, amount: Decimal) -> str:
        logger.info(f"Processing refund for transaction: {transaction_ref}, amount: {amount}")
        await asyncio.sleep(self.delay)
        if self._should_fail():
            raise ProviderError("Refund rejected by payment provider")
        return "ref_" + uuid.uuid4().hex[:16]


def get_payment_provider() -> PaymentProvider:
    if settings.PAYMENT_PROVIDER == "http":
        return HttpPaymentProvider()
    return SimulatedPaymentProvider()
