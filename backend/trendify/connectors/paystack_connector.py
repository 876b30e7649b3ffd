"""
Paystack API Connector
Handles all interactions with the Paystack REST API

- Transaction initialization (hosted checkout)
- Transaction verification
- Webhook signature verification (HMAC-SHA512)
"""
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from trendify.core.config import get_settings
from trendify.core.errors import PaymentGatewayError
from trendify.domain.payment import PaymentOutcome, PaystackInit, PaystackTransaction

logger = logging.getLogger(__name__)

STATUS_OUTCOMES = {
    "success": PaymentOutcome.PAID,
    "failed": PaymentOutcome.FAILED,
    "abandoned": PaymentOutcome.ABANDONED,
}


def outcome_for_status(status: Optional[str]) -> PaymentOutcome:
    """Map a Paystack transaction status to a payment outcome"""
    return STATUS_OUTCOMES.get((status or "").lower(), PaymentOutcome.UNKNOWN)


def verify_webhook_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Check the x-paystack-signature header against the raw request body.

    Paystack signs the exact bytes it sends, so this must run before any JSON
    parsing.
    """
    if not signature or not secret:
        return False
    computed = hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(computed, signature.strip().lower())


class PaystackConnector:
    """
    Connector for the Paystack REST API

    Every call authenticates with the secret key. A missing key, network
    failures, non-2xx responses and `"status": false` envelopes all raise
    PaymentGatewayError.
    """

    def __init__(self, secret_key: str = None, base_url: str = None,
                 timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        """
        Args:
            secret_key: Paystack secret key (defaults to PAYSTACK_SECRET_KEY)
            base_url: API root (defaults to PAYSTACK_BASE_URL)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        settings = get_settings()
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYSTACK_TIMEOUT_SECONDS
        self._transport = transport
        self.api_calls = 0

    async def _make_request(self, method: str, endpoint: str, payload: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Make authenticated request to Paystack

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint (e.g., '/transaction/verify/REF')
            payload: JSON body for POST

        Returns:
            The `data` member of the response envelope
        """
        if not self.secret_key:
            raise PaymentGatewayError("Payment gateway not configured")

        url = f"{self.base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.request(method, url, headers=headers, json=payload)
                self.api_calls += 1
            except httpx.HTTPError as e:
                logger.error(f"Paystack request error: {method} {endpoint}: {e}")
                raise PaymentGatewayError("Payment gateway unreachable") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or not body.get("status"):
            message = body.get("message") or f"Paystack returned HTTP {response.status_code}"
            logger.error(f"Paystack request failed: {response.status_code} {endpoint} - {message}")
            raise PaymentGatewayError(message)

        return body.get("data") or {}

    async def initialize_transaction(
        self,
        email: str,
        amount_minor: int,
        currency: str,
        reference: str,
        callback_url: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> PaystackInit:
        """
        Start a hosted checkout

        Args:
            email: Customer e-mail
            amount_minor: Amount in minor units (pesewas/kobo)
            currency: ISO currency code
            reference: Our unique transaction reference
            callback_url: Where Paystack redirects the customer afterwards
            metadata: Echoed back on verify and webhook payloads

        Returns:
            PaystackInit with authorization_url, access_code and reference
        """
        data = await self._make_request("POST", "/transaction/initialize", {
            "email": email,
            "amount": amount_minor,
            "currency": currency,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata or {},
        })
        logger.info(f"Paystack transaction initialized: {reference}")
        return PaystackInit(**data)

    async def verify_transaction(self, reference: str) -> PaystackTransaction:
        """Fetch the authoritative status of a transaction"""
        data = await self._make_request("GET", f"/transaction/verify/{quote(reference, safe='')}")
        try:
            return PaystackTransaction(**data)
        except ValidationError as e:
            logger.error(f"Unexpected verify payload for {reference}: {e}")
            raise PaymentGatewayError("Malformed verification response") from e


def get_paystack_connector() -> PaystackConnector:
    """FastAPI dependency (overridden in tests)"""
    return PaystackConnector()
