"""Payment provider boundary (Stripe hosted checkout).

Everything the enrollment flow needs from the provider goes through the
``PaymentGateway`` protocol:

  get_price                   resolve a course's price id to an amount
  create_customer             one provider customer per user, reused
  create_checkout_session     hosted checkout; the caller redirects to .url
  retrieve_checkout_session   read back payment status + metadata on verify

``HttpStripeGateway`` talks to the Stripe REST API with httpx (form-encoded
bodies, secret key as bearer).  ``InMemoryPaymentGateway`` is the stand-in
used when STRIPE_SECRET_KEY is not configured; tests drive it directly to
mark sessions paid or expired.

Provider failures surface as ``PaymentError``; the enrollment service turns
those into a 502 for the client and logs the details.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Protocol

import httpx

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


class PaymentError(Exception):
    """The provider rejected a call or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SignatureError(Exception):
    """A webhook payload failed signature verification."""


@dataclass(frozen=True, slots=True)
class Price:
    id: str
    unit_amount: int  # minor units (paise, cents)
    currency: str


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    id: str
    url: str | None
    status: str  # open|complete|expired
    payment_status: str  # paid|unpaid|no_payment_required
    metadata: dict[str, str] = field(default_factory=dict)
    amount_total: int | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


class PaymentGateway(Protocol):
    async def get_price(self, price_id: str) -> Price: ...
    async def create_customer(self, *, email: str, name: str, user_id: str) -> str: ...
    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession: ...
    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession: ...


class HttpStripeGateway:
    def __init__(
        self,
        secret_key: str,
        *,
        base_url: str = "https://api.stripe.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport

    async def get_price(self, price_id: str) -> Price:
        data = await self._request("GET", f"/v1/prices/{price_id}")
        return Price(
            id=data["id"],
            unit_amount=int(data.get("unit_amount") or 0),
            currency=data.get("currency", ""),
        )

    async def create_customer(self, *, email: str, name: str, user_id: str) -> str:
        data = await self._request(
            "POST",
            "/v1/customers",
            form={"email": email, "name": name, "metadata[user_id]": user_id},
        )
        return data["id"]

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        form = {
            "mode": "payment",
            "customer": customer_id,
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        form.update({f"metadata[{k}]": v for k, v in metadata.items()})
        data = await self._request("POST", "/v1/checkout/sessions", form=form)
        return session_from_json(data)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        data = await self._request("GET", f"/v1/checkout/sessions/{session_id}")
        return session_from_json(data)

    async def _request(
        self, method: str, path: str, *, form: dict[str, str] | None = None
    ) -> dict:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Authorization": f"Bearer {self._secret_key}"},
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, data=form)
        except httpx.HTTPError as e:
            raise PaymentError(f"stripe unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                message = response.json().get("error", {}).get("message", "")
            except ValueError:
                message = response.text
            raise PaymentError(
                f"stripe {method} {path} -> {response.status_code}: {message}",
                status_code=response.status_code,
            )
        return response.json()


def session_from_json(data: dict) -> CheckoutSession:
    return CheckoutSession(
        id=data["id"],
        url=data.get("url"),
        status=data.get("status", "open"),
        payment_status=data.get("payment_status", "unpaid"),
        metadata=dict(data.get("metadata") or {}),
        amount_total=data.get("amount_total"),
    )


class InMemoryPaymentGateway:
    """Provider stand-in for dev/test.

    Prices must be registered with ``set_price``; sessions start unpaid and
    move with ``complete_session`` / ``expire_session``.  Setting
    ``outage`` makes every call fail like an unreachable provider.
    """

    def __init__(self, checkout_base_url: str = "https://checkout.test") -> None:
        self._checkout_base_url = checkout_base_url
        self.prices: dict[str, Price] = {}
        self.customers: dict[str, dict[str, str]] = {}
        self.sessions: dict[str, CheckoutSession] = {}
        self.outage = False

    def set_price(
        self, price_id: str, unit_amount: int, currency: str = "inr"
    ) -> None:
        self.prices[price_id] = Price(
            id=price_id, unit_amount=unit_amount, currency=currency
        )

    def complete_session(self, session_id: str) -> CheckoutSession:
        s = replace(self.sessions[session_id], status="complete", payment_status="paid")
        self.sessions[session_id] = s
        return s

    def expire_session(self, session_id: str) -> CheckoutSession:
        s = replace(self.sessions[session_id], status="expired")
        self.sessions[session_id] = s
        return s

    async def get_price(self, price_id: str) -> Price:
        self._check_outage()
        price = self.prices.get(price_id)
        if price is None:
            raise PaymentError(f"No such price: {price_id!r}", status_code=404)
        return price

    async def create_customer(self, *, email: str, name: str, user_id: str) -> str:
        self._check_outage()
        customer_id = f"cus_{uuid.uuid4().hex[:14]}"
        self.customers[customer_id] = {"email": email, "name": name, "user_id": user_id}
        return customer_id

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        self._check_outage()
        price = await self.get_price(price_id)
        session_id = f"cs_test_{uuid.uuid4().hex}"
        session = CheckoutSession(
            id=session_id,
            url=f"{self._checkout_base_url}/pay/{session_id}",
            status="open",
            payment_status="unpaid",
            metadata=dict(metadata),
            amount_total=price.unit_amount,
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        self._check_outage()
        session = self.sessions.get(session_id)
        if session is None:
            raise PaymentError(
                f"No such checkout.session: {session_id!r}", status_code=404
            )
        return session

    def _check_outage(self) -> None:
        if self.outage:
            raise PaymentError("stripe unreachable: simulated outage")


# ---------------------------------------------------------------------------
# Webhook signatures
# ---------------------------------------------------------------------------
# Header format: "t=<unix ts>,v1=<hex hmac-sha256(secret, f'{t}.{payload}')>"


def webhook_signature_header(payload: bytes, secret: str, timestamp: int) -> str:
    """Build a Stripe-Signature header value for ``payload``."""
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def construct_event(
    payload: bytes,
    signature_header: str,
    secret: str,
    *,
    tolerance: int = WEBHOOK_TOLERANCE_SECONDS,
    now: int | None = None,
) -> dict:
    """Verify a webhook signature and return the decoded event."""
    parts: dict[str, list[str]] = {}
    for item in signature_header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep:
            parts.setdefault(key, []).append(value)

    try:
        timestamp = int(parts["t"][0])
    except (KeyError, ValueError):
        raise SignatureError("missing or malformed timestamp") from None
    candidates = parts.get("v1", [])
    if not candidates:
        raise SignatureError("no v1 signature")

    expected = webhook_signature_header(payload, secret, timestamp).split("v1=", 1)[1]
    if not any(hmac.compare_digest(expected, c) for c in candidates):
        raise SignatureError("signature mismatch")

    current = int(time.time()) if now is None else now
    if abs(current - timestamp) > tolerance:
        raise SignatureError("timestamp outside tolerance")

    try:
        return json.loads(payload)
    except ValueError:
        raise SignatureError("payload is not JSON") from None


if SETTINGS.stripe_secret_key:
    payment_gateway: PaymentGateway = HttpStripeGateway(
        SETTINGS.stripe_secret_key, base_url=SETTINGS.stripe_api_base
    )
else:
    payment_gateway = InMemoryPaymentGateway()
