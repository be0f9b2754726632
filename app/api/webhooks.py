"""Payment provider webhook.

Unauthenticated: the Stripe-Signature header (HMAC over the raw body with
STRIPE_WEBHOOK_SECRET) is the credential, so the body must be read as
bytes and never re-serialized before verification.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header, Request

from app.api.dependencies import StoreDep
from app.core.config import SETTINGS
from app.services import enrollment_service

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    store: StoreDep,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> dict:
    payload = await request.body()
    event_type = await enrollment_service.handle_webhook(
        store, payload, stripe_signature, secret=SETTINGS.stripe_webhook_secret
    )
    return {"received": True, "type": event_type}
