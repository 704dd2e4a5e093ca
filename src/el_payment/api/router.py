"""Stripe webhook: the only way credits enter the ledger.

Signature is verified with ``stripe.Webhook.construct_event``. Only
``checkout.session.completed`` carries a top-up (session metadata
``account_id`` and ``credits_count``); other event types are acknowledged and
ignored. A StorageUnavailableError surfaces as 503 so Stripe redelivers.
"""

import json
import logging
from typing import Annotated, Any

import stripe
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.el_common.database import get_db_session
from src.el_common.errors import ConfigurationError, InvalidCreditAmountError, InvalidWebhookError
from src.el_common.response import ApiResponse, success_response
from src.el_gateway.middleware.request_log import get_request_id
from src.el_payment.application.service import PaymentApplicationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

_service = PaymentApplicationService()

CHECKOUT_COMPLETED = "checkout.session.completed"


def _verify_event(payload: bytes, signature: str | None) -> dict[str, Any]:
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise ConfigurationError("STRIPE_WEBHOOK_SECRET is not set")
    if not signature:
        raise InvalidWebhookError("missing Stripe-Signature header")
    try:
        stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as exc:
        raise InvalidWebhookError("malformed payload") from exc
    except stripe.SignatureVerificationError as exc:
        raise InvalidWebhookError("bad signature") from exc
    # Verified; work on plain JSON from here on.
    return json.loads(payload)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
) -> ApiResponse:
    payload = await request.body()
    event = _verify_event(payload, stripe_signature)

    event_id = event.get("id")
    event_type = event.get("type")
    logger.info("Stripe webhook received: event=%s type=%s", event_id, event_type)

    if event_type != CHECKOUT_COMPLETED:
        resp = success_response({"event_id": event_id, "status": "ignored"})
        resp.request_id = get_request_id(request)
        return resp

    session = (event.get("data") or {}).get("object") or {}
    metadata = session.get("metadata") or {}
    account_id = metadata.get("account_id")
    credits_count = metadata.get("credits_count")
    if not event_id or not account_id or credits_count is None:
        # Redelivery would not fix a malformed session; acknowledge and log.
        logger.error(
            "Checkout session without top-up metadata: event=%s metadata=%s",
            event_id, metadata,
        )
        resp = success_response({"event_id": event_id, "status": "rejected"})
        resp.request_id = get_request_id(request)
        return resp

    try:
        result = await _service.handle_payment_confirmed(db, event_id, account_id, credits_count)
    except InvalidCreditAmountError:
        logger.error("Checkout session with invalid credits_count=%r: event=%s", credits_count, event_id)
        resp = success_response({"event_id": event_id, "status": "rejected"})
        resp.request_id = get_request_id(request)
        return resp

    resp = success_response(
        {
            "event_id": event_id,
            "status": "duplicate" if result.duplicate else "credited",
            "account_id": result.account_id,
            "credits": str(result.credits),
        }
    )
    resp.request_id = get_request_id(request)
    return resp
