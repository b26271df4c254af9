from __future__ import annotations

import json
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse

from booking_bot.application.dto.webhook_event import WebhookEventDTO
from booking_bot.core.config import settings
from booking_bot.infrastructure.whatsapp.webhook_verify import verify_get_request, verify_post_signature
from booking_bot.wiring.dependencies import get_handle_incoming_message_use_case


router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/webhook")
def verify_webhook(request: Request):
    challenge = verify_get_request(request.query_params, settings.WHATSAPP_VERIFY_TOKEN)
    if challenge is None:
        raise HTTPException(status_code=403, detail="Verification failed")
    return PlainTextResponse(challenge)


@router.post("/webhook")
async def whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
) -> Response:
    body = await request.body()
    signature = request.headers.get("X-Hub-Signature-256")
    if not verify_post_signature(body, signature, settings.META_APP_SECRET, settings.ENV):
        logger.warning("Webhook signature rejected")
        return Response(status_code=403)

    try:
        payload = json.loads(body.decode("utf-8")) if body else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.exception("Failed to parse webhook body")
        return Response(status_code=400)

    try:
        use_case = get_handle_incoming_message_use_case()
    except Exception as e:
        logger.exception("Failed to initialize use case", extra={"error": str(e)})
        return Response(status_code=500)

    events = WebhookEventDTO.model_validate(payload).extract_events()
    logger.info("Webhook received", extra={"message_count": len(events)})

    for event in events:
        background_tasks.add_task(use_case.handle, event)

    return Response(status_code=200)
