from __future__ import annotations

import json
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from src.services.webhook_service import webhook_service
from src.services.whatsapp_service import whatsapp_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.get("", response_class=PlainTextResponse)
async def verify_webhook_endpoint(
    mode: str | None = Query(None, alias="hub.mode"),
    token: str | None = Query(None, alias="hub.verify_token"),
    challenge: str | None = Query(None, alias="hub.challenge"),
) -> PlainTextResponse:
    result = whatsapp_service.verify_webhook(mode, token, challenge)
    if result is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")
    return PlainTextResponse(result)


@router.post("", response_class=PlainTextResponse)
async def receive_webhook_endpoint(request: Request, background_tasks: BackgroundTasks) -> PlainTextResponse:
    """Acknowledge immediately; WhatsApp retries anything that is not a fast 200.

    Processing runs after the response has been sent.
    """

    raw = await request.body()
    try:
        body = json.loads(raw) if raw else None
    except ValueError:
        logger.warning("webhook_body_not_json bytes=%d", len(raw))
        body = None

    logger.info("webhook_received object=%s", body.get("object") if isinstance(body, dict) else None)

    if body is not None:
        background_tasks.add_task(webhook_service.handle_payload, body)

    return PlainTextResponse("EVENT_RECEIVED")
