"""
Realtime transport webhook endpoint.

The transport posts batches of channel messages here. Each location update
or stop event is processed independently; the batch is acknowledged with
200 and per-outcome counts even when some messages were skipped.
"""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from convoy.app.core.config import settings
from convoy.app.db.session import get_session_factory
from convoy.app.schemas.realtime import WebhookAck
from convoy.app.services.realtime_webhook import SIGNATURE_HEADER, process_batch, verify_signature

router = APIRouter(prefix="/realtime", tags=["Realtime"])


@router.post("/webhook", response_model=WebhookAck)
async def realtime_webhook(
    request: Request,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Ingest a transport webhook batch.

    Body: {"items": [{"name": "channel.message", "data": {"channelId": ..., "messages": [...]}}]}

    Returns 400 for a body that is not JSON or carries no items, 401 when
    a webhook secret is configured and the signature does not match.
    """
    body = await request.body()
    verify_signature(body, request.headers.get(SIGNATURE_HEADER))

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body must be valid JSON"
        )

    items = payload.get("items") if isinstance(payload, dict) else None
    if not isinstance(items, list) or not items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No items found in webhook payload"
        )

    result = await process_batch(session_factory, items, settings.webhook_max_concurrency)
    return WebhookAck(**result.model_dump())
