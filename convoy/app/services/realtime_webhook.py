"""
Realtime transport webhook processing.

The transport batches channel messages and posts them here. Location
updates and stop-tracking events are pulled out of the batch and each one
is run through the ingestion gateway in its own database session, so a
malformed or rejected message is logged and skipped without touching its
siblings.

The transport's clientId is trusted as the acting user. That is weaker
than session auth (nothing re-authenticates per message); deployments
should set a webhook secret so at least the batch origin is verified.
"""

import asyncio
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import async_sessionmaker

from convoy.app.core.config import settings
from convoy.app.core.exceptions import AppException, AuthenticationError
from convoy.app.services.ingestion import IngestionGateway

logger = logging.getLogger("convoy.realtime")

CHANNEL_MESSAGE = "channel.message"
LOCATION_UPDATE = "ride:location-update"
STOP_TRACKING = "ride:stop-tracking"

SIGNATURE_HEADER = "X-Webhook-Signature"


class MalformedMessageError(ValueError):
    """A transport message that cannot be turned into a tracking action."""


class TrackingMessage(BaseModel):
    """A transport message decoded into a tracking action."""
    kind: str
    ride_id: str
    user_id: Any = None
    latitude: Any = None
    longitude: Any = None
    timestamp: Any = None
    speed: Any = None
    heading: Any = None


class WebhookBatchResult(BaseModel):
    received: int = 0
    processed: int = 0
    skipped: int = 0
    ignored: int = 0


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> None:
    """
    Check the batch HMAC-SHA256 (hex) when a webhook secret is configured.

    Raises:
        AuthenticationError: secret configured and signature missing or wrong
    """
    secret = secret if secret is not None else settings.realtime_webhook_secret
    if not secret:
        return
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not signature or not hmac.compare_digest(expected, signature.strip().lower()):
        raise AuthenticationError("Invalid webhook signature")


def iter_channel_messages(items: List[Any]) -> Iterator[Tuple[Any, Any]]:
    """Yield (channel_id, message) for every message of every channel.message item."""
    for item in items:
        if not isinstance(item, dict) or item.get("name") != CHANNEL_MESSAGE:
            continue
        data = item.get("data")
        if not isinstance(data, dict):
            continue
        messages = data.get("messages")
        if not isinstance(messages, list):
            continue
        for message in messages:
            yield data.get("channelId"), message


def ride_id_from_channel(channel_id: Any, prefix: Optional[str] = None) -> str:
    prefix = prefix or settings.realtime_channel_prefix
    if not isinstance(channel_id, str) or not channel_id.startswith(prefix):
        raise MalformedMessageError(f"Invalid channel ID {channel_id!r}")
    ride_id = channel_id[len(prefix):]
    if not ride_id:
        raise MalformedMessageError(f"Invalid channel ID {channel_id!r}")
    return ride_id


def _decode_payload(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except ValueError as exc:
            raise MalformedMessageError(f"Unparseable message data: {exc}")
        if isinstance(decoded, dict):
            return decoded
    raise MalformedMessageError("Message data must be a JSON object")


def parse_message(channel_id: Any, message: Any) -> Optional[TrackingMessage]:
    """
    Decode one transport message.

    Returns:
        TrackingMessage, or None for message names this service doesn't handle

    Raises:
        MalformedMessageError: broken channel id or payload
    """
    if not isinstance(message, dict):
        raise MalformedMessageError("Message must be an object")

    name = message.get("name")
    if name not in (LOCATION_UPDATE, STOP_TRACKING):
        return None

    ride_id = ride_id_from_channel(channel_id)
    user_id = message.get("clientId")

    if name == STOP_TRACKING:
        return TrackingMessage(kind=STOP_TRACKING, ride_id=ride_id, user_id=user_id)

    payload = _decode_payload(message.get("data"))
    coordinates = payload.get("coordinates")
    longitude = latitude = None
    if isinstance(coordinates, (list, tuple)) and len(coordinates) == 2:
        longitude, latitude = coordinates

    return TrackingMessage(
        kind=LOCATION_UPDATE,
        ride_id=ride_id,
        user_id=user_id,
        latitude=latitude,
        longitude=longitude,
        timestamp=payload.get("timestamp"),
        speed=payload.get("speed"),
        heading=payload.get("heading"),
    )


async def _apply(session_factory: async_sessionmaker, parsed: TrackingMessage) -> None:
    async with session_factory() as db:
        gateway = IngestionGateway(db)
        if parsed.kind == STOP_TRACKING:
            await gateway.stop_tracking(parsed.ride_id, parsed.user_id)
        else:
            await gateway.submit_location(
                parsed.ride_id,
                parsed.user_id,
                parsed.latitude,
                parsed.longitude,
                timestamp=parsed.timestamp,
                speed=parsed.speed,
                heading=parsed.heading,
            )


async def process_batch(
    session_factory: async_sessionmaker,
    items: List[Any],
    max_concurrency: Optional[int] = None
) -> WebhookBatchResult:
    """
    Process every message of a webhook batch independently.

    Messages run concurrently up to `max_concurrency`; per-key ordering is
    still enforced by the tracking store's locks.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency or settings.webhook_max_concurrency))

    async def handle(channel_id: Any, message: Any) -> str:
        async with semaphore:
            try:
                parsed = parse_message(channel_id, message)
                if parsed is None:
                    return "ignored"
                await _apply(session_factory, parsed)
                return "processed"
            except MalformedMessageError as exc:
                logger.warning("Webhook: skipping malformed message: %s", exc)
            except AppException as exc:
                logger.warning(
                    "Webhook: skipping message on channel %s: %s (%s)",
                    channel_id, exc.message, exc.error_code
                )
            except Exception:
                logger.exception("Webhook: unexpected failure on channel %s", channel_id)
            return "skipped"

    messages = list(iter_channel_messages(items))
    outcomes = await asyncio.gather(*(handle(c, m) for c, m in messages))

    result = WebhookBatchResult(
        received=len(messages),
        processed=outcomes.count("processed"),
        skipped=outcomes.count("skipped"),
        ignored=outcomes.count("ignored"),
    )
    logger.info(
        "Webhook batch: %d received, %d processed, %d skipped, %d ignored",
        result.received, result.processed, result.skipped, result.ignored
    )
    return result
