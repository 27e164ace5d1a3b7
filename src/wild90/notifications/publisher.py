"""Delivers presentation events to the user's WebSocket connections.

With Redis configured, events go out on ``ws:user:{user_id}`` (or the
broadcast channel when no user is known) and the pub/sub bridge relays them,
so any process holding the socket can deliver. Without Redis, or when the
publish fails, they are sent to the in-process connection manager directly.
"""

from __future__ import annotations

import json
import logging

from wild90.notifications.events import PresentationEvent
from wild90.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)

BROADCAST_CHANNEL = "pubsub:scan_events"


def user_channel(user_id: str) -> str:
    return f"ws:user:{user_id}"


class EventPublisher:
    def __init__(self, redis: object | None, manager: ConnectionManager) -> None:
        self.redis = redis
        self.manager = manager

    async def __call__(self, user_id: str | None, event: PresentationEvent) -> None:
        message = {"event": event.type, "data": event.model_dump(mode="json")}

        if self.redis is not None:
            channel = user_channel(user_id) if user_id is not None else BROADCAST_CHANNEL
            try:
                await self.redis.publish(channel, json.dumps(message))  # type: ignore[union-attr]
                return
            except Exception:
                logger.warning("Failed to publish %s via %s", event.type, channel, exc_info=True)

        if user_id is None:
            await self.manager.broadcast(message)
        else:
            await self.manager.send_to_user(user_id, message)
