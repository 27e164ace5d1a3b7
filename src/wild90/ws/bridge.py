"""Bridges Redis pub/sub to WebSocket clients.

Relays presentation events published on ``ws:user:*`` and the broadcast
channel to the matching WebSocket connections.
"""

import asyncio
import json

import redis.asyncio as aioredis
import structlog

from wild90.notifications.publisher import BROADCAST_CHANNEL
from wild90.ws.manager import ConnectionManager, manager as default_manager

logger = structlog.get_logger()


class PubSubBridge:
    """Subscribes to Redis pub/sub and pushes messages to WebSocket clients."""

    def __init__(self, redis_client: aioredis.Redis, manager: ConnectionManager = default_manager) -> None:
        self.redis = redis_client
        self.manager = manager
        self._running = False

    async def dispatch(self, message: dict) -> int:
        """Route one pub/sub message. Returns the number of sockets reached."""
        msg_type = message.get("type", "")
        redis_channel = message.get("channel", "")
        if isinstance(redis_channel, bytes):
            redis_channel = redis_channel.decode()

        try:
            data = message.get("data", b"")
            if isinstance(data, bytes):
                data = data.decode()
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
            logger.warning("pubsub_invalid_message", channel=redis_channel)
            return 0

        # ── Per-user messages (pattern match on ws:user:*) ──
        if msg_type == "pmessage" and redis_channel.startswith("ws:user:"):
            user_id = redis_channel.split(":", 2)[-1]
            sent = await self.manager.send_to_user(user_id, payload)
            if sent > 0:
                logger.debug("user_event_sent", user_id=user_id, event=payload.get("event"), recipients=sent)
            return sent

        # ── Broadcast messages ──
        if redis_channel == BROADCAST_CHANNEL:
            return await self.manager.broadcast(payload)
        return 0

    async def start(self) -> None:
        """Start listening to Redis pub/sub channels."""
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(BROADCAST_CHANNEL)
        await pubsub.psubscribe("ws:user:*")

        logger.info("pubsub_bridge_started", channels=[BROADCAST_CHANNEL], patterns=["ws:user:*"])

        try:
            while self._running:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message is None:
                    continue
                await self.dispatch(message)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe()
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        """Signal the bridge to stop."""
        self._running = False
