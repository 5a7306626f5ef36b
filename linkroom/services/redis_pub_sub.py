# linkroom/services/redis_pub_sub.py
import asyncio
import json
import logging
from typing import Optional

import redis.asyncio as redis

from linkroom.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "room:"


class AsyncRedisPubSubService:
    """
    Room fan-out through Redis Pub/Sub.

    Drop-in replacement for ConnectionManager.publish. Events are queued on
    an outbox drained by a single task, so they reach Redis in publish
    order; the listener forwards them to the local ConnectionManager.
    Channel membership itself stays local.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        host: str = "localhost",
        port: int = 6379,
        access_key: str = "",
        ssl: bool = False,
    ):
        self.connections = connections
        self.host = host
        self.port = port
        self.access_key = access_key
        self.ssl = ssl
        self.client = None
        self.pubsub = None
        self.outbox: asyncio.Queue = asyncio.Queue()
        self._tasks: list = []

    async def connect(self):
        """Establish async connection to Redis."""
        scheme = "rediss" if self.ssl else "redis"
        auth = f":{self.access_key}@" if self.access_key else ""
        self.client = redis.from_url(
            f"{scheme}://{auth}{self.host}:{self.port}",
            decode_responses=True
        )
        await self.client.ping()
        logger.info(f"✓ Connected to Redis at {self.host}:{self.port}")

    def start(self):
        """Start the outbox drainer and the room listener."""
        self._tasks = [
            asyncio.create_task(self._drain()),
            asyncio.create_task(self.listen(f"{CHANNEL_PREFIX}*")),
        ]

    def publish(self, room_id: str, event: dict) -> None:
        """Queue an event for the room channel. Never blocks."""
        self.outbox.put_nowait((room_id, event))

    async def broadcast_to_room(self, room_id: str, event: dict):
        """
        Publish an event on the room-specific Redis channel.

        The event is wrapped with its room id so the listener can route it
        back to the right local channel.
        """
        channel = f"{CHANNEL_PREFIX}{room_id}"
        await self.client.publish(channel, json.dumps({"room_id": room_id, "event": event}))
        logger.debug(f"📤 Published {event.get('type')} to Redis channel '{channel}'")

    async def _drain(self):
        while True:
            room_id, event = await self.outbox.get()
            try:
                await self.broadcast_to_room(room_id, event)
            except Exception as e:
                logger.error(f"Redis publish failed for room {room_id}: {e}")

    async def listen(self, channel: str):
        """
        Listen to Redis channel and broadcast to WebSockets.

        For multi-room support, call this with a pattern:
            await redis_service.listen("room:*")
        """
        self.pubsub = self.client.pubsub()

        # Support pattern matching for multiple rooms
        if "*" in channel:
            await self.pubsub.psubscribe(channel)
            logger.info(f"✓ Subscribed to Redis pattern '{channel}'")
        else:
            await self.pubsub.subscribe(channel)
            logger.info(f"✓ Subscribed to Redis channel '{channel}'")

        async for message in self.pubsub.listen():
            if message["type"] in ("message", "pmessage"):
                self.dispatch(message["data"])

    def dispatch(self, raw: str) -> Optional[str]:
        """Route one raw Redis payload to the local room channel."""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Error processing Redis message: {e}")
            return None

        room_id = data.get("room_id")
        event = data.get("event")
        if not room_id or not isinstance(event, dict):
            logger.warning("Redis message without room_id - ignoring")
            return None

        self.connections.broadcast_to_room(room_id, event)
        return room_id

    async def close(self):
        """Close connections."""
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self.pubsub:
            await self.pubsub.aclose()
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")
