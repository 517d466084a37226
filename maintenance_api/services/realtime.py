from __future__ import annotations

import asyncio

import logging
from typing import Dict, Optional, Set
from uuid import UUID

from starlette.websockets import WebSocket, WebSocketState

from maintenance_api.schemas.realtime import PushPayload, WsEnvelope

logger = logging.getLogger(__name__)


class BroadcastManager:
    """
    Simple in-process pub-sub manager for WebSocket topics.

    Topics:
      - user:{user_id}   notifications addressed to one user
      - role:{role}      notifications addressed to every user with a role
    """

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _topic_lock(self, topic: str) -> asyncio.Lock:
        if topic not in self._locks:
            self._locks[topic] = asyncio.Lock()
        return self._locks[topic]

    # PUBLIC_INTERFACE
    def user_topic(self, user_id: UUID | str) -> str:
        """Return the notification topic of a single user."""
        return f"user:{user_id}"

    # PUBLIC_INTERFACE
    def role_topic(self, role: str) -> str:
        """Return the notification topic shared by a role."""
        return f"role:{role}"

    async def _ensure_topic(self, topic: str) -> None:
        async with self._global_lock:
            if topic not in self._topics:
                self._topics[topic] = set()

    def _prune(self, topic: str) -> None:
        # Call with the topic lock held.
        if not self._topics.get(topic):
            self._topics.pop(topic, None)
            self._locks.pop(topic, None)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    # PUBLIC_INTERFACE
    async def connect(self, topic: str, websocket: WebSocket) -> None:
        """Add an accepted websocket to topic subscribers."""
        await self._ensure_topic(topic)
        async with self._topic_lock(topic):
            subscribers = self._topics.setdefault(topic, set())
            subscribers.add(websocket)
            logger.info("WebSocket connected to topic=%s; subscribers=%d", topic, len(subscribers))

    # PUBLIC_INTERFACE
    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        """Remove websocket from topic subscribers; empty topics are dropped."""
        if topic not in self._topics:
            return
        async with self._topic_lock(topic):
            subscribers = self._topics.get(topic, set())
            subscribers.discard(websocket)
            logger.info("WebSocket disconnected from topic=%s; subscribers=%d", topic, len(subscribers))
            self._prune(topic)

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict, exclude: Optional[WebSocket] = None) -> int:
        """
        Broadcast a dict message to all subscribers in the topic.

        Returns the number of sockets the message was delivered to. Topics
        without subscribers are not created.
        """
        if not self._topics.get(topic):
            return 0
        delivered = 0
        async with self._topic_lock(topic):
            subscribers = self._topics.get(topic, set())
            to_drop: list[WebSocket] = []
            for ws in list(subscribers):
                if exclude is not None and ws is exclude:
                    continue
                try:
                    if ws.application_state == WebSocketState.DISCONNECTED or ws.client_state == WebSocketState.DISCONNECTED:
                        to_drop.append(ws)
                        continue
                    await ws.send_json(message)
                    delivered += 1
                except Exception:
                    logger.exception("Failed to send message to websocket; scheduling drop")
                    to_drop.append(ws)
            for ws in to_drop:
                subscribers.discard(ws)
            self._prune(topic)
        return delivered

    # PUBLIC_INTERFACE
    async def publish_push(
        self,
        payload: PushPayload,
        *,
        user_id: UUID | str | None = None,
        role: Optional[str] = None,
    ) -> int:
        """Publish a push payload to a user topic and/or a role topic."""
        delivered = 0
        if user_id is not None:
            topic = self.user_topic(user_id)
            env = WsEnvelope(type="push", payload=payload.model_dump(), channel=topic)
            delivered += await self.broadcast(topic, env.model_dump(mode="json"))
        if role:
            topic = self.role_topic(role)
            env = WsEnvelope(type="push", payload=payload.model_dump(), channel=topic)
            delivered += await self.broadcast(topic, env.model_dump(mode="json"))
        return delivered


# Singleton instance
broadcast_manager = BroadcastManager()
