# /backend/hookbin/api/realtime.py
from fastapi import APIRouter, WebSocket
from typing import Any, Dict, List, Set
import asyncio
import json
import logging

from hookbin.schemas import EventRecord

logger = logging.getLogger(__name__)

router = APIRouter()


class Subscriber:
    """One live WebSocket observer with its own bounded outbound queue."""

    def __init__(self, websocket: WebSocket, queue_size: int):
        self.websocket = websocket
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def offer(self, payload: str) -> bool:
        try:
            self.queue.put_nowait(payload)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def pump(self):
        """Send queued notifications until the connection fails."""
        while True:
            payload = await self.queue.get()
            await self.websocket.send_text(payload)


class SubscriberHub:
    """
    Tracks connected observers and fans notifications out to all of them.

    ``broadcast`` never awaits a socket: it enqueues on every subscriber and
    returns, so a stalled observer only loses its own messages.
    """

    def __init__(self, namespaces: List[str], queue_size: int = 1000):
        self.namespaces = list(namespaces)
        self.queue_size = queue_size
        self._subscribers: Set[Subscriber] = set()

    def register(self, websocket: WebSocket) -> Subscriber:
        subscriber = Subscriber(websocket, self.queue_size)
        subscriber.offer(self._encode({"type": "hello", "namespaces": self.namespaces}))
        self._subscribers.add(subscriber)
        logger.info("Subscriber connected (%d active)", len(self._subscribers))
        return subscriber

    def unregister(self, subscriber: Subscriber):
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info("Subscriber disconnected (%d active)", len(self._subscribers))

    @staticmethod
    def _encode(message: Dict[str, Any]) -> str:
        return json.dumps(message, separators=(",", ":"))

    def broadcast(self, message: Dict[str, Any]) -> int:
        """Queue a message for every subscriber; returns how many accepted it."""
        payload = self._encode(message)
        delivered = 0
        for subscriber in list(self._subscribers):
            if subscriber.offer(payload):
                delivered += 1
            else:
                logger.warning("Subscriber queue full, dropped %s notification", message.get("type"))
        return delivered

    def broadcast_event(self, event: EventRecord) -> int:
        return self.broadcast({"type": "event", "event": event.to_wire()})

    def broadcast_clear(self, namespace: str) -> int:
        return self.broadcast({"type": "clear", "namespace": namespace})

    def __len__(self) -> int:
        return len(self._subscribers)


async def _drain_incoming(websocket: WebSocket):
    # The channel is server-to-client only; client frames are read and ignored
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    hub: SubscriberHub = websocket.app.state.hub
    await websocket.accept()
    subscriber = hub.register(websocket)
    tasks = [
        asyncio.create_task(subscriber.pump()),
        asyncio.create_task(_drain_incoming(websocket)),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None:
                logger.info("Subscriber connection closed: %s", exc)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        hub.unregister(subscriber)
