import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import WebSocket

logger = logging.getLogger(__name__)

Listener = Callable[[str, dict[str, Any]], None]


class RealtimeHub:
    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._listeners: list[Listener] = []
        self._lock = asyncio.Lock()
        self._revision = 0

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        await websocket.send_text(
            json.dumps(
                {
                    "type": "hello",
                    "revision": self._revision,
                    "ts": datetime.now(timezone.utc).isoformat(),
                }
            )
        )

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register an in-process listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, event_type: str, payload: dict[str, Any] | None = None) -> int:
        self._revision += 1
        body = payload or {}
        for listener in list(self._listeners):
            try:
                listener(event_type, body)
            except Exception:
                logger.exception("Listener failed for %s event", event_type)

        message = json.dumps(
            {
                "type": event_type,
                "revision": self._revision,
                "payload": body,
                "ts": datetime.now(timezone.utc).isoformat(),
            }
        )
        async with self._lock:
            clients = list(self._clients)

        stale: list[WebSocket] = []
        for client in clients:
            try:
                await client.send_text(message)
            except Exception:
                stale.append(client)

        if stale:
            async with self._lock:
                for client in stale:
                    self._clients.discard(client)
        return self._revision

    @property
    def revision(self) -> int:
        return self._revision


hub = RealtimeHub()
