"""Real-time Hub: hält alle offenen WebSocket-Verbindungen der Viewer."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Protocol

logger = logging.getLogger(__name__)

EVENT_MOOD_UPDATED = "mood-updated"


class JsonSocket(Protocol):
    async def accept(self) -> None: ...

    async def send_json(self, data: Any) -> None: ...


SEND_TIMEOUT = 5.0


class ConnectionHub:
    """Prozessweiter Broadcast-Kanal. Fire-and-forget, kein Replay.

    Alle Sockets werden gleichzeitig bedient; wer länger als send_timeout
    braucht, fliegt raus wie ein geschlossener Socket.
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT) -> None:
        self.send_timeout = send_timeout
        self._lock = asyncio.Lock()
        self._connections: dict[uuid.UUID, JsonSocket] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: JsonSocket) -> uuid.UUID:
        await websocket.accept()
        connection_id = uuid.uuid4()
        async with self._lock:
            self._connections[connection_id] = websocket
        logger.info("User connected: %s", connection_id)
        return connection_id

    async def disconnect(self, connection_id: uuid.UUID) -> None:
        async with self._lock:
            self._connections.pop(connection_id, None)
        logger.info("User disconnected: %s", connection_id)

    async def broadcast(self, event: str, data: dict[str, Any]) -> int:
        """Sendet {event, data} an alle Verbindungen; liefert Anzahl Empfänger."""
        async with self._lock:
            targets = list(self._connections.items())

        message = {"event": event, "data": data}
        outcomes = await asyncio.gather(
            *(
                asyncio.wait_for(connection.send_json(message), self.send_timeout)
                for _, connection in targets
            ),
            return_exceptions=True,
        )

        delivered = 0
        dead: list[uuid.UUID] = []
        for (connection_id, _), outcome in zip(targets, outcomes):
            if not isinstance(outcome, BaseException):
                delivered += 1
                continue
            if isinstance(outcome, asyncio.TimeoutError):
                logger.warning("Broadcast an %s: Timeout nach %.1fs", connection_id, self.send_timeout)
            else:
                logger.warning("Broadcast an %s fehlgeschlagen: %s", connection_id, outcome)
            dead.append(connection_id)

        if dead:
            async with self._lock:
                for connection_id in dead:
                    self._connections.pop(connection_id, None)
        return delivered
