"""
Lifecycle-Events des Service Workers.

wait_until() registriert asynchrone Arbeit; der Host wartet mit settled()
auf alles, bevor das Event als erledigt gilt. Fehler in dieser Arbeit
werden geloggt und nie an den Host weitergereicht.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any

from moodapp.worker.platform import MessagePort, Notification, Request, Response

logger = logging.getLogger(__name__)


class ExtendableEvent:

    def __init__(self, type: str):
        self.type = type
        self._pending: list[asyncio.Future] = []

    def wait_until(self, work: Awaitable[Any]) -> None:
        self._pending.append(asyncio.ensure_future(work))

    async def settled(self) -> list[Any]:
        results = await asyncio.gather(*self._pending, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error("Fehler im %s-Handler: %r", self.type, result)
        return results


class FetchEvent(ExtendableEvent):

    def __init__(self, request: Request):
        super().__init__("fetch")
        self.request = request
        self._response: asyncio.Future | None = None

    @property
    def handled(self) -> bool:
        return self._response is not None

    def respond_with(self, response: Awaitable[Response | None]) -> None:
        if self._response is not None:
            raise RuntimeError("respond_with() already called")
        self._response = asyncio.ensure_future(response)

    async def response(self) -> Response | None:
        if self._response is None:
            return None
        try:
            return await self._response
        except Exception as e:
            logger.error("fetch-Handler für %s fehlgeschlagen: %s", self.request.url, e)
            return None
        finally:
            await self.settled()


class PushEvent(ExtendableEvent):

    def __init__(self, data: bytes | str | None = None):
        super().__init__("push")
        self.data = data

    def text(self) -> str:
        if self.data is None:
            return ""
        if isinstance(self.data, bytes):
            return self.data.decode("utf-8", errors="replace")
        return self.data


class NotificationEvent(ExtendableEvent):

    def __init__(self, type: str, notification: Notification, action: str = ""):
        super().__init__(type)
        self.notification = notification
        self.action = action


class SyncEvent(ExtendableEvent):

    def __init__(self, tag: str):
        super().__init__("sync")
        self.tag = tag


class MessageEvent(ExtendableEvent):

    def __init__(self, data: Any, ports: list[MessagePort] | None = None):
        super().__init__("message")
        self.data = data
        self.ports = list(ports or [])
