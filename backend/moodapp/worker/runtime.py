"""
Service Worker Runtime als Zustandsautomat.

parsed → installing → installed (waiting) → activating → activated

Jede Transition ist eine benannte Methode; der Host ruft sie in dieser
Reihenfolge auf. Events werden nur im Zustand ACTIVE abgefangen, vorher
gehen Requests unverändert ans Netzwerk.
"""
from __future__ import annotations

import copy
import json
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Any
from urllib.parse import urljoin, urlsplit

from moodapp.worker.events import (
    ExtendableEvent,
    FetchEvent,
    MessageEvent,
    NotificationEvent,
    PushEvent,
    SyncEvent,
)
from moodapp.worker.platform import (
    CacheStorage,
    Clients,
    MessagePort,
    Network,
    Notification,
    Registration,
    Request,
    Response,
)

logger = logging.getLogger(__name__)

CACHE_VERSION = "v1"
CACHE_NAME = f"mood-app-{CACHE_VERSION}"
PRECACHE_URLS = (
    "/",
    "/style.css",
    "/script.js",
    "/manifest.json",
    "/icon-192x192.png",
    "/icon-512x512.png",
)

SYNC_TAG = "mood-sync"
MSG_SKIP_WAITING = "SKIP_WAITING"
MSG_RESPONSE = "SW_RESPONSE"
ACTION_CLOSE = "close"

DEFAULT_NOTIFICATION = {
    "title": "Mood Tracker",
    "body": "Time to update your mood!",
    "icon": "/icon-192x192.png",
    "badge": "/icon-192x192.png",
    "tag": "mood-update",
    "data": {"url": "/"},
}

NOTIFICATION_ACTIONS = [
    {"action": "view", "title": "View App"},
    {"action": ACTION_CLOSE, "title": "Dismiss"},
]


class WorkerState(str, Enum):
    PARSED     = "parsed"
    INSTALLING = "installing"
    WAITING    = "installed"
    ACTIVATING = "activating"
    ACTIVE     = "activated"


class InvalidStateError(RuntimeError):
    pass


class ServiceWorkerRuntime:

    def __init__(
        self,
        origin: str,
        caches: CacheStorage,
        network: Network,
        clients: Clients,
        registration: Registration,
        *,
        cache_name: str = CACHE_NAME,
        precache_urls: Sequence[str] = PRECACHE_URLS,
        skip_waiting_on_install: bool = True,
        sync_task: Callable[[], Awaitable[None]] | None = None,
    ):
        self.origin = origin.rstrip("/")
        self.caches = caches
        self.network = network
        self.clients = clients
        self.registration = registration
        self.cache_name = cache_name
        self.precache_urls = tuple(precache_urls)
        self.skip_waiting_on_install = skip_waiting_on_install
        self.sync_task = sync_task
        self.state = WorkerState.PARSED
        self._skip_waiting = False

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def _require(self, *allowed: WorkerState) -> None:
        if self.state not in allowed:
            raise InvalidStateError(
                f"Transition aus Zustand {self.state.value} nicht erlaubt"
            )

    def _absolute(self, url: str) -> str:
        return urljoin(self.origin + "/", url)

    async def install(self) -> WorkerState:
        """Precache der Assets; Fehler dabei verhindern die Installation nicht."""
        self._require(WorkerState.PARSED)
        logger.info("Service Worker installing...")
        self.state = WorkerState.INSTALLING

        event = ExtendableEvent("install")
        event.wait_until(self._precache())
        await event.settled()

        self.state = WorkerState.WAITING
        if self.skip_waiting_on_install or self._skip_waiting:
            await self.skip_waiting()
        return self.state

    async def _precache(self) -> None:
        try:
            cache = await self.caches.open(self.cache_name)
            logger.info("Opened cache")
            await cache.add_all([self._absolute(url) for url in self.precache_urls])
        except Exception as e:
            logger.error("Failed to cache resources: %s", e)

    async def skip_waiting(self) -> None:
        self._skip_waiting = True
        if self.state == WorkerState.WAITING:
            await self.activate()

    async def activate(self) -> WorkerState:
        """Alte Cache-Versionen löschen, dann alle offenen Seiten übernehmen."""
        self._require(WorkerState.WAITING)
        logger.info("Service Worker activating...")
        self.state = WorkerState.ACTIVATING

        event = ExtendableEvent("activate")
        event.wait_until(self._purge_stale_caches())
        await event.settled()

        try:
            await self.clients.claim()
        except Exception as e:
            logger.error("clients.claim() fehlgeschlagen: %s", e)
        self.state = WorkerState.ACTIVE
        return self.state

    async def _purge_stale_caches(self) -> list[str]:
        deleted = []
        for name in await self.caches.keys():
            if name != self.cache_name:
                logger.info("Deleting old cache: %s", name)
                await self.caches.delete(name)
                deleted.append(name)
        return deleted

    # ── Fetch ────────────────────────────────────────────────────────────────

    def intercepts(self, request: Request) -> bool:
        """Nur same-origin GET-Requests laufen über den Cache."""
        if request.method.upper() != "GET":
            return False
        target = urlsplit(request.url)
        own = urlsplit(self.origin)
        return (target.scheme, target.netloc) == (own.scheme, own.netloc)

    async def handle_fetch(self, request: Request) -> Response | None:
        """Liefert die Antwort für die Seite; nicht abgefangene Requests gehen ans Netzwerk."""
        if self.state != WorkerState.ACTIVE or not self.intercepts(request):
            return await self.network.fetch(request)

        event = FetchEvent(request)
        event.respond_with(self._cache_first(request))
        return await event.response()

    async def _cache_first(self, request: Request) -> Response | None:
        try:
            cached = await self.caches.match(request)
            if cached is not None:
                return cached

            response = await self.network.fetch(request)
        except Exception as e:
            logger.warning("Fetch für %s fehlgeschlagen: %s", request.url, e)
            if request.destination == "document":
                return await self.caches.match(Request(self._absolute("/")))
            return None

        if response.status == 200 and response.type == "basic":
            await self._store(request, response.clone())
        return response

    async def _store(self, request: Request, response: Response) -> None:
        # Cache-Schreibfehler (z.B. Quota) ändern nichts an der Antwort
        try:
            cache = await self.caches.open(self.cache_name)
            await cache.put(request, response)
        except Exception as e:
            logger.error("Cache-Eintrag für %s nicht gespeichert: %s", request.url, e)

    # ── Push & Notifications ─────────────────────────────────────────────────

    def _notification_data(self, event: PushEvent) -> dict[str, Any]:
        data = copy.deepcopy(DEFAULT_NOTIFICATION)
        if event.data is None:
            return data
        text = event.text()
        try:
            payload = json.loads(text)
        except ValueError as e:
            logger.error("Error parsing push payload: %s", e)
            data["body"] = text or data["body"]
            return data
        if isinstance(payload, dict):
            data.update(payload)
        return data

    async def handle_push(self, data: bytes | str | None = None) -> dict[str, Any]:
        """Payload parsen (JSON → Text → Defaults) und Notification anzeigen."""
        event = PushEvent(data)
        notification = self._notification_data(event)
        options = {
            "body": notification.get("body"),
            "icon": notification.get("icon"),
            "badge": notification.get("badge"),
            "tag": notification.get("tag"),
            "data": notification.get("data"),
            "actions": NOTIFICATION_ACTIONS,
            "requireInteraction": False,
            "silent": False,
            "vibrate": [200, 100, 200],
            "timestamp": int(time.time() * 1000),
        }
        event.wait_until(self.registration.show_notification(notification.get("title"), options))
        await event.settled()
        return options

    async def handle_notification_click(self, notification: Notification, action: str = "") -> None:
        notification.close()
        if action == ACTION_CLOSE:
            return

        event = NotificationEvent("notificationclick", notification, action)
        event.wait_until(self._focus_or_open(notification.data.get("url") or "/"))
        await event.settled()

    async def _focus_or_open(self, url: str) -> None:
        target = self._absolute(url)
        try:
            windows = await self.clients.match_all(type="window", include_uncontrolled=True)
            for window in windows:
                if window.url == target:
                    await window.focus()
                    return
            await self.clients.open_window(url)
        except Exception as e:
            logger.error("Error handling notification click: %s", e)

    async def handle_notification_close(self, notification: Notification) -> None:
        logger.info("Notification closed: %s", notification.tag)

    # ── Background Sync & Messages ───────────────────────────────────────────

    async def handle_sync(self, tag: str) -> bool:
        logger.info("Background sync triggered: %s", tag)
        if tag != SYNC_TAG:
            return False
        event = SyncEvent(tag)
        event.wait_until(self._sync_mood_data())
        await event.settled()
        return True

    async def _sync_mood_data(self) -> None:
        try:
            logger.info("Syncing mood data in background...")
            if self.sync_task is not None:
                await self.sync_task()
        except Exception as e:
            logger.error("Error syncing mood data: %s", e)

    async def handle_message(self, data: Any, ports: list[MessagePort] | None = None) -> None:
        event = MessageEvent(data, ports)
        logger.info("Service Worker received message: %r", data)

        if isinstance(data, dict) and data.get("type") == MSG_SKIP_WAITING:
            event.wait_until(self.skip_waiting())

        if event.ports:
            event.ports[0].post_message({
                "type": MSG_RESPONSE,
                "message": "Service Worker received your message",
            })
        await event.settled()
