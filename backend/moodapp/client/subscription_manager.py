"""
Client-seitiger Push-Manager (eine Instanz pro Seitenaufruf).

Registriert den Service Worker, holt den VAPID Public Key, legt
Push-Subscriptions an bzw. löscht sie und hält den Server per HTTP
synchron. Jeder Fehler bricht sauber ab: UI und lokaler Zustand bleiben
wie vorher.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

SERVICE_WORKER_URL = "/sw.js"
PERMISSION_GRANTED = "granted"


def url_b64_to_bytes(value: str) -> bytes:
    """URL-safe Base64 ohne Padding → Rohbytes (applicationServerKey)."""
    padding = "=" * ((4 - len(value) % 4) % 4)
    standard = (value + padding).replace("-", "+").replace("_", "/")
    return base64.b64decode(standard)


# ── Browser-Schnittstellen ───────────────────────────────────────────────────

class BrowserSubscription(Protocol):
    endpoint: str

    async def unsubscribe(self) -> bool: ...

    def to_json(self) -> dict[str, Any]: ...


class PushManager(Protocol):
    async def get_subscription(self) -> BrowserSubscription | None: ...

    async def subscribe(
        self, *, user_visible_only: bool, application_server_key: bytes
    ) -> BrowserSubscription: ...


class WorkerRegistration(Protocol):
    push_manager: PushManager


class BrowserPlatform(Protocol):
    supports_service_worker: bool
    supports_push: bool
    permission: str  # default | granted | denied | not-supported

    async def register_service_worker(self, script_url: str) -> WorkerRegistration: ...

    async def request_permission(self) -> str: ...

    def show_notification(self, title: str, body: str) -> None: ...


@dataclass
class SubscriptionUIState:
    """Zustand der Bedienelemente (Buttons + Statuszeile)."""

    subscribed: bool = False
    busy: bool = False
    status_text: str = "Not subscribed to notifications"

    def render(self, subscribed: bool) -> None:
        self.subscribed = subscribed
        self.status_text = (
            "Subscribed to notifications" if subscribed else "Not subscribed to notifications"
        )


class PushSubscriptionManager:

    def __init__(
        self,
        browser: BrowserPlatform,
        http: httpx.AsyncClient,
        ui: SubscriptionUIState | None = None,
    ):
        self.browser = browser
        self.http = http
        self.ui = ui or SubscriptionUIState()
        self.registration: WorkerRegistration | None = None
        self.subscription: BrowserSubscription | None = None
        self.vapid_public_key: str | None = None

    @property
    def is_supported(self) -> bool:
        return self.browser.supports_service_worker and self.browser.supports_push

    def is_subscribed(self) -> bool:
        return self.subscription is not None

    def permission_status(self) -> str:
        return getattr(self.browser, "permission", "not-supported")

    async def init(self) -> bool:
        if not self.is_supported:
            logger.warning("Push notifications are not supported in this browser")
            return False
        try:
            self.registration = await self.browser.register_service_worker(SERVICE_WORKER_URL)
            logger.info("Service Worker registered successfully")
            await self.fetch_vapid_public_key()
            self.subscription = await self.registration.push_manager.get_subscription()
        except Exception as e:
            logger.error("Error initializing push notifications: %s", e)
            return False

        self.ui.render(self.subscription is not None)
        return True

    async def fetch_vapid_public_key(self) -> str:
        response = await self.http.get("/api/vapid-public-key")
        response.raise_for_status()
        self.vapid_public_key = response.json()["publicKey"]
        return self.vapid_public_key

    async def subscribe(self) -> bool:
        if self.registration is None or not self.vapid_public_key:
            logger.error("Service worker not registered or VAPID key not available")
            return False

        self.ui.busy = True
        try:
            permission = await self.browser.request_permission()
            if permission != PERMISSION_GRANTED:
                logger.warning("Notification permission denied")
                return False

            subscription = await self.registration.push_manager.subscribe(
                user_visible_only=True,
                application_server_key=url_b64_to_bytes(self.vapid_public_key),
            )
            response = await self.http.post("/api/subscribe", json=subscription.to_json())
            result = response.json()
            if not result.get("success"):
                logger.error("Failed to save subscription: %s", result.get("error"))
                return False
        except Exception as e:
            logger.error("Error subscribing to push notifications: %s", e)
            return False
        finally:
            self.ui.busy = False

        self.subscription = subscription
        self.ui.render(True)
        self.browser.show_notification("Subscribed!", "You will now receive mood update notifications.")
        return True

    async def unsubscribe(self) -> bool:
        if self.subscription is None:
            logger.warning("No active subscription to unsubscribe from")
            return False

        self.ui.busy = True
        try:
            if not await self.subscription.unsubscribe():
                return False
            await self.http.post("/api/unsubscribe", json={"endpoint": self.subscription.endpoint})
        except Exception as e:
            logger.error("Error unsubscribing from push notifications: %s", e)
            return False
        finally:
            self.ui.busy = False

        self.subscription = None
        self.ui.render(False)
        self.browser.show_notification("Unsubscribed", "You will no longer receive notifications.")
        return True

    async def send_test_notification(self) -> dict | None:
        try:
            response = await self.http.post("/api/send-test-notification")
            result = response.json()
        except Exception as e:
            logger.error("Error sending test notification: %s", e)
            return None

        if result.get("success"):
            logger.info("Test notification sent: %s", result.get("message"))
            self.browser.show_notification("Test Sent!", "Check for the test notification.")
        else:
            logger.error("Failed to send test notification: %s", result.get("error") or result.get("message"))
        return result
