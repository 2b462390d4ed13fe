"""
Web-Push-Versand an alle Subscriptions (Fan-out).

Jede Zustellung läuft als eigener Task (pywebpush ist blockierend und wird
per asyncio.to_thread ausgelagert). Ein Fehler bei einem Endpoint blockiert
die anderen nicht. Die Zählung erfolgt erst nach dem Join über die
gesammelten Ergebnisse. 404/410 vom Push-Service → Subscription wird aus
dem Store entfernt, bevor dispatch() zurückkehrt.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pywebpush import WebPushException, webpush

from moodapp.core.exceptions import (
    DeliveryError,
    NotFoundGone,
    StorageError,
    TransientDeliveryError,
)

if TYPE_CHECKING:
    from moodapp.core.config import Settings
    from moodapp.models.push_subscription import PushSubscription
    from moodapp.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = (404, 410)

DEFAULT_ICON  = "/icon-192x192.png"
DEFAULT_BADGE = "/badge-72x72.png"

# Signatur wie pywebpush.webpush(subscription_info=..., data=..., ...)
PushSender = Callable[..., Any]


@dataclass(frozen=True)
class PushConfig:
    """VAPID-Konfiguration; einmal beim Start aus den Settings gebaut."""

    public_key: str
    private_key: str
    claims_sub: str

    @property
    def enabled(self) -> bool:
        return bool(self.private_key)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PushConfig":
        return cls(
            public_key=settings.VAPID_PUBLIC_KEY,
            private_key=settings.VAPID_PRIVATE_KEY,
            claims_sub=settings.vapid_claims_sub,
        )


@dataclass
class NotificationPayload:
    title: str
    body: str
    icon: str = DEFAULT_ICON
    badge: str = DEFAULT_BADGE
    tag: str | None = None
    data: dict = field(default_factory=dict)
    actions: list[dict] | None = None

    def to_dict(self) -> dict:
        out = {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "tag": self.tag,
            "data": self.data,
        }
        if self.actions:
            out["actions"] = self.actions
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class DispatchResult:
    success_count: int = 0
    failure_count: int = 0
    errors: list[dict] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    def to_dict(self) -> dict:
        return {
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "errors": list(self.errors),
        }


def classify_push_error(exc: Exception, endpoint: str) -> DeliveryError:
    """Ordnet eine Exception der Fehler-Taxonomie zu."""
    if isinstance(exc, DeliveryError):
        return exc
    status_code = None
    if isinstance(exc, WebPushException) and exc.response is not None:
        status_code = getattr(exc.response, "status_code", None)
    message = str(exc)[:200] or exc.__class__.__name__
    if status_code in GONE_STATUS_CODES:
        return NotFoundGone(message, endpoint=endpoint, status_code=status_code)
    return TransientDeliveryError(message, endpoint=endpoint, status_code=status_code)


class NotificationDispatcher:

    def __init__(
        self,
        store: "SubscriptionStore",
        config: PushConfig,
        sender: PushSender | None = None,
    ):
        self.store = store
        self.config = config
        self.sender = sender or webpush

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _deliver(self, subscription_info: dict, data: str) -> None:
        endpoint = subscription_info["endpoint"]
        try:
            await asyncio.to_thread(
                self.sender,
                subscription_info=subscription_info,
                data=data,
                vapid_private_key=self.config.private_key,
                vapid_claims={"sub": self.config.claims_sub},
            )
        except Exception as e:
            raise classify_push_error(e, endpoint) from e

    async def dispatch(
        self,
        subscriptions: Sequence["PushSubscription"],
        payload: NotificationPayload | str,
    ) -> DispatchResult:
        """Stellt payload an alle subscriptions zu. Wirft nie, liefert die Bilanz."""
        data = payload.to_json() if isinstance(payload, NotificationPayload) else payload
        # Snapshot vor dem Thread-Offloading, ORM-Objekte bleiben im Event-Loop
        targets = [sub.subscription_info() for sub in subscriptions]

        outcomes = await asyncio.gather(
            *(self._deliver(info, data) for info in targets),
            return_exceptions=True,
        )

        result = DispatchResult()
        gone: list[str] = []
        for info, outcome in zip(targets, outcomes):
            if outcome is None:
                result.success_count += 1
                continue
            error = classify_push_error(outcome, info["endpoint"])
            result.failure_count += 1
            result.errors.append({"endpoint": error.endpoint, "error": error.message})
            if isinstance(error, NotFoundGone):
                gone.append(error.endpoint)
            else:
                logger.warning("Push an %s fehlgeschlagen: %s", error.endpoint, error.message)

        for endpoint in gone:
            try:
                await self.store.remove(endpoint)
                logger.info("Removed invalid subscription: %s", endpoint)
            except StorageError as e:
                logger.error("Ungültige Subscription %s nicht gelöscht: %s", endpoint, e.message)

        logger.info(
            "Push dispatch: %d sent, %d failed, %d pruned",
            result.success_count, result.failure_count, len(gone),
        )
        return result
