"""
Mood Service – Moods speichern, live verteilen und per Web Push melden.

Nach dem Speichern laufen zwei Seiteneffekte unabhängig voneinander:
Broadcast an alle verbundenen Viewer und Push an alle Subscriptions.
Fehler in einem der beiden werden geloggt und blockieren weder den
anderen noch die API-Response.
"""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from moodapp.core.config import settings
from moodapp.core.exceptions import StorageError, ValidationError
from moodapp.models.mood import MOODS, MoodEvent
from moodapp.schemas.mood import MoodOut
from moodapp.services.push_dispatcher import DispatchResult, NotificationPayload
from moodapp.services.realtime import EVENT_MOOD_UPDATED
from moodapp.utils.time_ago import as_utc, time_ago

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from moodapp.services.push_dispatcher import NotificationDispatcher
    from moodapp.services.realtime import ConnectionHub

logger = logging.getLogger(__name__)

MOOD_MESSAGES = {
    "happy":    "Someone's feeling happy! 😊",
    "excited":  "Excitement is in the air! 🎉",
    "loved":    "Love is all around! 💕",
    "calm":     "Peaceful vibes detected 🧘‍♀️",
    "sad":      "Sending you virtual hugs 🤗",
    "tired":    "Time for some rest? 😴",
    "stressed": "Take a deep breath 🌱",
    "angry":    "Let's work through this together 💪",
    "silly":    "Someone's being silly! 🤪",
}

NOTIFICATION_ACTIONS = [
    {"action": "view", "title": "View Details"},
    {"action": "close", "title": "Close"},
]


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_limit(raw: str | int | None) -> int:
    """limit aus dem Query-String.

    Führende Ziffern zählen ("5abc" → 5, "2.5" → 2). Default bei fehlend,
    nicht numerisch oder <= 0; nach oben auf MOOD_HISTORY_MAX_LIMIT begrenzt.
    """
    default = settings.MOOD_HISTORY_DEFAULT_LIMIT
    if raw is None:
        return default
    match = _LEADING_INT.match(str(raw))
    if match is None:
        return default
    value = int(match.group(1))
    if value <= 0:
        return default
    return min(value, settings.MOOD_HISTORY_MAX_LIMIT)


def to_mood_out(event: MoodEvent, now: datetime | None = None) -> MoodOut:
    return MoodOut(
        mood=event.mood,
        emoji=event.emoji,
        timestamp=as_utc(event.timestamp),
        time_ago=time_ago(event.timestamp, now),
    )


def build_mood_notification(event: MoodEvent) -> NotificationPayload:
    body = MOOD_MESSAGES.get(event.mood) or f"Mood updated to {event.mood} {event.emoji}"
    return NotificationPayload(
        title="Mood Update",
        body=body,
        tag="mood-update",
        data={
            "url": "/",
            "mood": event.mood,
            "emoji": event.emoji,
            "timestamp": as_utc(event.timestamp).isoformat(),
        },
        actions=NOTIFICATION_ACTIONS,
    )


def build_test_notification(now: datetime | None = None) -> NotificationPayload:
    now = now or datetime.now(timezone.utc)
    return NotificationPayload(
        title="Test Notification",
        body="This is a test push notification from your mood app!",
        tag="test",
        data={"url": "/", "timestamp": int(now.timestamp() * 1000)},
    )


class MoodService:

    def __init__(
        self,
        db: "AsyncSession",
        hub: "ConnectionHub | None" = None,
        dispatcher: "NotificationDispatcher | None" = None,
    ):
        self.db = db
        self.hub = hub
        self.dispatcher = dispatcher

    async def record_mood(
        self,
        mood: str | None,
        emoji: str | None,
        owner: str | None = None,
    ) -> MoodEvent:
        if not mood or not emoji:
            raise ValidationError("Mood and emoji are required")
        if mood not in MOODS:
            raise ValidationError(
                f"Invalid mood '{mood}'",
                details={"allowed": list(MOODS)},
            )

        event = MoodEvent(
            mood=mood,
            emoji=emoji,
            owner=owner or settings.DEFAULT_MOOD_OWNER,
            timestamp=datetime.now(timezone.utc),
        )
        self.db.add(event)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Mood konnte nicht gespeichert werden: %s", e)
            raise StorageError("Failed to set mood") from e

        # beide Seiteneffekte fangen ihre Fehler selbst, keiner wartet auf den anderen
        await asyncio.gather(self._broadcast(event), self.notify_subscribers(event))
        return event

    async def _broadcast(self, event: MoodEvent) -> None:
        if self.hub is None:
            return
        try:
            payload = to_mood_out(event).to_wire()
            await self.hub.broadcast(EVENT_MOOD_UPDATED, payload)
        except Exception as e:
            logger.error("mood-updated Broadcast fehlgeschlagen: %s", e)

    async def notify_subscribers(self, event: MoodEvent) -> DispatchResult | None:
        """Push an alle Subscriptions; Fehler werden nur geloggt."""
        if self.dispatcher is None or not self.dispatcher.enabled:
            logger.info("VAPID keys not configured, skipping mood notification")
            return None
        try:
            subscriptions = await self.dispatcher.store.list_all()
            if not subscriptions:
                logger.info("No subscribers for mood update notification")
                return DispatchResult()
            result = await self.dispatcher.dispatch(subscriptions, build_mood_notification(event))
        except Exception as e:
            logger.error("Error sending mood update notification: %s", e)
            return None
        logger.info("Mood update notifications sent to %d subscribers", result.success_count)
        return result

    async def current_mood(self, now: datetime | None = None) -> MoodOut | None:
        latest = await self._latest(1)
        return to_mood_out(latest[0], now) if latest else None

    async def history(self, limit: str | int | None = None, now: datetime | None = None) -> list[MoodOut]:
        events = await self._latest(parse_limit(limit))
        return [to_mood_out(e, now) for e in events]

    async def _latest(self, limit: int) -> list[MoodEvent]:
        try:
            result = await self.db.execute(
                select(MoodEvent)
                .order_by(MoodEvent.timestamp.desc(), MoodEvent.id.desc())
                .limit(limit)
            )
        except SQLAlchemyError as e:
            logger.error("Moods konnten nicht geladen werden: %s", e)
            raise StorageError("Failed to fetch mood") from e
        return list(result.scalars().all())
