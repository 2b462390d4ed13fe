"""
SubscriptionStore – persistente Ablage der Web-Push-Subscriptions.

Upsert über den eindeutigen Endpoint: ein erneutes Abonnieren desselben
Browsers überschreibt Keys und Owner, legt aber keinen zweiten Eintrag an.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from moodapp.core.config import settings
from moodapp.core.exceptions import StorageError, ValidationError
from moodapp.models.push_subscription import PushSubscription

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _validate(endpoint: str | None, keys: Mapping | None) -> tuple[str, str]:
    if not endpoint:
        raise ValidationError("Invalid subscription object: endpoint is required")
    if not keys or not keys.get("p256dh") or not keys.get("auth"):
        raise ValidationError("Invalid subscription object: keys.p256dh and keys.auth are required")
    return keys["p256dh"], keys["auth"]


class SubscriptionStore:

    def __init__(self, db: "AsyncSession"):
        self.db = db

    async def _get(self, endpoint: str) -> PushSubscription | None:
        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.endpoint == endpoint)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        endpoint: str | None,
        keys: Mapping | None,
        owner: str | None = None,
    ) -> PushSubscription:
        """Legt eine Subscription an oder überschreibt die mit gleichem Endpoint."""
        p256dh, auth = _validate(endpoint, keys)
        owner = owner or settings.DEFAULT_SUBSCRIPTION_OWNER

        try:
            sub = await self._get(endpoint)
            if sub:
                sub.p256dh = p256dh
                sub.auth   = auth
                sub.owner  = owner
            else:
                sub = PushSubscription(endpoint=endpoint, p256dh=p256dh, auth=auth, owner=owner)
                self.db.add(sub)
            try:
                await self.db.commit()
            except IntegrityError:
                # Paralleler Insert mit gleichem Endpoint → als Update wiederholen
                await self.db.rollback()
                sub = await self._get(endpoint)
                if sub is None:
                    raise
                sub.p256dh = p256dh
                sub.auth   = auth
                sub.owner  = owner
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Subscription konnte nicht gespeichert werden: %s", e)
            raise StorageError("Failed to save subscription") from e

        logger.info("Push subscription saved for owner %s", owner)
        return sub

    async def remove(self, endpoint: str) -> bool:
        """Löscht die Subscription; kein Fehler wenn sie nicht existiert."""
        try:
            result = await self.db.execute(
                delete(PushSubscription).where(PushSubscription.endpoint == endpoint)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Subscription konnte nicht gelöscht werden: %s", e)
            raise StorageError("Failed to remove subscription") from e
        return bool(result.rowcount)

    async def list_all(self) -> list[PushSubscription]:
        try:
            result = await self.db.execute(select(PushSubscription))
        except SQLAlchemyError as e:
            raise StorageError("Failed to load subscriptions") from e
        return list(result.scalars().all())

    async def count(self) -> int:
        try:
            result = await self.db.execute(select(func.count()).select_from(PushSubscription))
        except SQLAlchemyError as e:
            raise StorageError("Failed to count subscriptions") from e
        return result.scalar_one()
