from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from moodapp.core.database import get_db
from moodapp.services.mood_service import MoodService
from moodapp.services.push_dispatcher import NotificationDispatcher, PushConfig, PushSender
from moodapp.services.realtime import ConnectionHub
from moodapp.services.subscription_store import SubscriptionStore

DB = Annotated[AsyncSession, Depends(get_db)]


def get_push_config(request: Request) -> PushConfig:
    return request.app.state.push_config


def get_hub(request: Request) -> ConnectionHub:
    return request.app.state.hub


def get_push_sender() -> PushSender | None:
    """None → pywebpush.webpush. In Tests überschreibbar."""
    return None


def get_subscription_store(db: DB) -> SubscriptionStore:
    return SubscriptionStore(db)


def get_dispatcher(
    store: Annotated[SubscriptionStore, Depends(get_subscription_store)],
    config: Annotated[PushConfig, Depends(get_push_config)],
    sender: Annotated[PushSender | None, Depends(get_push_sender)],
) -> NotificationDispatcher:
    return NotificationDispatcher(store, config, sender)


def get_mood_service(
    db: DB,
    hub: Annotated[ConnectionHub, Depends(get_hub)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> MoodService:
    return MoodService(db, hub, dispatcher)


Store = Annotated[SubscriptionStore, Depends(get_subscription_store)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
Config = Annotated[PushConfig, Depends(get_push_config)]
Moods = Annotated[MoodService, Depends(get_mood_service)]
