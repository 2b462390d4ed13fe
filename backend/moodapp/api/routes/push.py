"""
Web Push API – VAPID-Key, Subscriptions und Test-Benachrichtigung.
"""
import logging

from fastapi import APIRouter

from moodapp.api.deps import Config, Dispatcher, Store
from moodapp.core.exceptions import ValidationError
from moodapp.schemas.push import PushSubscriptionIn, PushUnsubscribeRequest
from moodapp.services.mood_service import build_test_notification
from moodapp.services.push_dispatcher import DispatchResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["push"])


@router.get("/vapid-public-key")
async def get_vapid_public_key(config: Config):
    """Gibt den VAPID Public Key zurück (applicationServerKey des Browsers)."""
    return {"publicKey": config.public_key}


@router.post("/subscribe")
async def subscribe(payload: PushSubscriptionIn, store: Store):
    """Speichert eine Browser-Push-Subscription (Upsert über den Endpoint)."""
    keys = payload.keys.model_dump() if payload.keys else None
    await store.upsert(payload.endpoint, keys, owner=payload.user_id)
    return {"success": True, "message": "Subscription saved successfully"}


@router.post("/unsubscribe")
async def unsubscribe(payload: PushUnsubscribeRequest, store: Store):
    if not payload.endpoint:
        raise ValidationError("Endpoint is required")
    await store.remove(payload.endpoint)
    return {"success": True, "message": "Unsubscribed successfully"}


@router.post("/send-test-notification")
async def send_test_notification(dispatcher: Dispatcher):
    if not dispatcher.enabled:
        return {
            "success": False,
            "message": "Push notifications are not configured",
            "details": DispatchResult().to_dict(),
        }

    subscriptions = await dispatcher.store.list_all()
    if not subscriptions:
        return {
            "success": True,
            "message": "No subscribers to send notifications to",
            "details": DispatchResult().to_dict(),
        }

    result = await dispatcher.dispatch(subscriptions, build_test_notification())
    return {
        "success": True,
        "message": f"Test notifications sent to {result.success_count} subscribers",
        "details": result.to_dict(),
    }
