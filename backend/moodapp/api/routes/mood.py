"""
Mood API – aktueller Mood, neuen Mood setzen, Verlauf.
"""
from fastapi import APIRouter

from moodapp.api.deps import Moods
from moodapp.schemas.mood import MoodSetRequest
from moodapp.services.mood_service import to_mood_out

router = APIRouter(prefix="/mood", tags=["mood"])


@router.get("/current")
async def get_current_mood(service: Moods):
    current = await service.current_mood()
    return {"success": True, "mood": current.to_wire() if current else None}


@router.post("/set")
async def set_mood(payload: MoodSetRequest, service: Moods):
    """Speichert den Mood, sendet mood-updated an alle Viewer und Push an alle Subscriptions."""
    event = await service.record_mood(payload.mood, payload.emoji)
    return {"success": True, "mood": to_mood_out(event).to_wire()}


@router.get("/history")
async def get_mood_history(service: Moods, limit: str | None = None):
    # nicht-numerische Werte fallen auf den Default zurück
    history = await service.history(limit)
    return {"success": True, "history": [m.to_wire() for m in history]}
