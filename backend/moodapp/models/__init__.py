from moodapp.models.mood import MoodEvent, MOODS
from moodapp.models.push_subscription import PushSubscription

__all__ = [
    "MoodEvent",
    "MOODS",
    "PushSubscription",
]
