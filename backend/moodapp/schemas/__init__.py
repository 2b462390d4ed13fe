from moodapp.schemas.mood import MoodOut, MoodSetRequest
from moodapp.schemas.push import (
    PushKeys,
    PushSubscriptionIn,
    PushUnsubscribeRequest,
    DispatchErrorOut,
    DispatchResultOut,
)

__all__ = [
    "MoodOut", "MoodSetRequest",
    "PushKeys", "PushSubscriptionIn", "PushUnsubscribeRequest",
    "DispatchErrorOut", "DispatchResultOut",
]
