from moodapp.client.subscription_manager import (
    PushSubscriptionManager,
    SubscriptionUIState,
    url_b64_to_bytes,
)

__all__ = ["PushSubscriptionManager", "SubscriptionUIState", "url_b64_to_bytes"]
