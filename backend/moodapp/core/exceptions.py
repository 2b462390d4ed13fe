"""
Fehler-Taxonomie der Mood-App.

ValidationError → 400, StorageError → 500. Zustellfehler (NotFoundGone,
TransientDeliveryError) verlassen den Dispatcher nie, sie landen nur im
DispatchResult.
"""
from typing import Any


class MoodAppError(Exception):
    """Basisklasse aller fachlichen Fehler."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(MoodAppError):
    """Pflichtfelder fehlen oder sind ungültig."""


class StorageError(MoodAppError):
    """Datenbankoperation fehlgeschlagen."""


class DeliveryError(MoodAppError):
    """Push-Zustellung an einen einzelnen Endpoint fehlgeschlagen."""

    def __init__(
        self,
        message: str,
        endpoint: str,
        status_code: int | None = None,
    ):
        super().__init__(message, {"endpoint": endpoint, "status_code": status_code})
        self.endpoint = endpoint
        self.status_code = status_code


class NotFoundGone(DeliveryError):
    """Push-Service meldet 404/410: Subscription dauerhaft ungültig."""


class TransientDeliveryError(DeliveryError):
    """Alle anderen Zustellfehler – kein Retry, kein Löschen."""
