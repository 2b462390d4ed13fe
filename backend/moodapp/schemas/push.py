from pydantic import BaseModel, ConfigDict, Field


class PushKeys(BaseModel):
    p256dh: str | None = None
    auth: str | None = None


class PushSubscriptionIn(BaseModel):
    """PushSubscription.toJSON() des Browsers, optional mit userId.

    Felder sind absichtlich optional: die Pflichtprüfung macht der
    SubscriptionStore und antwortet mit einer lesbaren Fehlermeldung.
    """

    endpoint: str | None = None
    keys: PushKeys | None = None
    user_id: str | None = Field(default=None, alias="userId")
    expiration_time: float | None = Field(default=None, alias="expirationTime")

    model_config = ConfigDict(populate_by_name=True)


class PushUnsubscribeRequest(BaseModel):
    endpoint: str | None = None


class DispatchErrorOut(BaseModel):
    endpoint: str
    error: str


class DispatchResultOut(BaseModel):
    success_count: int = Field(alias="successCount")
    failure_count: int = Field(alias="failureCount")
    errors: list[DispatchErrorOut] = []

    model_config = ConfigDict(populate_by_name=True)
