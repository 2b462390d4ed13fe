from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MoodSetRequest(BaseModel):
    mood: str | None = None
    emoji: str | None = None


class MoodOut(BaseModel):
    """Mood-Payload für REST und den mood-updated Broadcast."""

    mood: str | None = None
    emoji: str | None = None
    timestamp: datetime
    time_ago: str = Field(alias="timeAgo")

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
