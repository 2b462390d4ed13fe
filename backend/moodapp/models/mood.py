from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from moodapp.core.database import Base

MOODS = (
    "happy",
    "excited",
    "loved",
    "calm",
    "sad",
    "tired",
    "stressed",
    "angry",
    "silly",
)


class MoodEvent(Base):
    """Append-only Mood-Log. Einträge werden nie geändert."""

    __tablename__ = "moods"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mood: Mapped[str] = mapped_column(String(20), nullable=False)
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)
    owner: Mapped[str] = mapped_column(String(100), nullable=False, default="girlfriend")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
