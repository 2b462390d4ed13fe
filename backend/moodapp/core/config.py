from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    DEBUG: bool = True
    ALLOWED_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # Database – SQLite für lokale Entwicklung
    DATABASE_URL: str = "sqlite+aiosqlite:///./mood.db"

    # Web Push (VAPID). Ohne Private Key wird der Push-Versand übersprungen.
    # Schlüsselpaar erzeugen: vapid --gen && vapid --applicationServerKey
    VAPID_PUBLIC_KEY: str = ""
    VAPID_PRIVATE_KEY: str = ""
    VAPID_EMAIL: str = "your-email@example.com"

    # Single-User-Betrieb: Standard-Besitzer für Moods und Subscriptions
    DEFAULT_MOOD_OWNER: str = "girlfriend"
    DEFAULT_SUBSCRIPTION_OWNER: str = "default"

    MOOD_HISTORY_DEFAULT_LIMIT: int = 10
    MOOD_HISTORY_MAX_LIMIT: int = 500

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def vapid_claims_sub(self) -> str:
        return f"mailto:{self.VAPID_EMAIL}"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
