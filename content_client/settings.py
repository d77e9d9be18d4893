from pydantic import AnyUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    API_BASE_URL: str = "http://localhost:5000/api"
    API_TIMEOUT_SECONDS: float = 15.0

    @field_validator("API_BASE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if isinstance(v, str):
            return v.rstrip("/")
        raise ValueError(v)

    REDIS_URL: AnyUrl | None = None
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    SESSION_NAMESPACE: str = "session"
    ADMIN_SESSION_NAMESPACE: str = "admin"
    SESSION_INACTIVITY_TIMEOUT_MINUTES: int = 30
    SESSION_EXPIRY_CHECK_INTERVAL_SECONDS: float = 60.0
    # lastActive is written to storage at most once per interval
    ACTIVITY_PERSIST_INTERVAL_SECONDS: float = 5.0
    LOGOUT_TIMEOUT_SECONDS: float = 5.0
    SESSION_EVENTS_ENABLED: bool = True
    SESSION_EVENTS_CHANNEL: str = "session.events"

    DEFAULT_PAGE_SIZE: int = 10


settings = Settings()
