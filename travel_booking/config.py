from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./travel_booking.db"
    # This service only VERIFIES tokens issued by the auth service
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    REDIS_URL: str = "redis://redis:6379/0"
    RATE_LIMIT_ENABLED: bool = True

    # --- Kafka (booking events published through the outbox) ---
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_BOOKING_TOPIC: str = "booking_events"

    # --- Paged queries ---
    DEFAULT_PAGE_LIMIT: int = 10
    MAX_PAGE_LIMIT: int = 100
    # 0 disables the timeout
    QUERY_TIMEOUT_SECONDS: Optional[float] = 10.0

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
