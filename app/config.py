import os
from dataclasses import dataclass
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

DEFAULT_JWT_SECRET = "change-me-in-prod"


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    jwt_secret: str = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
    jwt_algorithm: str = os.getenv("ALGORITHM", "HS256")
    token_ttl_hours: int = int(os.getenv("TOKEN_TTL_HOURS", "24"))
    kafka_broker: str = os.getenv("KAFKA_BROKER", "").strip()
    kafka_client_id: str = os.getenv("KAFKA_CLIENT_ID", "my-album-shelf-backend")
    kafka_retries: int = int(os.getenv("KAFKA_RETRIES", "8"))
    kafka_retry_backoff_ms: int = int(os.getenv("KAFKA_RETRY_BACKOFF_MS", "200"))
    event_queue_size: int = int(os.getenv("EVENT_QUEUE_SIZE", "1000"))
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_file: str = os.getenv("LOG_FILE", "").strip()
    rate_limit_enabled: bool = _env_bool("RATE_LIMIT_ENABLED", True)
    rate_limit_max: int = int(os.getenv("RATE_LIMIT_MAX", "100"))
    rate_limit_window_minutes: int = int(os.getenv("RATE_LIMIT_WINDOW_MINUTES", "15"))
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    environment: str = os.getenv("ENVIRONMENT", "development")
    seed_email: str = os.getenv("SEED_EMAIL", "").strip()
    seed_password: str = os.getenv("SEED_PASSWORD", "")
    seed_first_name: str = os.getenv("SEED_FIRST_NAME", "").strip()
    seed_last_name: str = os.getenv("SEED_LAST_NAME", "").strip()

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(hours=self.token_ttl_hours)

    @property
    def rate_limit(self) -> str:
        return f"{self.rate_limit_max}/{self.rate_limit_window_minutes} minutes"

    @property
    def events_enabled(self) -> bool:
        return bool(self.kafka_broker)


settings = Settings()
