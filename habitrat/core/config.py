import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database & Cache
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None
    REDIS_URL: str = "redis://localhost:6379"

    # Push delivery (Expo)
    EXPO_PUSH_URL: str = "https://exp.host/--/api/v2/push/send"
    EXPO_ACCESS_TOKEN: Optional[str] = None
    PUSH_BATCH_SIZE: int = 100  # Expo rejects more than 100 messages per request
    PUSH_TIMEOUT_SECONDS: float = 10.0

    # Daily analytics job
    ANALYTICS_LOOKBACK_DAYS: int = 120
    CONSISTENCY_WINDOW_DAYS: int = 30

    # Correlation job
    CORRELATION_WINDOW_DAYS: int = 60
    CORRELATION_MIN_LOG_ROWS: int = 10
    CORRELATION_THRESHOLD: float = 1.1

    # Notification engine
    NOTIFICATION_COOLDOWN_HOURS: int = 24  # 0 = disabled
    NOTIFICATION_STREAK_LOOKBACK_DAYS: int = 365
    DEFAULT_UTC_OFFSET_MINUTES: int = 0

    # Batch behaviour
    PERSIST_MAX_ATTEMPTS: int = 2  # first try + one retry
    JOB_MAX_WORKERS: int = 1  # 1 = sequential

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("habitrat")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "EXPO_PUSH_URL",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if cfg.PERSIST_MAX_ATTEMPTS < 1:
        message = "PERSIST_MAX_ATTEMPTS must be >= 1"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
