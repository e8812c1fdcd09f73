"""Application configuration using Pydantic Settings."""
from pathlib import Path
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Application
    APP_NAME: str = "MusicLovely Generation Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./data/musiclovely.db"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # CORS
    CORS_ORIGINS: str = (
        "https://musiclovely.com,https://www.musiclovely.com,"
        "http://localhost:8084,http://localhost:5173"
    )

    # Public URLs
    PUBLIC_API_URL: str = "http://localhost:8000"   # used to build provider callback URLs
    SITE_URL: str = "https://musiclovely.com"       # used in email links

    # Suno
    SUNO_API_KEY: str = ""
    SUNO_BASE_URL: str = "https://api.sunoapi.org"
    SUNO_MODEL: str = "V4_5PLUS"
    SUNO_STYLE_SUFFIX: str = "emotional, slow, romantic, acoustic"
    SUNO_TIMEOUT_SECONDS: float = 30.0

    # Status polling
    POLL_MAX_RETRIES: int = 3           # retries per candidate endpoint, after the first call
    POLL_RETRY_DELAY: float = 2.0       # seconds between attempts
    POLL_SWEEP_BATCH_LIMIT: int = 50
    POLL_SWEEP_INTERVAL_SECONDS: int = 120
    GENERATION_MAX_RETRIES: int = 2     # resubmissions after a provider failure

    # Resend
    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    RESEND_FROM_NAME: str = "MusicLovely"
    RESEND_FROM_EMAIL: str = "contato@musiclovely.com"
    RESEND_REPLY_TO: str = "contato@musiclovely.com"
    RESEND_TIMEOUT_SECONDS: float = 20.0

    # Pending-order funnel
    PENDING_ORDER_THRESHOLD_MINUTES: int = 7
    PENDING_ORDER_BATCH_LIMIT: int = 100
    PENDING_ORDER_SWEEP_INTERVAL_SECONDS: int = 60
    FUNNEL_NEXT_EMAIL_MINUTES: int = 20

    # Songs / approvals
    SONG_RELEASE_DELAY_HOURS: int = 22
    RELEASE_SWEEP_INTERVAL_SECONDS: int = 300
    APPROVAL_EXPIRY_HOURS: int = 72

    # Media mirroring
    MIRROR_MEDIA: bool = False
    MEDIA_DIR: str = "./data/media"
    MEDIA_MIN_BYTES: int = 10 * 1024
    MEDIA_MAX_BYTES: int = 50 * 1024 * 1024
    MEDIA_TIMEOUT_SECONDS: float = 30.0

    # Outbound HTTP pool
    HTTP_CONNECT_TIMEOUT_SECONDS: float = 10.0
    HTTP_MAX_CONNECTIONS: int = 20
    HTTP_MAX_KEEPALIVE: int = 10

    # Startup recovery
    STALE_SUBMISSION_MINUTES: int = 15

    # Auth (empty = disabled)
    ADMIN_API_TOKEN: str = ""
    CRON_SECRET: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def media_path(self) -> Path:
        p = Path(self.MEDIA_DIR)
        p.mkdir(parents=True, exist_ok=True)
        return p

    @property
    def suno_callback_url(self) -> str:
        return f"{self.PUBLIC_API_URL.rstrip('/')}/api/v1/callbacks/suno"

    @property
    def suno_stems_callback_url(self) -> str:
        return f"{self.PUBLIC_API_URL.rstrip('/')}/api/v1/callbacks/suno-stems"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
