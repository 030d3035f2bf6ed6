from datetime import timedelta
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    # App Settings
    APP_NAME: str = "Star Trader Assistant"
    PROJECT_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: str = "*"  # Comma-separated string or "*"

    # Upstream trading data API
    UEX_API_BASE_URL: str = "https://api.uexcorp.space/2.0"

    # Cache
    CACHE_TYPE: str = "inmemory"  # inmemory, redis, or database
    CACHE_PREFIX: str = "cache/"
    CACHE_TTL_SECONDS: int = 3600
    CACHE_SWEEP_AFTER_WRITE: bool = False
    REDIS_URL: str | None = None
    DATABASE_URL: str = "sqlite+aiosqlite:///./startrader_cache.db"

    # Bearer secret expected by the cache sweep endpoint
    CRON_SECRET: str = ""

    # LLM provider
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o"
    MAX_TPM: int = 30000
    MAX_OUTPUT_TOKENS: int = 2500
    CHAT_RECENT_MESSAGES: int = 10
    CHAT_MAX_TOOL_ITERATIONS: int = 5
    KNOWLEDGE_BASE_URL: str | None = None

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Parse ALLOWED_ORIGINS
    @property
    def allowed_origins_list(self) -> List[str]:
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.CACHE_TTL_SECONDS)

    @property
    def cron_secret_configured(self) -> bool:
        return bool(self.CRON_SECRET and self.CRON_SECRET != "your-cron-secret")

    @property
    def max_input_tokens(self) -> int:
        # Whatever the per-minute budget leaves once the reply is reserved
        return self.MAX_TPM - self.MAX_OUTPUT_TOKENS


settings = Settings()
