"""
Settings for the Tailor CRM service.

Values come from the environment, falling back to a `.env` file in the
working directory.
"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Supabase project (auth + relational store)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""

    # Public URL, used for the sign-up confirmation redirect
    APP_BASE_URL: str = "http://localhost:8000"

    # Session cookie carrying the Supabase access token
    SESSION_COOKIE_NAME: str = "tailor_crm_session"
    SESSION_COOKIE_SECURE: bool = False
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 7

    # Dashboard / customer detail view cache, shared by all workers
    REDIS_URL: str = "redis://localhost:6379/0"
    VIEW_CACHE_TTL_SECONDS: int = 60

    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    def require_supabase(self) -> None:
        """Raise if the Supabase credentials are not configured"""
        if not self.SUPABASE_URL:
            raise ConfigurationError("SUPABASE_URL environment variable is required")
        if not self.SUPABASE_ANON_KEY:
            raise ConfigurationError("SUPABASE_ANON_KEY environment variable is required")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
