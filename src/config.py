"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Ecos companion configuration. All values come from environment variables."""

    # OpenAI (Eiven completions)
    openai_api_key: str = Field(default="")
    eiven_model: str = Field(default="gpt-4o")
    eiven_max_tokens: int = Field(default=1000)
    eiven_temperature: float = Field(default=0.8)
    presence_penalty: float = Field(default=0.1)
    frequency_penalty: float = Field(default=0.1)

    # Conversation
    history_window: int = Field(default=6)
    conversation_load_limit: int = Field(default=10)

    # Echo analysis
    echo_insight_max_tokens: int = Field(default=300)
    echo_insight_temperature: float = Field(default=0.7)

    # Response cache
    response_cache_ttl_seconds: float = Field(default=3600.0)

    # Retry policy for the completion API
    retry_max_attempts: int = Field(default=3)
    retry_base_delay_seconds: float = Field(default=1.0)

    # Persistence: "sqlite" (local file) or "supabase"
    persistence_backend: str = Field(default="sqlite")
    database_path: Path = Field(default=Path("data/ecos.db"))

    # Supabase
    supabase_url: str = Field(default="")
    supabase_key: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def supabase_enabled(self) -> bool:
        """True when both Supabase URL and key are configured."""
        return bool(self.supabase_url.strip() and self.supabase_key.strip())


settings = Settings()
