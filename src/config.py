"""Application settings loaded from environment variables."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """ChatWME configuration. All values come from environment variables."""

    # Telegram
    bot_token: str = Field(default="")

    # Gemini credentials, rotated in this order
    gemini_api_key_1: str = Field(default="")
    gemini_api_key_2: str = Field(default="")
    gemini_api_key_3: str = Field(default="")

    # Gemini generation
    gemini_model: str = Field(default="flash")
    gemini_fallback_model: str = Field(default="")
    gemini_api_base: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    gemini_temperature: float = Field(default=0.7)
    gemini_max_output_tokens: int = Field(default=1024)
    gemini_top_k: int = Field(default=40)
    gemini_top_p: float = Field(default=0.95)
    gemini_timeout_seconds: float = Field(default=30.0)

    # Key rotation
    key_attempt_factor: int = Field(default=2, ge=1)
    key_cooldown_seconds: float = Field(default=60.0)
    rate_limit_pause_seconds: float = Field(default=1.5)

    # Conversation
    session_history_size: int = Field(default=10, ge=1)
    context_window_size: int = Field(default=6, ge=1)
    session_idle_timeout_seconds: float = Field(default=3600.0)
    session_sweep_interval_seconds: float = Field(default=3600.0)

    # Webhook (polling is used when webhook_url is empty)
    port: int = Field(default=3000)
    webhook_url: str = Field(default="")

    # Persona
    bot_name: str = Field(default="ChatWME")
    creator_name: str = Field(default="Abdou")

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

    def get_gemini_keys(self) -> list[str]:
        """Return the configured Gemini API keys, skipping blanks."""
        keys = [self.gemini_api_key_1, self.gemini_api_key_2, self.gemini_api_key_3]
        return [key.strip() for key in keys if key.strip()]

    def missing_required(self) -> list[str]:
        """Names of required values that are not set."""
        missing = []
        if not self.bot_token.strip():
            missing.append("BOT_TOKEN")
        if not self.get_gemini_keys():
            missing.append("GEMINI_API_KEY_1")
        return missing

    @property
    def webhook_enabled(self) -> bool:
        return bool(self.webhook_url.strip())


settings = Settings()
