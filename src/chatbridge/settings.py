"""Настройки приложения (env + `.env`)."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic-настройки (всё, что обычно лежит в `.env`). Сами ключи провайдеров здесь не живут."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="local", validation_alias="APP_ENV")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    keys_file: str = Field(default=".env", validation_alias="KEYS_FILE")
    keys_from_env: bool = Field(default=True, validation_alias="KEYS_FROM_ENV")

    default_provider: str = Field(default="openai", validation_alias="DEFAULT_PROVIDER")
    default_model: str = Field(default="gpt-4o-mini", validation_alias="DEFAULT_MODEL")

    http_timeout_seconds: float = Field(default=60.0, validation_alias="HTTP_TIMEOUT_SECONDS")
    http_referer: str | None = Field(default=None, validation_alias="HTTP_REFERER")
    app_title: str | None = Field(default=None, validation_alias="APP_TITLE")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Ленивая загрузка настроек (один раз на процесс)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
