# core/settings/base_settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class QuickDeployBaseSettings(BaseSettings):
    """Shared loading rules: environment first, then the project .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )
