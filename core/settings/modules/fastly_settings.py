from __future__ import annotations

from pydantic import Field

from core.settings.base_settings import QuickDeployBaseSettings


class FastlySettings(QuickDeployBaseSettings):
    """
    Fastly API location and service defaults.
    Loaded from .env with exact variable name matching.
    """

    api_url: str = Field(default="https://api.fastly.com", alias="FASTLY_API_URL")
    domain_suffix: str = Field(default="edgecompute.app", alias="FASTLY_DOMAIN_SUFFIX")
    service_type: str = Field(default="wasm", alias="FASTLY_SERVICE_TYPE")
