from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from core.settings.modules.fastly_settings import FastlySettings
from core.settings.modules.github_settings import GitHubSettings
from core.settings.modules.orchestration_settings import OrchestrationSettings
from core.settings.modules.security_settings import SecuritySettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    github: GitHubSettings
    fastly: FastlySettings
    orchestration: OrchestrationSettings
    security: SecuritySettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        github=GitHubSettings(),
        fastly=FastlySettings(),
        orchestration=OrchestrationSettings(),
        security=SecuritySettings(),
    )
