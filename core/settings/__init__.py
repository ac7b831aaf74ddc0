# Settings package
from core.settings.modules import (
    AppSettings,
    FastlySettings,
    GitHubSettings,
    OrchestrationSettings,
    SecuritySettings,
    get_app_settings,
)

__all__ = [
    "AppSettings",
    "FastlySettings",
    "GitHubSettings",
    "OrchestrationSettings",
    "SecuritySettings",
    "get_app_settings",
]
