from core.settings.modules.app_settings import AppSettings, get_app_settings
from core.settings.modules.fastly_settings import FastlySettings
from core.settings.modules.github_settings import GitHubSettings
from core.settings.modules.orchestration_settings import OrchestrationSettings
from core.settings.modules.security_settings import SecuritySettings

__all__ = [
    "AppSettings",
    "FastlySettings",
    "GitHubSettings",
    "OrchestrationSettings",
    "SecuritySettings",
    "get_app_settings",
]
