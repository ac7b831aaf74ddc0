from __future__ import annotations

from pydantic import Field

from core.settings.base_settings import QuickDeployBaseSettings


class SecuritySettings(QuickDeployBaseSettings):
    """
    Signing key for checkpoints and sealed credential cookies.
    Loaded from .env with exact variable name matching.
    """

    secret_key: str = Field(..., min_length=32, alias="QUICKDEPLOY_SECRET_KEY")
    checkpoint_max_age_seconds: int = Field(default=86400, gt=0, alias="QUICKDEPLOY_CHECKPOINT_MAX_AGE")
    github_cookie: str = Field(default="__Secure-QD-GitHub", alias="QUICKDEPLOY_GITHUB_COOKIE")
    platform_cookie: str = Field(default="__Secure-QD-Platform", alias="QUICKDEPLOY_PLATFORM_COOKIE")
    oauth_cookie: str = Field(default="__Secure-QD-OAuth", alias="QUICKDEPLOY_OAUTH_COOKIE")
