from __future__ import annotations

from pydantic import Field

from core.settings.base_settings import QuickDeployBaseSettings


class GitHubSettings(QuickDeployBaseSettings):
    """
    GitHub OAuth application and repository conventions.
    Loaded from .env with exact variable name matching.
    """

    client_id: str = Field(..., alias="GITHUB_CLIENT_ID")
    client_secret: str = Field(..., alias="GITHUB_CLIENT_SECRET")
    api_url: str = Field(default="https://api.github.com", alias="GITHUB_API_URL")
    oauth_url: str = Field(default="https://github.com", alias="GITHUB_OAUTH_URL")

    manifest_path: str = Field(default="fastly.toml", alias="QUICKDEPLOY_MANIFEST_PATH")
    workflow_id: str = Field(default="deploy.yml", alias="QUICKDEPLOY_WORKFLOW_ID")
    secret_name: str = Field(default="FASTLY_API_TOKEN", alias="QUICKDEPLOY_SECRET_NAME")
    user_agent: str = Field(default="Quick Deploy", alias="QUICKDEPLOY_USER_AGENT")
