from __future__ import annotations

from pydantic import Field

from core.settings.base_settings import QuickDeployBaseSettings


class OrchestrationSettings(QuickDeployBaseSettings):
    """
    Retry budgets, polling bounds and timeouts for one provisioning request.
    Loaded from .env with exact variable name matching.
    """

    # Per-step retry
    step_max_attempts: int = Field(default=3, ge=1, alias="QUICKDEPLOY_STEP_MAX_ATTEMPTS")
    step_backoff_seconds: float = Field(default=0.5, ge=0, alias="QUICKDEPLOY_STEP_BACKOFF_SECONDS")
    step_backoff_factor: float = Field(default=2.0, ge=1, alias="QUICKDEPLOY_STEP_BACKOFF_FACTOR")
    step_max_backoff_seconds: float = Field(default=8.0, ge=0, alias="QUICKDEPLOY_STEP_MAX_BACKOFF_SECONDS")

    # Waiting for a generated repository
    fork_poll_attempts: int = Field(default=10, ge=1, alias="QUICKDEPLOY_FORK_POLL_ATTEMPTS")
    fork_poll_base_seconds: float = Field(default=1.0, ge=0, alias="QUICKDEPLOY_FORK_POLL_BASE_SECONDS")
    fork_poll_max_seconds: float = Field(default=5.0, ge=0, alias="QUICKDEPLOY_FORK_POLL_MAX_SECONDS")
    fork_poll_total_seconds: float = Field(default=30.0, ge=0, alias="QUICKDEPLOY_FORK_POLL_TOTAL_SECONDS")

    # Budgets
    http_timeout_seconds: float = Field(default=10.0, gt=0, alias="QUICKDEPLOY_HTTP_TIMEOUT_SECONDS")
    request_budget_seconds: float = Field(default=50.0, gt=0, alias="QUICKDEPLOY_REQUEST_BUDGET_SECONDS")
    budget_reserve_seconds: float = Field(default=12.0, ge=0, alias="QUICKDEPLOY_BUDGET_RESERVE_SECONDS")
    resource_concurrency: int = Field(default=4, ge=1, alias="QUICKDEPLOY_RESOURCE_CONCURRENCY")
