"""Orchestration layer - provisioning state machine with eventing."""

from typing import Optional

import aiohttp

from core.domain.value_objects import Credential
from core.infrastructure.security import CheckpointCodec, CredentialVault
from core.settings import AppSettings
from quickdeploy_sdk.fastly import FastlyClient
from quickdeploy_sdk.github import GitHubClient

from .bus import EventBusProtocol, InMemoryEventBus
from .events import Event, EventMetadata
from .models import (
    Checkpoint,
    DeploymentRequest,
    DeploymentResult,
    OutcomeStatus,
    ProvisioningStep,
    StepOutcome,
    StepReport,
    SuspensionReason,
)
from .orchestrator import Orchestrator, OrchestratorConfig
from .workflow import PIPELINE, RetryPolicy, pipeline_index

__all__ = [
    "Checkpoint",
    "DeploymentRequest",
    "DeploymentResult",
    "Event",
    "EventBusProtocol",
    "EventMetadata",
    "InMemoryEventBus",
    "Orchestrator",
    "OrchestratorConfig",
    "OutcomeStatus",
    "PIPELINE",
    "ProvisioningStep",
    "RetryPolicy",
    "StepOutcome",
    "StepReport",
    "SuspensionReason",
    "create_default_orchestrator",
    "pipeline_index",
]


def create_default_orchestrator(
    settings: AppSettings,
    session: aiohttp.ClientSession,
    event_bus: Optional[EventBusProtocol] = None,
) -> Orchestrator:
    """Create an orchestrator wired to the real GitHub and Fastly APIs.

    Args:
        settings: Application settings
        session: Shared aiohttp session for upstream calls
        event_bus: Optional bus; an in-memory one is created otherwise

    Returns:
        Orchestrator instance
    """
    timeout = settings.orchestration.http_timeout_seconds
    github = GitHubClient(
        session,
        api_url=settings.github.api_url,
        oauth_url=settings.github.oauth_url,
        client_id=settings.github.client_id,
        client_secret=settings.github.client_secret,
        user_agent=settings.github.user_agent,
        timeout_seconds=timeout,
    )

    def fastly_factory(credential: Credential) -> FastlyClient:
        return FastlyClient(
            session,
            api_url=settings.fastly.api_url,
            user_agent=settings.github.user_agent,
            timeout_seconds=timeout,
            credential=credential,
        )

    secret = settings.security.secret_key
    return Orchestrator(
        github_factory=github.with_credential,
        fastly_factory=fastly_factory,
        codec=CheckpointCodec(secret, settings.security.checkpoint_max_age_seconds),
        vault=CredentialVault(secret),
        config=OrchestratorConfig.from_settings(settings),
        event_bus=event_bus or InMemoryEventBus(),
    )
