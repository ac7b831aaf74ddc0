"""Shared fixtures: fake upstream APIs and an orchestrator wired to them."""

import pytest

from core.domain.value_objects import Credential, RepositoryName
from core.infrastructure.security import CheckpointCodec, CredentialVault
from core.application.services import ForkPollPolicy
from orchestration import (
    DeploymentRequest,
    InMemoryEventBus,
    Orchestrator,
    OrchestratorConfig,
    RetryPolicy,
)
from tests.mocks.fake_apis import SECRET, TEMPLATE, FakeFastlyAPI, FakeGitHubAPI
from tests.mocks.fake_clock import FakeClock


@pytest.fixture
def trace() -> list:
    return []


@pytest.fixture
def github(trace) -> FakeGitHubAPI:
    api = FakeGitHubAPI(trace)
    api.add_template(TEMPLATE)
    return api


@pytest.fixture
def fastly(trace) -> FakeFastlyAPI:
    return FakeFastlyAPI(trace)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec() -> CheckpointCodec:
    return CheckpointCodec(SECRET)


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(SECRET)


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def config() -> OrchestratorConfig:
    return OrchestratorConfig(
        retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0.5),
        fork_poll_policy=ForkPollPolicy(max_attempts=3, base_delay_seconds=1.0),
    )


@pytest.fixture
def orchestrator(github, fastly, codec, vault, config, event_bus, clock) -> Orchestrator:
    return Orchestrator(
        github_factory=github.with_credential,
        fastly_factory=fastly.bind,
        codec=codec,
        vault=vault,
        config=config,
        event_bus=event_bus,
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.fixture
def make_request():
    def _make(checkpoint=None, inputs=None, github_token="gho_user", platform_token="fastly_token", **kwargs):
        return DeploymentRequest(
            repository=RepositoryName.parse(TEMPLATE),
            github_credential=Credential(github_token, "github") if github_token else None,
            platform_credential=Credential(platform_token, "fastly") if platform_token else None,
            checkpoint=checkpoint,
            inputs=inputs if inputs is not None else {"dict.app_config.api_secret": "s3cr3t"},
            **kwargs,
        )

    return _make
