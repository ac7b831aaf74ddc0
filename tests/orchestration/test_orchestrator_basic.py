"""Tests for Orchestrator - full runs and suspension points."""

import base64
import json

import pytest

from core.domain.enums import DeploymentState
from core.domain.value_objects import Credential
from orchestration import Checkpoint, Event, SuspensionReason
from tests.mocks.fake_apis import TEMPLATE

FORK = "octocat/compute-starter-kit"


def _calls(trace: list, name: str) -> list:
    return [args for call, args in trace if call == name]


def _first(trace: list, name: str) -> int:
    return next(i for i, (call, _) in enumerate(trace) if call == name)


@pytest.mark.asyncio
async def test_fresh_deployment_completes(orchestrator, make_request, github, fastly):
    """Test a first run provisions everything and reports the live URLs."""
    result = await orchestrator.run(make_request())

    assert result.status == "complete"
    assert result.state is DeploymentState.COMPLETE
    assert result.fork == FORK
    assert result.service_id == "SVC1"
    assert result.application_url == "https://octocat-compute-starter-kit.edgecompute.app"
    assert result.actions_url == f"https://github.com/{FORK}/actions"

    assert fastly.count("service") == 1
    assert fastly.count("backend") == 2
    assert fastly.count("dictionary") == 1
    items = next(iter(fastly.items.values()))
    assert items == {"greeting": "hello", "api_secret": "s3cr3t"}

    assert github.decrypt_secret(FORK, "FASTLY_API_TOKEN") == "fastly_token"
    assert github.workflows[(FORK, "deploy.yml")]["state"] == "active"
    assert 'service_id = "SVC1"' in github.files[(FORK, "fastly.toml")].content


@pytest.mark.asyncio
async def test_step_reports_follow_pipeline(orchestrator, make_request):
    """Test every step is reported once, in pipeline order."""
    result = await orchestrator.run(make_request())

    assert [step.name for step in result.steps] == [
        "authorize",
        "fork",
        "parse_manifest",
        "create_service",
        "configure_backend[0]",
        "configure_backend[1]",
        "configure_dictionary[0]",
        "inject_secret",
        "enable_workflow",
    ]
    assert all(step.success and step.attempts == 1 for step in result.steps)
    assert result.steps[1].resource_id == FORK
    assert result.steps[3].resource_id == "SVC1"


@pytest.mark.asyncio
async def test_upstream_calls_are_ordered(orchestrator, make_request, trace):
    """Test fork precedes service, resources precede the secret, secret precedes CI."""
    await orchestrator.run(make_request())

    assert _first(trace, "github.generate_repository") < _first(trace, "fastly.create_service")
    assert _first(trace, "fastly.create_service") < _first(trace, "fastly.create_backend")
    assert _first(trace, "fastly.create_domain") < _first(trace, "fastly.create_backend")
    last_resource = max(
        i for i, (call, _) in enumerate(trace)
        if call in ("fastly.create_backend", "fastly.upsert_dictionary_item")
    )
    assert last_resource < _first(trace, "github.put_secret")
    assert _first(trace, "github.put_secret") < _first(trace, "github.enable_workflow")


@pytest.mark.asyncio
async def test_missing_github_credential_suspends_with_authorize_url(orchestrator, make_request, trace):
    """Test no GitHub session sends the user to sign in without touching upstream."""
    result = await orchestrator.run(make_request(github_token=None))

    assert result.status == "suspended"
    assert result.suspension is SuspensionReason.AUTHORIZATION_REQUIRED
    assert result.state is DeploymentState.AUTHORIZING
    assert "state=v1." in result.authorize_url
    assert result.checkpoint.oauth_nonce
    assert trace == []


@pytest.mark.asyncio
async def test_missing_platform_token_suspends(orchestrator, make_request, trace):
    """Test no Fastly token asks for one."""
    result = await orchestrator.run(make_request(platform_token=None))

    assert result.suspension is SuspensionReason.PLATFORM_TOKEN_REQUIRED
    assert result.checkpoint.last_completed == -1
    assert trace == []


@pytest.mark.asyncio
async def test_missing_dictionary_value_suspends_before_service(orchestrator, make_request, trace):
    """Test a required value without a default is asked for before anything is created."""
    result = await orchestrator.run(make_request(inputs={}))

    assert result.suspension is SuspensionReason.INPUT_REQUIRED
    assert result.state is DeploymentState.CREATING_SERVICE
    assert result.required_inputs == [
        {
            "field": "dict.app_config.api_secret",
            "dictionary": "app_config",
            "prompt": "API secret",
            "secret": True,
        }
    ]
    assert _calls(trace, "fastly.create_service") == []


@pytest.mark.asyncio
async def test_input_suspension_resumes_with_values(orchestrator, make_request, codec):
    """Test resubmitting the checkpoint with the value finishes the deployment."""
    first = await orchestrator.run(make_request(inputs={}))
    checkpoint = codec.decode(first.checkpoint_token, Checkpoint)

    second = await orchestrator.run(make_request(checkpoint=checkpoint))

    assert second.status == "complete"
    assert [step.name for step in second.steps][0] == "parse_manifest"


@pytest.mark.asyncio
async def test_oauth_code_is_exchanged_and_issued(orchestrator, make_request, github):
    """Test an authorization code becomes the session credential."""
    github.codes["code123"] = {"access_token": "gho_new", "scope": "repo,workflow"}
    waiting = Checkpoint(repository=TEMPLATE, oauth_nonce="n0nce")

    result = await orchestrator.run(
        make_request(checkpoint=waiting, github_token=None, oauth_code="code123")
    )

    assert result.status == "complete"
    assert result.issued_credential == Credential("gho_new", "github")
    assert result.checkpoint.oauth_nonce is None
    assert result.steps[0].name == "authorize"


@pytest.mark.asyncio
async def test_invalid_oauth_code_fails_authorize(orchestrator, make_request):
    """Test a rejected code fails the authorize step."""
    result = await orchestrator.run(make_request(github_token=None, oauth_code="bogus"))

    assert result.status == "failed"
    assert result.failed_step == "authorize"
    assert result.error_kind == "invalid_code"
    assert result.issued_credential is None


@pytest.mark.asyncio
async def test_missing_manifest_fails_parse(orchestrator, make_request, github, fastly):
    """Test a template without fastly.toml fails before any platform resource."""
    del github.files[(TEMPLATE, "fastly.toml")]

    result = await orchestrator.run(make_request())

    assert result.status == "failed"
    assert result.failed_step == "parse_manifest"
    assert result.error_kind == "missing_setup_section"
    assert result.checkpoint.fork == FORK
    assert fastly.count("service") == 0


@pytest.mark.asyncio
async def test_not_a_template_fails_fork(orchestrator, make_request, github):
    """Test a plain repository cannot be deployed."""
    github.repositories[TEMPLATE]["is_template"] = False

    result = await orchestrator.run(make_request())

    assert result.failed_step == "fork"
    assert result.error_kind == "not_a_template"
    assert "Fork failed" in result.error


@pytest.mark.asyncio
async def test_checkpoint_never_carries_secrets(orchestrator, make_request):
    """Test the token payload has no credential or dictionary value in it."""
    result = await orchestrator.run(make_request())

    payload = result.checkpoint_token.split(".")[1]
    decoded = base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)).decode("utf-8")
    assert json.loads(decoded)["data"]["service_id"] == "SVC1"
    for secret in ("s3cr3t", "fastly_token", "gho_user"):
        assert secret not in decoded


@pytest.mark.asyncio
async def test_events_bracket_the_run(orchestrator, make_request, event_bus):
    """Test deployment events are published around the step events."""
    events: list[Event] = []

    async def handler(event: Event) -> None:
        events.append(event)

    event_bus.subscribe("*", handler)
    await orchestrator.run(make_request())

    names = [event.name for event in events]
    assert names[0] == "deployment.started"
    assert names[-1] == "deployment.finished"
    assert names.count("deployment.step.succeeded") == 9
    assert events[-1].payload["status"] == "complete"
    assert events[-1].metadata.repository == TEMPLATE
