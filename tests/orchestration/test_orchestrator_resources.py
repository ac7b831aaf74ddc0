"""Tests for Orchestrator - resource fan-out and resuming after a quota failure."""

import asyncio

import pytest

from orchestration import Checkpoint, Orchestrator, OrchestratorConfig, RetryPolicy
from quickdeploy_sdk.errors import ApiError
from tests.mocks.fake_apis import TEMPLATE

AUTH_MANIFEST = """\
[[setup.backends]]
name = "origin"
address = "example.com"

[[setup.dictionaries]]
name = "auth"

[[setup.dictionaries.items]]
key = "realm"
input_type = "string"
value = "edge"
"""


def _backends_manifest(count: int) -> str:
    return "\n".join(
        f'[[setup.backends]]\nname = "origin{i}"\naddress = "origin{i}.example.com"\n'
        for i in range(count)
    )


def _build(github, fastly, codec, vault, clock, **overrides) -> Orchestrator:
    return Orchestrator(
        github_factory=github.with_credential,
        fastly_factory=fastly.bind,
        codec=codec,
        vault=vault,
        config=OrchestratorConfig(retry_policy=RetryPolicy(max_attempts=3), **overrides),
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [1, 2])
async def test_resource_fan_out_is_bounded(
    github, fastly, codec, vault, clock, make_request, monkeypatch, limit
):
    """Test no more than ``resource_concurrency`` resources are created at once, and none is dropped."""
    github.add_template(TEMPLATE, manifest=_backends_manifest(5))
    orchestrator = _build(github, fastly, codec, vault, clock, resource_concurrency=limit)

    create_backend = fastly.create_backend
    in_flight = 0
    peak = 0

    async def gated(*args, **kwargs):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        try:
            for _ in range(3):
                await asyncio.sleep(0)
            return await create_backend(*args, **kwargs)
        finally:
            in_flight -= 1

    monkeypatch.setattr(fastly, "create_backend", gated)

    result = await orchestrator.run(make_request())

    assert result.status == "complete"
    assert peak == limit
    assert fastly.count("backend") == 5
    assert sorted(result.checkpoint.configured) == [f"backend:origin{i}" for i in range(5)]
    configured = [step.name for step in result.steps if step.name.startswith("configure")]
    assert sorted(configured) == [f"configure_backend[{i}]" for i in range(5)]


@pytest.mark.asyncio
async def test_quota_on_dictionary_then_resume_reuses_service(
    orchestrator, make_request, github, fastly, codec, trace
):
    """Test a dictionary quota failure keeps the service, and the resume adds only the dictionary."""
    github.add_template(TEMPLATE, manifest=AUTH_MANIFEST)
    fastly.failures["create_dictionary"] = [ApiError(400, "Dictionary limit exceeded")]

    first = await orchestrator.run(make_request())

    assert first.status == "failed"
    assert first.failed_step == "configure_dictionary[0]"
    assert first.error_kind == "quota_exceeded"
    assert first.service_id == "SVC1"
    assert first.checkpoint.configured == ["backend:origin"]
    report = next(step for step in first.steps if step.name == "configure_dictionary[0]")
    assert report.attempts == 1

    checkpoint = codec.decode(first.checkpoint_token, Checkpoint)
    second = await orchestrator.run(make_request(checkpoint=checkpoint))

    assert second.status == "complete"
    assert second.service_id == "SVC1"
    assert fastly.count("service") == 1
    assert fastly.count("backend") == 1
    assert fastly.count("dictionary") == 1
    assert len([call for call, _ in trace if call == "fastly.create_service"]) == 1
    assert len([call for call, _ in trace if call == "fastly.create_backend"]) == 1
    assert next(iter(fastly.items.values())) == {"realm": "edge"}
