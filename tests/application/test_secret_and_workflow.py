"""Tests for SecretInjector and WorkflowActivator."""

import base64

import pytest
from nacl.public import PrivateKey, SealedBox

from core.application.services import SecretInjector, WorkflowActivator
from core.application.services.secret_injector import seal_secret
from core.application.services.workflow_activator import pin_service_id
from core.domain.errors import SecretError, WorkflowError
from core.domain.value_objects import Credential, RepositoryName
from quickdeploy_sdk.errors import ApiError
from tests.mocks.fake_apis import TEMPLATE

REPO = RepositoryName.parse(TEMPLATE)
TOKEN = Credential("fastly_token", "fastly")


def test_seal_secret_round_trips_with_private_key():
    key = PrivateKey.generate()
    public = base64.b64encode(bytes(key.public_key)).decode("ascii")

    sealed = seal_secret(public, TOKEN)

    assert SealedBox(key).decrypt(base64.b64decode(sealed)) == b"fastly_token"


@pytest.mark.parametrize("public_key", ["not base64!!", base64.b64encode(b"short").decode("ascii")])
def test_seal_secret_rejects_bad_key(public_key):
    with pytest.raises(SecretError) as exc_info:
        seal_secret(public_key, TOKEN)
    assert exc_info.value.kind is SecretError.Kind.ENCRYPTION_FAILED


@pytest.mark.asyncio
async def test_inject_stores_encrypted_secret(github):
    await SecretInjector(github).inject_deploy_credential(REPO, TOKEN)

    encrypted, key_id = github.secrets[(TEMPLATE, "FASTLY_API_TOKEN")]
    assert key_id == github.public_key_id
    assert "fastly_token" not in encrypted
    assert github.decrypt_secret(TEMPLATE, "FASTLY_API_TOKEN") == "fastly_token"


@pytest.mark.asyncio
async def test_inject_fetches_key_every_time(github, trace):
    injector = SecretInjector(github, secret_name="DEPLOY_TOKEN")
    await injector.inject_deploy_credential(REPO, TOKEN)
    await injector.inject_deploy_credential(REPO, TOKEN)

    assert len([c for c, _ in trace if c == "github.get_public_key"]) == 2
    assert (TEMPLATE, "DEPLOY_TOKEN") in github.secrets


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403, 404])
async def test_inject_permission_denied(github, status):
    github.failures["get_public_key"] = [ApiError(status, "nope")]

    with pytest.raises(SecretError) as exc_info:
        await SecretInjector(github).inject_deploy_credential(REPO, TOKEN)
    assert exc_info.value.kind is SecretError.Kind.PERMISSION_DENIED


def test_pin_service_id_keeps_document_and_skips_when_unchanged():
    text = '# deploy config\nname = "app"\n\n[setup]\n'

    pinned = pin_service_id(text, "SVC1")

    assert pinned is not None
    assert "# deploy config" in pinned
    assert 'service_id = "SVC1"' in pinned
    assert pin_service_id(pinned, "SVC1") is None


@pytest.mark.asyncio
async def test_activate_enables_and_pins(github):
    await WorkflowActivator(github).activate(REPO, "SVC1")

    assert github.workflows[(TEMPLATE, "deploy.yml")]["state"] == "active"
    assert 'service_id = "SVC1"' in github.files[(TEMPLATE, "fastly.toml")].content
    assert github.commits == [(TEMPLATE, "fastly.toml", "Service provisioning via Quick Deploy")]


@pytest.mark.asyncio
async def test_activate_twice_is_a_no_op(github, trace):
    activator = WorkflowActivator(github)
    await activator.activate(REPO, "SVC1")
    await activator.activate(REPO, "SVC1")

    assert len([c for c, _ in trace if c == "github.enable_workflow"]) == 1
    assert len(github.commits) == 1


@pytest.mark.asyncio
async def test_activate_without_workflow(github):
    del github.workflows[(TEMPLATE, "deploy.yml")]

    with pytest.raises(WorkflowError) as exc_info:
        await WorkflowActivator(github).activate(REPO, "SVC1")
    assert exc_info.value.kind is WorkflowError.Kind.NOT_FOUND


@pytest.mark.asyncio
async def test_activate_forbidden(github):
    github.failures["enable_workflow"] = [ApiError(403, "Must have admin rights")]

    with pytest.raises(WorkflowError) as exc_info:
        await WorkflowActivator(github).activate(REPO, "SVC1")
    assert exc_info.value.kind is WorkflowError.Kind.PERMISSION_DENIED
