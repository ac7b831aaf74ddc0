"""Tests for OAuthBroker."""

import pytest

from core.application.services import OAuthBroker
from core.domain.errors import AuthError
from core.domain.value_objects import Credential
from quickdeploy_sdk.errors import ApiError, NetworkError


@pytest.fixture
def broker(github) -> OAuthBroker:
    return OAuthBroker(github)


@pytest.mark.asyncio
async def test_authorize_returns_credential(broker, github):
    github.codes["good"] = {"access_token": "gho_abc", "token_type": "bearer"}

    credential = await broker.authorize("good")

    assert credential == Credential("gho_abc", "github")
    assert "gho_abc" not in repr(credential)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, kind",
    [
        ({"error": "bad_verification_code"}, AuthError.Kind.INVALID_CODE),
        (
            {"error": "bad_verification_code", "error_description": "The code passed is incorrect or expired."},
            AuthError.Kind.EXPIRED,
        ),
        ({"error": "incorrect_client_credentials"}, AuthError.Kind.PROVIDER_UNAVAILABLE),
    ],
)
async def test_authorize_error_payloads(broker, github, payload, kind):
    github.codes["code"] = payload

    with pytest.raises(AuthError) as exc_info:
        await broker.authorize("code")
    assert exc_info.value.kind is kind


@pytest.mark.asyncio
async def test_authorize_empty_code(broker):
    with pytest.raises(AuthError) as exc_info:
        await broker.authorize("")
    assert exc_info.value.kind is AuthError.Kind.INVALID_CODE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [NetworkError(NetworkError.Kind.TIMEOUT, "timed out"), ApiError(500, "boom")],
)
async def test_authorize_provider_failure_is_retryable(broker, github, error):
    github.failures["exchange_code"] = [error]

    with pytest.raises(AuthError) as exc_info:
        await broker.authorize("code")
    assert exc_info.value.kind is AuthError.Kind.PROVIDER_UNAVAILABLE
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_verify_github_returns_login(broker, github):
    github.users["gho_abc"] = "hubot"
    github.with_credential(Credential("gho_abc", "github"))

    assert await broker.verify_github(github) == "hubot"


@pytest.mark.asyncio
async def test_verify_github_revoked_token(broker, github):
    github.failures["get_user"] = [ApiError(401, "Bad credentials")]

    with pytest.raises(AuthError) as exc_info:
        await broker.verify_github(github)
    assert exc_info.value.kind is AuthError.Kind.EXPIRED


@pytest.mark.asyncio
async def test_verify_platform_rejects_bad_token(broker, fastly):
    fastly.valid_tokens = {"good"}
    fastly.bind(Credential("bad", "fastly"))

    with pytest.raises(AuthError):
        await broker.verify_platform(fastly)

    fastly.bind(Credential("good", "fastly"))
    user = await broker.verify_platform(fastly)
    assert user["customer_id"] == "cust1"


def test_authorize_url_carries_state(broker):
    assert broker.authorize_url("v1.abc.def").endswith("state=v1.abc.def")
