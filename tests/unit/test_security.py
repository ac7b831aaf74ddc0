"""Tests for the checkpoint codec and sealed credential cookies."""

import pytest
from pydantic import BaseModel

from core.domain.errors import CheckpointError
from core.domain.value_objects import Credential
from core.infrastructure.security import CheckpointCodec, CredentialVault
from orchestration import Checkpoint
from tests.mocks.fake_apis import SECRET
from tests.mocks.fake_clock import FakeClock


@pytest.fixture
def checkpoint() -> Checkpoint:
    return Checkpoint(
        repository="fastly/compute-starter-kit",
        login="octocat",
        fork="octocat/compute-starter-kit",
        fork_ready=True,
        service_id="SVC1",
        last_completed=4,
        configured=["backend:origin"],
    )


def test_round_trip(checkpoint):
    codec = CheckpointCodec(SECRET)

    token = codec.encode(checkpoint)

    assert token.startswith("v1.")
    assert codec.decode(token, Checkpoint) == checkpoint


def _kind(codec: CheckpointCodec, token: str) -> CheckpointError.Kind:
    with pytest.raises(CheckpointError) as exc_info:
        codec.decode(token, Checkpoint)
    return exc_info.value.kind


def test_tampered_payload(checkpoint):
    codec = CheckpointCodec(SECRET)
    version, payload, mac = codec.encode(checkpoint).split(".")
    forged = codec.encode(checkpoint.model_copy(update={"last_completed": 6})).split(".")[1]

    assert _kind(codec, f"{version}.{forged}.{mac}") is CheckpointError.Kind.TAMPERED


def test_other_secret_is_tampered(checkpoint):
    token = CheckpointCodec(SECRET).encode(checkpoint)
    other = CheckpointCodec("another-secret-key-with-32-or-more-characters")

    assert _kind(other, token) is CheckpointError.Kind.TAMPERED


@pytest.mark.parametrize("token", ["", "garbage", "v1.only-two", "v1.\u00e9.abc"])
def test_malformed(token):
    assert _kind(CheckpointCodec(SECRET), token) is CheckpointError.Kind.MALFORMED


def test_unsupported_version(checkpoint):
    codec = CheckpointCodec(SECRET)
    _, payload, mac = codec.encode(checkpoint).split(".")

    assert _kind(codec, f"v2.{payload}.{mac}") is CheckpointError.Kind.UNSUPPORTED_VERSION


def test_expired(checkpoint):
    clock = FakeClock()
    codec = CheckpointCodec(SECRET, max_age_seconds=60, clock=clock)
    token = codec.encode(checkpoint)

    clock.now += 61

    assert _kind(codec, token) is CheckpointError.Kind.EXPIRED


def test_signed_payload_with_wrong_shape_is_malformed():
    class Other(BaseModel):
        unrelated: int = 1

    codec = CheckpointCodec(SECRET)
    token = codec.encode(Other())

    assert _kind(codec, token) is CheckpointError.Kind.MALFORMED


def test_vault_round_trip():
    vault = CredentialVault(SECRET)
    credential = Credential("gho_abc", "github")

    sealed = vault.seal(credential)

    assert "gho_abc" not in sealed
    assert vault.open(sealed, "github") == credential


@pytest.mark.parametrize("sealed", [None, "", "not-a-cookie", "AAAA"])
def test_vault_discards_unreadable_cookie(sealed):
    assert CredentialVault(SECRET).open(sealed, "github") is None


def test_vault_rejects_cookie_from_other_secret():
    sealed = CredentialVault(SECRET).seal(Credential("gho_abc", "github"))

    assert CredentialVault("another-secret-key-with-32-or-more-characters").open(sealed, "github") is None


def test_session_ref_is_stable_and_distinct():
    vault = CredentialVault(SECRET)

    first = vault.session_ref(Credential("gho_a", "github"))

    assert first == vault.session_ref(Credential("gho_a", "github"))
    assert first != vault.session_ref(Credential("gho_b", "github"))
    assert "gho_a" not in first


def test_credential_is_redacted():
    credential = Credential("gho_secret_value", "github")

    assert "gho_secret_value" not in repr(credential)
    assert "gho_secret_value" not in str(credential)
    assert "gho_secret_value" not in f"{credential}"
