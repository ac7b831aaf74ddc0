"""
Signed checkpoint tokens.

Format: ``v1.<payload>.<mac>`` where payload is base64url JSON
``{"iat": <epoch>, "data": {...}}`` and mac is a keyed BLAKE2b-256 over the
version and payload. Tokens are integrity-protected, not encrypted: they must
never carry credentials.
"""
import base64
import binascii
import hmac
import json
import time
from typing import Callable, Type, TypeVar

from nacl.encoding import RawEncoder
from nacl.hash import blake2b
from pydantic import BaseModel, ValidationError

from core.domain.errors import CheckpointError
from core.infrastructure.security.keys import CHECKPOINT_PURPOSE, derive_key

TOKEN_VERSION = "v1"

M = TypeVar("M", bound=BaseModel)


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class CheckpointCodec:
    """Encode/decode pydantic models as tamper-evident tokens."""

    def __init__(
        self,
        secret: str,
        max_age_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ):
        self._key = derive_key(secret, CHECKPOINT_PURPOSE)
        self._max_age = max_age_seconds
        self._clock = clock

    def _mac(self, signed: str) -> str:
        digest = blake2b(
            signed.encode("ascii"), key=self._key, digest_size=32, encoder=RawEncoder
        )
        return _b64encode(digest)

    def encode(self, model: BaseModel) -> str:
        envelope = {"iat": int(self._clock()), "data": model.model_dump(mode="json")}
        payload = _b64encode(
            json.dumps(envelope, separators=(",", ":"), sort_keys=True).encode("utf-8")
        )
        signed = f"{TOKEN_VERSION}.{payload}"
        return f"{signed}.{self._mac(signed)}"

    def decode(self, token: str, model: Type[M]) -> M:
        """
        Verify and parse a token.

        Raises:
            CheckpointError: MALFORMED, UNSUPPORTED_VERSION, TAMPERED or EXPIRED
        """
        parts = token.split(".") if token and token.isascii() else []
        if len(parts) != 3:
            raise CheckpointError(CheckpointError.Kind.MALFORMED, "Checkpoint token is malformed")

        version, payload, mac = parts
        if version != TOKEN_VERSION:
            raise CheckpointError(
                CheckpointError.Kind.UNSUPPORTED_VERSION,
                f"Checkpoint version {version!r} is not supported",
            )
        if not hmac.compare_digest(mac, self._mac(f"{version}.{payload}")):
            raise CheckpointError(
                CheckpointError.Kind.TAMPERED, "Checkpoint signature does not match"
            )

        try:
            envelope = json.loads(_b64decode(payload))
            issued_at = int(envelope["iat"])
            data = envelope["data"]
        except (binascii.Error, ValueError, KeyError, TypeError) as exc:
            raise CheckpointError(
                CheckpointError.Kind.MALFORMED, "Checkpoint payload is unreadable"
            ) from exc

        if self._clock() - issued_at > self._max_age:
            raise CheckpointError(
                CheckpointError.Kind.EXPIRED, "This deployment link has expired, start again"
            )

        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise CheckpointError(
                CheckpointError.Kind.MALFORMED, "Checkpoint payload has an unexpected shape"
            ) from exc
