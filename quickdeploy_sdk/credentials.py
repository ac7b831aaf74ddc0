"""Restricted-exposure wrapper for OAuth and platform API tokens."""
from typing import Callable, TypeVar

from nacl.encoding import HexEncoder
from nacl.hash import blake2b

T = TypeVar("T")


class Credential:
    """
    Opaque bearer token.

    The raw value is only reachable through ``use``, which hands it to a single
    callable (building one auth header, sealing it for a secret or a cookie).
    ``str``/``repr`` are redacted so a credential never leaks into logs.
    """

    __slots__ = ("_value", "provider")

    def __init__(self, value: str, provider: str) -> None:
        if not value:
            raise ValueError(f"Empty {provider} credential")
        self._value = value
        self.provider = provider

    def use(self, consumer: Callable[[str], T]) -> T:
        return consumer(self._value)

    def redacted(self) -> str:
        return f"<{self.provider} credential ****>"

    def fingerprint(self, key: bytes) -> str:
        """Keyed, non-reversible session reference safe to persist."""
        return blake2b(
            self._value.encode("utf-8"), key=key, digest_size=16, encoder=HexEncoder
        ).decode("ascii")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Credential):
            return NotImplemented
        return self.provider == other.provider and self._value == other._value

    def __hash__(self) -> int:
        return hash((self.provider, self._value))

    def __repr__(self) -> str:
        return self.redacted()

    __str__ = __repr__
