"""Per-purpose keys derived from the application secret."""
from nacl.encoding import RawEncoder
from nacl.hash import blake2b

CHECKPOINT_PURPOSE = b"qd-checkpoint"
COOKIE_PURPOSE = b"qd-cookie"
SESSION_PURPOSE = b"qd-session"


def derive_key(secret: str, purpose: bytes) -> bytes:
    """32-byte key bound to ``purpose`` (BLAKE2b personalization, max 16 bytes)."""
    return blake2b(
        secret.encode("utf-8"), digest_size=32, person=purpose, encoder=RawEncoder
    )
