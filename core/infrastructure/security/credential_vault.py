"""
Sealed credential cookies.

Credentials travel between requests only inside HttpOnly cookies encrypted
with an XSalsa20-Poly1305 ``SecretBox`` keyed from the application secret.
"""
import base64
import binascii
import logging
from typing import Optional

from nacl.exceptions import CryptoError
from nacl.secret import SecretBox

from core.domain.value_objects import Credential
from core.infrastructure.security.keys import COOKIE_PURPOSE, SESSION_PURPOSE, derive_key

logger = logging.getLogger(__name__)


class CredentialVault:
    """Seal/open credentials and derive their session references."""

    def __init__(self, secret: str):
        self._box = SecretBox(derive_key(secret, COOKIE_PURPOSE))
        self._session_key = derive_key(secret, SESSION_PURPOSE)

    def seal(self, credential: Credential) -> str:
        sealed = credential.use(lambda raw: self._box.encrypt(raw.encode("utf-8")))
        return base64.urlsafe_b64encode(bytes(sealed)).decode("ascii")

    def open(self, sealed: Optional[str], provider: str) -> Optional[Credential]:
        """Return the credential inside ``sealed``; None when absent or unreadable."""
        if not sealed:
            return None
        try:
            raw = self._box.decrypt(base64.urlsafe_b64decode(sealed.encode("ascii")))
        except (binascii.Error, ValueError, CryptoError):
            logger.warning(f"Discarding unreadable {provider} credential cookie")
            return None
        return Credential(raw.decode("utf-8"), provider=provider)

    def session_ref(self, credential: Credential) -> str:
        return credential.fingerprint(self._session_key)
