"""
Secret injector.

Stores the Fastly API token as an encrypted Actions secret on the forked
repository so its deploy workflow can authenticate on the first run.
"""
import base64
import binascii
import logging

from nacl.exceptions import CryptoError
from nacl.public import PublicKey, SealedBox

from core.application.interfaces import GitHubAPI
from core.domain.errors import SecretError
from core.domain.value_objects import Credential, RepositoryName
from quickdeploy_sdk.errors import ApiError

logger = logging.getLogger(__name__)


def seal_secret(public_key_b64: str, credential: Credential) -> str:
    """Encrypt ``credential`` for the holder of ``public_key_b64``; returns base64."""
    try:
        box = SealedBox(PublicKey(base64.b64decode(public_key_b64)))
        sealed = credential.use(lambda raw: box.encrypt(raw.encode("utf-8")))
    except (binascii.Error, ValueError, TypeError, CryptoError) as exc:
        raise SecretError(
            SecretError.Kind.ENCRYPTION_FAILED,
            "Could not encrypt the deploy credential with the repository key",
        ) from exc
    return base64.b64encode(sealed).decode("ascii")


class SecretInjector:
    """Writes the deploy credential as a repository secret."""

    def __init__(self, github: GitHubAPI, secret_name: str = "FASTLY_API_TOKEN"):
        self.github = github
        self.secret_name = secret_name

    async def inject_deploy_credential(
        self, repository: RepositoryName, platform_token: Credential
    ) -> None:
        """
        Seal and store ``platform_token`` on ``repository``.

        The repository public key is fetched on every call; keys are per
        repository and rotate, so nothing is cached.

        Raises:
            SecretError: ENCRYPTION_FAILED or PERMISSION_DENIED
        """
        nwo = str(repository)
        try:
            key_id, key = await self.github.get_public_key(nwo)
            encrypted = seal_secret(key, platform_token)
            await self.github.put_secret(nwo, self.secret_name, encrypted, key_id)
        except ApiError as exc:
            if exc.status in (401, 403, 404):
                raise SecretError(
                    SecretError.Kind.PERMISSION_DENIED,
                    f"Not allowed to write secrets on {nwo}",
                ) from exc
            raise
        logger.info(f"Stored {self.secret_name} on {nwo}")
