from core.infrastructure.security.checkpoint_codec import CheckpointCodec
from core.infrastructure.security.credential_vault import CredentialVault

__all__ = ["CheckpointCodec", "CredentialVault"]
