"""
Domain errors.

One class per component with a nested ``Kind`` enum. Kinds listed in
``retryable_kinds`` are retried inside the current request; everything else
fails the step immediately.
"""
from enum import Enum
from typing import Optional

from quickdeploy_sdk.errors import QuickDeployError


class AuthError(QuickDeployError):
    """OAuth exchange or credential verification failed."""

    class Kind(str, Enum):
        INVALID_CODE = "invalid_code"
        EXPIRED = "expired"
        PROVIDER_UNAVAILABLE = "provider_unavailable"

    retryable_kinds = frozenset({Kind.PROVIDER_UNAVAILABLE})


class ManifestError(QuickDeployError):
    """The project's fastly.toml cannot be turned into a Manifest."""

    class Kind(str, Enum):
        INVALID_SYNTAX = "invalid_syntax"
        MISSING_SETUP_SECTION = "missing_setup_section"
        MALFORMED_BACKEND = "malformed_backend"
        MALFORMED_DICTIONARY = "malformed_dictionary"
        DUPLICATE_KEY = "duplicate_key"


class ForkError(QuickDeployError):
    """Creating or locating the user's copy of the template failed."""

    class Kind(str, Enum):
        NOT_FOUND = "not_found"
        NOT_A_TEMPLATE = "not_a_template"
        ALREADY_FORKED = "already_forked"
        NAME_TAKEN = "name_taken"
        RATE_LIMITED = "rate_limited"
        FORBIDDEN = "forbidden"
        TIMEOUT = "timeout"

    retryable_kinds = frozenset({Kind.RATE_LIMITED})

    def __init__(
        self,
        kind: "ForkError.Kind",
        message: str,
        *,
        retry_after: Optional[float] = None,
        fork: Optional[str] = None,
    ):
        super().__init__(kind, message, retry_after=retry_after)
        self.fork = fork


class ProvisionError(QuickDeployError):
    """A Fastly service resource could not be created."""

    class Kind(str, Enum):
        QUOTA_EXCEEDED = "quota_exceeded"
        INVALID_HOST = "invalid_host"
        CONFLICT = "conflict"
        UNAUTHORIZED = "unauthorized"
        INVALID_REQUEST = "invalid_request"

    retryable_kinds = frozenset({Kind.CONFLICT})


class SecretError(QuickDeployError):
    """The deploy credential could not be stored as a repository secret."""

    class Kind(str, Enum):
        ENCRYPTION_FAILED = "encryption_failed"
        PERMISSION_DENIED = "permission_denied"


class WorkflowError(QuickDeployError):
    """The deploy workflow could not be enabled or its manifest pinned."""

    class Kind(str, Enum):
        NOT_FOUND = "not_found"
        PERMISSION_DENIED = "permission_denied"


class CheckpointError(QuickDeployError):
    """A checkpoint token presented by the client cannot be trusted."""

    class Kind(str, Enum):
        MALFORMED = "malformed"
        TAMPERED = "tampered"
        UNSUPPORTED_VERSION = "unsupported_version"
        EXPIRED = "expired"
        SESSION_MISMATCH = "session_mismatch"
