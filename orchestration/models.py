"""Orchestration models - Checkpoint, ProvisioningStep, StepOutcome, DeploymentRequest, DeploymentResult."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from core.domain.enums import DeploymentState, StepKind
from core.domain.value_objects import Credential, RepositoryName
from quickdeploy_sdk.errors import QuickDeployError


class Checkpoint(BaseModel):
    """
    Resumable snapshot of one deployment, round-tripped through the client.

    Holds identifiers only; credentials and dictionary values never enter it.
    """

    version: int = 1
    repository: str
    session_ref: Optional[str] = None
    login: Optional[str] = None
    fork: Optional[str] = None
    fork_ready: bool = False
    service_id: Optional[str] = None
    service_version: Optional[int] = None
    domain: Optional[str] = None
    last_completed: int = -1
    configured: list[str] = Field(default_factory=list)
    failed_step: Optional[str] = None
    # set while waiting on GitHub sign-in, mirrored in a browser cookie
    oauth_nonce: Optional[str] = None


@dataclass(frozen=True)
class ProvisioningStep:
    """One unit of provisioning work; ``index`` addresses a manifest entry."""

    kind: StepKind
    index: Optional[int] = None

    @classmethod
    def configure_backend(cls, index: int) -> "ProvisioningStep":
        return cls(StepKind.CONFIGURE_BACKEND, index)

    @classmethod
    def configure_dictionary(cls, index: int) -> "ProvisioningStep":
        return cls(StepKind.CONFIGURE_DICTIONARY, index)

    @property
    def label(self) -> str:
        if self.index is None:
            return self.kind.value
        return f"{self.kind.value}[{self.index}]"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass
class StepOutcome:
    """
    Result of running a step through its retry loop.

    A RETRYABLE outcome with ``exhausted`` False means the loop stopped early
    because the request budget ran out, not because retries were used up.
    """

    status: OutcomeStatus
    resource_id: Optional[str] = None
    output: object = None
    error: Optional[Exception] = None
    attempts: int = 1
    exhausted: bool = True

    @classmethod
    def success(cls, resource_id: Optional[str] = None, output: object = None) -> "StepOutcome":
        return cls(OutcomeStatus.SUCCESS, resource_id=resource_id, output=output)

    @classmethod
    def from_error(cls, error: Exception) -> "StepOutcome":
        retryable = isinstance(error, QuickDeployError) and error.retryable
        return cls(OutcomeStatus.RETRYABLE if retryable else OutcomeStatus.FATAL, error=error)

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS


@dataclass
class StepReport:
    """Progress entry shown to the caller."""

    name: str
    success: bool
    attempts: int
    duration_ms: int
    resource_id: Optional[str] = None
    error: Optional[str] = None


class SuspensionReason(str, Enum):
    AUTHORIZATION_REQUIRED = "authorization_required"
    PLATFORM_TOKEN_REQUIRED = "platform_token_required"
    INPUT_REQUIRED = "input_required"
    BUDGET_EXHAUSTED = "budget_exhausted"


@dataclass
class DeploymentRequest:
    """One provisioning attempt for (user, template repository)."""

    repository: RepositoryName
    github_credential: Optional[Credential] = None
    platform_credential: Optional[Credential] = None
    checkpoint: Optional[Checkpoint] = None
    oauth_code: Optional[str] = None
    inputs: dict[str, str] = field(default_factory=dict, repr=False)


@dataclass
class DeploymentResult:
    """What one orchestrator invocation reached."""

    state: DeploymentState
    checkpoint: Checkpoint
    checkpoint_token: str = ""
    steps: list[StepReport] = field(default_factory=list)
    suspension: Optional[SuspensionReason] = None
    failed_step: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    authorize_url: Optional[str] = None
    required_inputs: list[dict[str, object]] = field(default_factory=list)
    issued_credential: Optional[Credential] = None
    service_id: Optional[str] = None
    fork: Optional[str] = None
    application_url: Optional[str] = None
    actions_url: Optional[str] = None

    @property
    def status(self) -> str:
        if self.state is DeploymentState.COMPLETE:
            return "complete"
        if self.state is DeploymentState.FAILED:
            return "failed"
        return "suspended"
