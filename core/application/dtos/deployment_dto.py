"""
DTOs for deployment requests.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any


# =============================================================================
# REQUEST DTOs
# =============================================================================

class DeployRequestDTO(BaseModel):
    """Body of ``POST /{owner}/{repo}``: resume a deployment with form values."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "state": "v1.eyJpYXQiOjE3...",
                "inputs": {"dict.github_auth.client_id": "Iv1.8a61f9b3a7aba766"},
            }
        }
    )

    state: Optional[str] = Field(
        default=None,
        description="Checkpoint token returned by the previous call"
    )

    inputs: Dict[str, str] = Field(
        default_factory=dict,
        description="Dictionary values keyed as dict.<dictionary>.<key>"
    )


class PlatformTokenRequestDTO(BaseModel):
    """Body of ``POST /auth/platform``."""

    token: str = Field(..., description="Fastly API token", repr=False)

    state: str = Field(..., description="Checkpoint token of the deployment to continue")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Token must not be empty")
        return v


# =============================================================================
# RESPONSE DTOs
# =============================================================================

class StepReportDTO(BaseModel):
    """One provisioning step as reported to the caller."""

    name: str
    success: bool
    attempts: int
    duration_ms: int
    resource_id: Optional[str] = None
    error: Optional[str] = None


class DeploymentResponseDTO(BaseModel):
    """Outcome of one orchestrator invocation. Never carries credentials."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "complete",
                "state": "complete",
                "checkpoint": "v1.eyJpYXQiOjE3...",
                "service_id": "SU1Z0isxPaozGVKXdv0eY",
                "fork": "octocat/compute-starter-kit",
                "application_url": "https://octocat-compute-starter-kit.edgecompute.app",
                "actions_url": "https://github.com/octocat/compute-starter-kit/actions",
            }
        }
    )

    status: str = Field(..., description="complete, failed or suspended")
    state: str
    checkpoint: str = Field(..., description="Token to resume this deployment")
    suspension: Optional[str] = None
    failed_step: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    required_inputs: List[Dict[str, Any]] = Field(default_factory=list)
    steps: List[StepReportDTO] = Field(default_factory=list)
    service_id: Optional[str] = None
    fork: Optional[str] = None
    application_url: Optional[str] = None
    actions_url: Optional[str] = None


class DeployLinkDTO(BaseModel):
    """Shareable deploy link for a template repository."""

    repository: str
    deploy_url: str
    badge_markdown: str
