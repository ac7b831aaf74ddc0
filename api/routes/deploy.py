"""
Deployment endpoints.

The deploy link ``/{owner}/{repo}`` starts or resumes a deployment. Each call
runs the orchestrator until it finishes or needs something from the user, and
answers with a signed checkpoint to continue from.
"""
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response

from api.dependencies import (
    get_checkpoint_codec,
    get_credential_vault,
    get_orchestrator,
    get_settings,
)
from core.application.dtos import (
    DeployLinkDTO,
    DeployRequestDTO,
    DeploymentResponseDTO,
    PlatformTokenRequestDTO,
    StepReportDTO,
)
from core.domain.errors import CheckpointError
from core.domain.value_objects import Credential, RepositoryName
from core.infrastructure.security import CheckpointCodec, CredentialVault
from core.settings import AppSettings
from orchestration import (
    Checkpoint,
    DeploymentRequest,
    DeploymentResult,
    Orchestrator,
    SuspensionReason,
)


logger = logging.getLogger(__name__)
router = APIRouter()

_STATUS_CODES = {
    "complete": status.HTTP_200_OK,
    "failed": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "suspended": status.HTTP_202_ACCEPTED,
}


# =============================================================================
# HELPERS
# =============================================================================

def _repository(owner: str, repo: str) -> RepositoryName:
    try:
        return RepositoryName(owner=owner, name=repo)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _decode_state(codec: CheckpointCodec, state: Optional[str]) -> Optional[Checkpoint]:
    if not state:
        return None
    return codec.decode(state, Checkpoint)


def _check_oauth_nonce(checkpoint: Checkpoint, cookie: Optional[str]) -> None:
    """The callback must come back to the browser that was sent to sign in."""
    expected = checkpoint.oauth_nonce
    if not expected or not cookie or not hmac.compare_digest(
        expected.encode("utf-8"), cookie.encode("utf-8")
    ):
        raise CheckpointError(
            CheckpointError.Kind.SESSION_MISMATCH,
            "GitHub sign-in was not started from this browser, open the deploy link again",
        )


def deploy_link(request: Request, repository: RepositoryName) -> DeployLinkDTO:
    """Build the shareable link and README badge for ``repository``."""
    deploy_url = f"{str(request.base_url).rstrip('/')}/{repository}"
    badge = (
        f"[![Deploy to Fastly](https://deploy.edgecompute.app/button)]({deploy_url})"
    )
    return DeployLinkDTO(
        repository=str(repository), deploy_url=deploy_url, badge_markdown=badge
    )


def _set_cookie(response: Response, settings: AppSettings, name: str, value: str) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=settings.security.checkpoint_max_age_seconds,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )


def render_result(
    result: DeploymentResult, settings: AppSettings, vault: CredentialVault
) -> Response:
    """Map a DeploymentResult onto an HTTP response."""
    if result.suspension is SuspensionReason.AUTHORIZATION_REQUIRED:
        response: Response = RedirectResponse(
            result.authorize_url, status_code=status.HTTP_302_FOUND
        )
    else:
        body = DeploymentResponseDTO(
            status=result.status,
            state=result.state.value,
            checkpoint=result.checkpoint_token,
            suspension=result.suspension.value if result.suspension else None,
            failed_step=result.failed_step,
            error=result.error,
            error_kind=result.error_kind,
            required_inputs=result.required_inputs,
            steps=[StepReportDTO(**vars(step)) for step in result.steps],
            service_id=result.service_id,
            fork=result.fork,
            application_url=result.application_url,
            actions_url=result.actions_url,
        )
        response = JSONResponse(
            status_code=_STATUS_CODES[result.status], content=body.model_dump(mode="json")
        )

    if result.suspension is SuspensionReason.AUTHORIZATION_REQUIRED and result.checkpoint.oauth_nonce:
        _set_cookie(response, settings, settings.security.oauth_cookie, result.checkpoint.oauth_nonce)
    if result.issued_credential is not None:
        _set_cookie(
            response, settings, settings.security.github_cookie, vault.seal(result.issued_credential)
        )
    return response


async def _run(
    http_request: Request,
    repository: RepositoryName,
    state: Optional[str],
    orchestrator: Orchestrator,
    codec: CheckpointCodec,
    vault: CredentialVault,
    settings: AppSettings,
    *,
    inputs: Optional[dict[str, str]] = None,
    oauth_code: Optional[str] = None,
    platform_credential: Optional[Credential] = None,
) -> Response:
    cookies = http_request.cookies
    request = DeploymentRequest(
        repository=repository,
        github_credential=vault.open(cookies.get(settings.security.github_cookie), "github"),
        platform_credential=platform_credential
        or vault.open(cookies.get(settings.security.platform_cookie), "fastly"),
        checkpoint=_decode_state(codec, state),
        oauth_code=oauth_code,
        inputs=inputs or {},
    )
    result = await orchestrator.run(request)
    return render_result(result, settings, vault)


# =============================================================================
# AUTHENTICATION
# =============================================================================

@router.post(
    "/auth/platform",
    summary="Store the Fastly API token",
    description="""
    Verify a Fastly API token, keep it in a sealed HttpOnly cookie and continue
    the deployment named by `state`.
    """
)
async def submit_platform_token(
    http_request: Request,
    body: PlatformTokenRequestDTO,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    codec: CheckpointCodec = Depends(get_checkpoint_codec),
    vault: CredentialVault = Depends(get_credential_vault),
    settings: AppSettings = Depends(get_settings),
):
    checkpoint = codec.decode(body.state, Checkpoint)
    credential = Credential(body.token, provider="fastly")
    await orchestrator.verify_platform_token(credential)
    logger.info(f"API: Fastly token accepted for {checkpoint.repository}")

    response = await _run(
        http_request,
        RepositoryName.parse(checkpoint.repository),
        body.state,
        orchestrator,
        codec,
        vault,
        settings,
        platform_credential=credential,
    )
    _set_cookie(response, settings, settings.security.platform_cookie, vault.seal(credential))
    return response


@router.get(
    "/oauth/github/callback",
    summary="GitHub OAuth callback",
)
async def github_callback(
    http_request: Request,
    code: str = Query(..., description="Authorization code from GitHub"),
    state: str = Query(..., description="Checkpoint token sent as OAuth state"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    codec: CheckpointCodec = Depends(get_checkpoint_codec),
    vault: CredentialVault = Depends(get_credential_vault),
    settings: AppSettings = Depends(get_settings),
):
    checkpoint = codec.decode(state, Checkpoint)
    _check_oauth_nonce(checkpoint, http_request.cookies.get(settings.security.oauth_cookie))
    logger.info(f"API: OAuth callback for {checkpoint.repository}")
    response = await _run(
        http_request,
        RepositoryName.parse(checkpoint.repository),
        state,
        orchestrator,
        codec,
        vault,
        settings,
        oauth_code=code,
    )
    response.delete_cookie(
        settings.security.oauth_cookie, path="/", secure=True, httponly=True, samesite="lax"
    )
    return response


# =============================================================================
# DEPLOY LINK
# =============================================================================

@router.get(
    "/{owner}/{repo}",
    summary="Start or resume a deployment",
    responses={
        200: {"model": DeploymentResponseDTO},
        202: {"model": DeploymentResponseDTO},
        302: {"description": "Sign in with GitHub"},
        422: {"model": DeploymentResponseDTO},
    },
)
async def deploy(
    http_request: Request,
    owner: str,
    repo: str,
    state: Optional[str] = Query(default=None, description="Checkpoint token"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    codec: CheckpointCodec = Depends(get_checkpoint_codec),
    vault: CredentialVault = Depends(get_credential_vault),
    settings: AppSettings = Depends(get_settings),
):
    repository = _repository(owner, repo)
    logger.info(f"API: Deploy request for {repository}")
    return await _run(http_request, repository, state, orchestrator, codec, vault, settings)


@router.post(
    "/{owner}/{repo}",
    summary="Resume a deployment with dictionary values",
    responses={
        200: {"model": DeploymentResponseDTO},
        202: {"model": DeploymentResponseDTO},
        302: {"description": "Sign in with GitHub"},
        422: {"model": DeploymentResponseDTO},
    },
)
async def deploy_with_inputs(
    http_request: Request,
    owner: str,
    repo: str,
    body: DeployRequestDTO,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    codec: CheckpointCodec = Depends(get_checkpoint_codec),
    vault: CredentialVault = Depends(get_credential_vault),
    settings: AppSettings = Depends(get_settings),
):
    repository = _repository(owner, repo)
    logger.info(f"API: Deploy request for {repository} with {len(body.inputs)} input(s)")
    return await _run(
        http_request,
        repository,
        body.state,
        orchestrator,
        codec,
        vault,
        settings,
        inputs=body.inputs,
    )
