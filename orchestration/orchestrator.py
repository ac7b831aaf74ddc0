"""Orchestrator - drives one deployment request through the provisioning pipeline."""

import asyncio
import secrets
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Optional

from core.application.interfaces import FastlyAPI, GitHubAPI
from core.application.services import (
    ForkPollPolicy,
    ManifestParser,
    OAuthBroker,
    RepoForker,
    SecretInjector,
    ServiceInfo,
    ServiceProvisioner,
    WorkflowActivator,
)
from core.domain.entities.manifest import DictionarySpec, Manifest
from core.domain.enums import DeploymentState, StepKind
from core.domain.errors import CheckpointError, ManifestError
from core.domain.value_objects import Credential, RepositoryName
from core.infrastructure.security import CheckpointCodec, CredentialVault
from core.settings import AppSettings
from quickdeploy_sdk.errors import QuickDeployError
from quickdeploy_sdk.logging import get_logger

from . import events
from .bus import EventBusProtocol, InMemoryEventBus
from .events import Event, EventMetadata
from .models import (
    Checkpoint,
    DeploymentRequest,
    DeploymentResult,
    OutcomeStatus,
    ProvisioningStep,
    StepOutcome,
    StepReport,
    SuspensionReason,
)
from .workflow import PIPELINE, RetryPolicy, pipeline_index

GitHubFactory = Callable[[Optional[Credential]], GitHubAPI]
FastlyFactory = Callable[[Credential], FastlyAPI]
Handler = Callable[["_Run"], Awaitable[Optional[DeploymentResult]]]


@dataclass
class OrchestratorConfig:
    """Policy knobs for one orchestrator."""

    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    fork_poll_policy: ForkPollPolicy = field(default_factory=ForkPollPolicy)
    manifest_path: str = "fastly.toml"
    workflow_id: str = "deploy.yml"
    secret_name: str = "FASTLY_API_TOKEN"
    domain_suffix: str = "edgecompute.app"
    service_type: str = "wasm"
    request_budget_seconds: float = 50.0
    budget_reserve_seconds: float = 12.0
    resource_concurrency: int = 4

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "OrchestratorConfig":
        o = settings.orchestration
        return cls(
            retry_policy=RetryPolicy(
                max_attempts=o.step_max_attempts,
                backoff_seconds=o.step_backoff_seconds,
                backoff_factor=o.step_backoff_factor,
                max_backoff_seconds=o.step_max_backoff_seconds,
            ),
            fork_poll_policy=ForkPollPolicy(
                max_attempts=o.fork_poll_attempts,
                base_delay_seconds=o.fork_poll_base_seconds,
                max_delay_seconds=o.fork_poll_max_seconds,
                max_total_seconds=o.fork_poll_total_seconds,
            ),
            manifest_path=settings.github.manifest_path,
            workflow_id=settings.github.workflow_id,
            secret_name=settings.github.secret_name,
            domain_suffix=settings.fastly.domain_suffix,
            service_type=settings.fastly.service_type,
            request_budget_seconds=o.request_budget_seconds,
            budget_reserve_seconds=o.budget_reserve_seconds,
            resource_concurrency=o.resource_concurrency,
        )


@dataclass
class _Services:
    broker: OAuthBroker
    forker: RepoForker
    parser: ManifestParser
    provisioner: ServiceProvisioner
    injector: SecretInjector
    activator: WorkflowActivator


@dataclass
class _Run:
    """Mutable state of one invocation."""

    request: DeploymentRequest
    checkpoint: Checkpoint
    deadline: float
    github_credential: Optional[Credential] = None
    platform_credential: Optional[Credential] = None
    issued_credential: Optional[Credential] = None
    github: Optional[GitHubAPI] = None
    services: Optional[_Services] = None
    manifest: Optional[Manifest] = None
    steps: list[StepReport] = field(default_factory=list)

    @property
    def next_state(self) -> DeploymentState:
        position = self.checkpoint.last_completed + 1
        if position >= len(PIPELINE):
            return DeploymentState.COMPLETE
        return PIPELINE[position]

    @property
    def fork(self) -> RepositoryName:
        return RepositoryName.parse(self.checkpoint.fork)

    @property
    def service(self) -> ServiceInfo:
        return ServiceInfo(
            id=self.checkpoint.service_id,
            version=self.checkpoint.service_version or 1,
            domain=self.checkpoint.domain or "",
        )


class Orchestrator:
    """
    Provisioning state machine.

    Each call to ``run`` executes from the request's checkpoint to a
    suspension point or a terminal state. Nothing is kept between calls: the
    returned checkpoint token is the only continuation.
    """

    def __init__(
        self,
        github_factory: GitHubFactory,
        fastly_factory: FastlyFactory,
        codec: CheckpointCodec,
        vault: CredentialVault,
        config: Optional[OrchestratorConfig] = None,
        event_bus: Optional[EventBusProtocol] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._github_factory = github_factory
        self._fastly_factory = fastly_factory
        self._codec = codec
        self._vault = vault
        self._config = config or OrchestratorConfig()
        self._event_bus = event_bus or InMemoryEventBus()
        self._clock = clock
        self._sleep = sleep
        self._logger = get_logger("orchestration.orchestrator")

        self._handlers: dict[DeploymentState, Handler] = {
            DeploymentState.AUTHORIZING: self._authorize,
            DeploymentState.FORKING: self._fork,
            DeploymentState.PARSING_MANIFEST: self._parse_manifest,
            DeploymentState.CREATING_SERVICE: self._create_service,
            DeploymentState.CONFIGURING_RESOURCES: self._configure_resources,
            DeploymentState.INJECTING_SECRET: self._inject_secret,
            DeploymentState.ENABLING_WORKFLOW: self._enable_workflow,
        }
        unhandled = set(PIPELINE) - set(self._handlers)
        if unhandled:
            raise RuntimeError(f"No handler for states: {sorted(s.value for s in unhandled)}")

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, request: DeploymentRequest) -> DeploymentResult:
        """Advance ``request`` as far as this invocation can.

        Raises:
            CheckpointError: the checkpoint belongs to another GitHub user
        """
        run = _Run(
            request=request,
            checkpoint=self._resolve_checkpoint(request),
            deadline=self._clock() + self._config.request_budget_seconds,
            github_credential=request.github_credential,
            platform_credential=request.platform_credential,
        )
        run.checkpoint.failed_step = None

        self._logger.info(
            f"Deployment of {request.repository} starting at {run.next_state.value}"
        )
        await self._publish(events.DEPLOYMENT_STARTED, run, {"state": run.next_state.value})

        result = await self._prepare(run)
        if result is None:
            for state in PIPELINE[run.checkpoint.last_completed + 1:]:
                if self._budget_exhausted(run):
                    result = self._suspend(run, SuspensionReason.BUDGET_EXHAUSTED)
                    break
                result = await self._handlers[state](run)
                if result is not None:
                    break
                run.checkpoint.last_completed = pipeline_index(state)
            else:
                result = self._complete(run)

        await self._publish(
            events.DEPLOYMENT_FINISHED,
            run,
            {"status": result.status, "state": result.state.value, "failed_step": result.failed_step},
        )
        self._logger.info(
            f"Deployment of {request.repository} {result.status} at {result.state.value}"
        )
        return result

    async def verify_platform_token(self, credential: Credential) -> dict:
        """Check a user-supplied platform token before it is stored.

        Raises:
            AuthError: the platform rejected the token
        """
        broker = OAuthBroker(self._github_factory(None))
        return await broker.verify_platform(self._fastly_factory(credential))

    def _resolve_checkpoint(self, request: DeploymentRequest) -> Checkpoint:
        checkpoint = request.checkpoint
        if checkpoint is not None and checkpoint.repository == str(request.repository):
            return checkpoint.model_copy(deep=True)
        if checkpoint is not None:
            self._logger.warning(
                f"Ignoring checkpoint for {checkpoint.repository} on {request.repository}"
            )
        return Checkpoint(repository=str(request.repository))

    async def _prepare(self, run: _Run) -> Optional[DeploymentResult]:
        """Obtain credentials and bind them to the checkpoint's user."""
        if run.request.oauth_code:
            broker = OAuthBroker(self._github_factory(None))
            step = ProvisioningStep(StepKind.AUTHORIZE)
            outcome = await self._attempt(
                run, step, lambda: broker.authorize(run.request.oauth_code)
            )
            if not outcome.ok:
                return self._settle(run, step, outcome)
            run.github_credential = outcome.output
            run.issued_credential = outcome.output
            run.checkpoint.oauth_nonce = None

        if run.github_credential is None:
            broker = OAuthBroker(self._github_factory(None))
            run.checkpoint.oauth_nonce = secrets.token_urlsafe(16)
            return self._suspend(
                run,
                SuspensionReason.AUTHORIZATION_REQUIRED,
                authorize_url=broker.authorize_url(self._codec.encode(run.checkpoint)),
            )
        if run.platform_credential is None:
            return self._suspend(run, SuspensionReason.PLATFORM_TOKEN_REQUIRED)

        run.github = self._github_factory(run.github_credential)
        run.services = self._build_services(run.github, self._fastly_factory(run.platform_credential))

        session_ref = self._vault.session_ref(run.github_credential)
        if run.checkpoint.session_ref and run.checkpoint.session_ref != session_ref:
            # new token after re-authorizing: accept only the same GitHub user
            step = ProvisioningStep(StepKind.AUTHORIZE)
            outcome = await self._attempt(
                run, step, lambda: run.services.broker.verify_github(run.github)
            )
            if not outcome.ok:
                return self._settle(run, step, outcome)
            if outcome.output != run.checkpoint.login:
                raise CheckpointError(
                    CheckpointError.Kind.SESSION_MISMATCH,
                    "This deployment was started by a different GitHub user",
                )
            run.checkpoint.session_ref = session_ref
        return None

    def _build_services(self, github: GitHubAPI, fastly: FastlyAPI) -> _Services:
        c = self._config
        return _Services(
            broker=OAuthBroker(github),
            forker=RepoForker(github, c.fork_poll_policy, sleep=self._sleep),
            parser=ManifestParser(),
            provisioner=ServiceProvisioner(fastly, c.domain_suffix, c.service_type),
            injector=SecretInjector(github, c.secret_name),
            activator=WorkflowActivator(github, c.workflow_id, c.manifest_path),
        )

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    async def _authorize(self, run: _Run) -> Optional[DeploymentResult]:
        services = run.services

        async def verify() -> str:
            login = await services.broker.verify_github(run.github)
            await services.broker.verify_platform(services.provisioner.fastly)
            return login

        step = ProvisioningStep(StepKind.AUTHORIZE)
        outcome = await self._attempt(run, step, verify)
        if not outcome.ok:
            return self._settle(run, step, outcome)
        run.checkpoint.login = outcome.output
        run.checkpoint.session_ref = self._vault.session_ref(run.github_credential)
        return None

    async def _fork(self, run: _Run) -> Optional[DeploymentResult]:
        step = ProvisioningStep(StepKind.FORK)
        outcome = await self._attempt(
            run,
            step,
            lambda: run.services.forker.fork(run.request.repository, run.checkpoint.login),
            resource_id=lambda result: str(result.repository),
        )
        if not outcome.ok:
            fork = getattr(outcome.error, "fork", None)
            if fork:
                run.checkpoint.fork = fork
            return self._settle(run, step, outcome)
        run.checkpoint.fork = outcome.resource_id
        run.checkpoint.fork_ready = True
        return None

    async def _parse_manifest(self, run: _Run) -> Optional[DeploymentResult]:
        step = ProvisioningStep(StepKind.PARSE_MANIFEST)
        outcome = await self._attempt(run, step, lambda: self._read_manifest(run))
        if not outcome.ok:
            return self._settle(run, step, outcome)
        run.manifest = outcome.output
        return None

    async def _create_service(self, run: _Run) -> Optional[DeploymentResult]:
        result = await self._require_inputs(run)
        if result is not None:
            return result

        step = ProvisioningStep(StepKind.CREATE_SERVICE)
        outcome = await self._attempt(
            run,
            step,
            lambda: run.services.provisioner.create_service(run.fork),
            resource_id=lambda service: service.id,
        )
        if not outcome.ok:
            return self._settle(run, step, outcome)
        service: ServiceInfo = outcome.output
        run.checkpoint.service_id = service.id
        run.checkpoint.service_version = service.version
        run.checkpoint.domain = service.domain
        return None

    async def _configure_resources(self, run: _Run) -> Optional[DeploymentResult]:
        result = await self._require_inputs(run)
        if result is not None:
            return result

        manifest = run.manifest
        provisioner = run.services.provisioner
        service = run.service
        done = set(run.checkpoint.configured)

        jobs: list[tuple[ProvisioningStep, str, Callable[[], Awaitable[object]]]] = []
        for i, backend in enumerate(manifest.backends):
            if backend.resource_name not in done:
                jobs.append((
                    ProvisioningStep.configure_backend(i),
                    backend.resource_name,
                    lambda b=backend: provisioner.configure_backend(service, b),
                ))
        for j, dictionary in enumerate(manifest.dictionaries):
            if dictionary.resource_name not in done:
                values = manifest.resolve_values(dictionary, run.request.inputs)
                jobs.append((
                    ProvisioningStep.configure_dictionary(j),
                    dictionary.resource_name,
                    lambda d=dictionary, v=values: self._fill_dictionary(run, d, v),
                ))

        slots = asyncio.Semaphore(self._config.resource_concurrency)

        async def bounded(step: ProvisioningStep, action) -> StepOutcome:
            async with slots:
                return await self._attempt(run, step, action)

        outcomes = await asyncio.gather(*(bounded(step, action) for step, _, action in jobs))

        failure: Optional[tuple[ProvisioningStep, StepOutcome]] = None
        for (step, resource_name, _), outcome in zip(jobs, outcomes):
            if outcome.ok:
                run.checkpoint.configured.append(resource_name)
            elif failure is None:
                failure = (step, outcome)
        if failure is not None:
            return self._settle(run, *failure)
        return None

    async def _fill_dictionary(
        self, run: _Run, dictionary: DictionarySpec, values: dict[str, str]
    ) -> str:
        provisioner = run.services.provisioner
        dictionary_id = await provisioner.configure_dictionary(run.service, dictionary)
        for key, value in values.items():
            await provisioner.set_dictionary_item(run.service, dictionary_id, key, value)
        return dictionary_id

    async def _inject_secret(self, run: _Run) -> Optional[DeploymentResult]:
        step = ProvisioningStep(StepKind.INJECT_SECRET)
        if not run.checkpoint.service_id:
            return self._fail(run, step, "No service exists yet, so no deploy credential was written")
        outcome = await self._attempt(
            run,
            step,
            lambda: run.services.injector.inject_deploy_credential(
                run.fork, run.platform_credential
            ),
        )
        if not outcome.ok:
            return self._settle(run, step, outcome)
        return None

    async def _enable_workflow(self, run: _Run) -> Optional[DeploymentResult]:
        step = ProvisioningStep(StepKind.ENABLE_WORKFLOW)
        outcome = await self._attempt(
            run,
            step,
            lambda: run.services.activator.activate(run.fork, run.checkpoint.service_id),
        )
        if not outcome.ok:
            return self._settle(run, step, outcome)
        return None

    # ------------------------------------------------------------------
    # Manifest helpers
    # ------------------------------------------------------------------

    async def _read_manifest(self, run: _Run) -> Manifest:
        path = self._config.manifest_path
        file = await run.github.get_file(str(run.fork), path)
        if file is None:
            raise ManifestError(
                ManifestError.Kind.MISSING_SETUP_SECTION,
                f"{run.fork} has no {path}, so it cannot be deployed",
            )
        return run.services.parser.parse(file.content)

    async def _require_inputs(self, run: _Run) -> Optional[DeploymentResult]:
        """Reload the manifest if resuming, then suspend while values are missing."""
        if run.manifest is None:
            step = ProvisioningStep(StepKind.PARSE_MANIFEST)
            outcome = await self._attempt(run, step, lambda: self._read_manifest(run))
            if not outcome.ok:
                return self._settle(run, step, outcome)
            run.manifest = outcome.output

        missing = run.manifest.required_inputs(
            run.request.inputs, skip=frozenset(run.checkpoint.configured)
        )
        if missing:
            return self._suspend(run, SuspensionReason.INPUT_REQUIRED, required_inputs=missing)
        return None

    # ------------------------------------------------------------------
    # Retry loop
    # ------------------------------------------------------------------

    async def _attempt(
        self,
        run: _Run,
        step: ProvisioningStep,
        action: Callable[[], Awaitable[object]],
        resource_id: Optional[Callable[[object], str]] = None,
    ) -> StepOutcome:
        """Run ``action`` under the retry policy and record a StepReport."""
        policy = self._config.retry_policy
        started = self._clock()
        await self._publish(events.STEP_STARTED, run, {"step": step.label})

        outcome = StepOutcome(OutcomeStatus.FATAL)
        attempts = 0
        for attempt in range(1, policy.max_attempts + 1):
            attempts = attempt
            try:
                output = await action()
            except Exception as exc:
                outcome = StepOutcome.from_error(exc)
                if isinstance(exc, QuickDeployError):
                    self._logger.warning(
                        f"{step.label} attempt {attempt}/{policy.max_attempts} failed "
                        f"({exc.kind.value}): {exc}"
                    )
                else:
                    self._logger.error(f"{step.label} raised unexpectedly: {exc}", exc_info=True)
                if outcome.status is OutcomeStatus.FATAL or attempt == policy.max_attempts:
                    break
                delay = policy.delay(attempt, getattr(exc, "retry_after", None))
                if self._clock() + delay > run.deadline - self._config.budget_reserve_seconds:
                    outcome.exhausted = False
                    break
                await self._sleep(delay)
            else:
                if resource_id is not None:
                    rid = resource_id(output)
                elif isinstance(output, str):
                    rid = output
                else:
                    rid = None
                outcome = StepOutcome.success(resource_id=rid, output=output)
                break
        outcome.attempts = attempts

        error = _describe(outcome.error) if outcome.error else None
        run.steps.append(
            StepReport(
                name=step.label,
                success=outcome.ok,
                attempts=attempts,
                duration_ms=int((self._clock() - started) * 1000),
                resource_id=outcome.resource_id,
                error=error,
            )
        )
        await self._publish(
            events.STEP_SUCCEEDED if outcome.ok else events.STEP_FAILED,
            run,
            {"step": step.label, "attempts": attempts, "error": error},
        )
        return outcome

    def _budget_exhausted(self, run: _Run) -> bool:
        return self._clock() > run.deadline - self._config.budget_reserve_seconds

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _settle(self, run: _Run, step: ProvisioningStep, outcome: StepOutcome) -> DeploymentResult:
        if outcome.status is OutcomeStatus.RETRYABLE and not outcome.exhausted:
            return self._suspend(run, SuspensionReason.BUDGET_EXHAUSTED)
        return self._fail(run, step, _describe(outcome.error), outcome.error)

    def _fail(
        self,
        run: _Run,
        step: ProvisioningStep,
        message: str,
        error: Optional[Exception] = None,
    ) -> DeploymentResult:
        run.checkpoint.failed_step = step.label
        return self._result(
            run,
            DeploymentState.FAILED,
            failed_step=step.label,
            error=f"{_step_title(step)} failed: {message}",
            error_kind=error.kind.value if isinstance(error, QuickDeployError) else None,
        )

    def _suspend(self, run: _Run, reason: SuspensionReason, **extra) -> DeploymentResult:
        return self._result(run, run.next_state, suspension=reason, **extra)

    def _complete(self, run: _Run) -> DeploymentResult:
        fork = run.checkpoint.fork
        return self._result(
            run,
            DeploymentState.COMPLETE,
            service_id=run.checkpoint.service_id,
            fork=fork,
            application_url=f"https://{run.checkpoint.domain}" if run.checkpoint.domain else None,
            actions_url=f"https://github.com/{fork}/actions",
        )

    def _result(self, run: _Run, state: DeploymentState, **extra) -> DeploymentResult:
        extra.setdefault("service_id", run.checkpoint.service_id)
        extra.setdefault("fork", run.checkpoint.fork)
        return DeploymentResult(
            state=state,
            checkpoint=run.checkpoint,
            checkpoint_token=self._codec.encode(run.checkpoint),
            steps=run.steps,
            issued_credential=run.issued_credential,
            **extra,
        )

    async def _publish(self, name: str, run: _Run, payload: dict[str, object]) -> None:
        metadata = EventMetadata(
            repository=str(run.request.repository),
            state=run.next_state.value,
        )
        await self._event_bus.publish(Event(name=name, payload=payload, metadata=metadata))


def _describe(error: Optional[Exception]) -> str:
    if isinstance(error, QuickDeployError):
        return str(error)
    if error is None:
        return "Unknown error"
    return f"unexpected {type(error).__name__}"


def _step_title(step: ProvisioningStep) -> str:
    title = step.kind.value.replace("_", " ").capitalize()
    return title if step.index is None else f"{title} #{step.index + 1}"


__all__ = ["Orchestrator", "OrchestratorConfig"]
