"""
Repository forker.

Creates the user's copy of a template repository and waits until its default
branch can be read. Re-running finds the existing copy instead of creating a
second one.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from core.application.interfaces import GitHubAPI
from core.domain.errors import ForkError
from core.domain.value_objects import RepositoryName
from quickdeploy_sdk.errors import ApiError, NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForkResult:
    """Location of the ready-to-read copy."""

    repository: RepositoryName
    default_branch: str
    created: bool


@dataclass(frozen=True)
class ForkPollPolicy:
    """Bounds on waiting for a new repository's content."""

    max_attempts: int = 10
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 5.0
    max_total_seconds: float = 30.0

    def delays(self):
        """Yield the sleep before each re-check, stopping at the total ceiling."""
        waited = 0.0
        for attempt in range(self.max_attempts - 1):
            delay = min(self.base_delay_seconds * (2 ** attempt), self.max_delay_seconds)
            if waited + delay > self.max_total_seconds:
                return
            waited += delay
            yield delay


class RepoForker:
    """Generates repositories from templates into the user's namespace."""

    def __init__(
        self,
        github: GitHubAPI,
        poll_policy: ForkPollPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.github = github
        self.poll_policy = poll_policy or ForkPollPolicy()
        self._sleep = sleep

    async def fork(self, template: RepositoryName, owner: str) -> ForkResult:
        """
        Locate or create ``owner/<template name>`` and wait for it.

        Raises:
            ForkError: NOT_FOUND, NOT_A_TEMPLATE, NAME_TAKEN, FORBIDDEN,
                RATE_LIMITED or TIMEOUT
        """
        target = RepositoryName(owner=owner, name=template.name)

        existing = await self._existing_copy(template, target)
        created = False
        if existing is None:
            try:
                existing = await self._generate(template, target)
                created = True
            except ForkError as exc:
                if exc.kind is not ForkError.Kind.ALREADY_FORKED:
                    raise
                logger.info(f"{target} appeared while forking, reusing it")
                existing = await self._existing_copy(template, target)
                if existing is None:
                    raise ForkError(
                        ForkError.Kind.NAME_TAKEN,
                        f"{target} already exists but could not be read",
                    ) from exc
        else:
            logger.info(f"{target} was already generated from {template}, reusing it")

        default_branch = existing.get("default_branch") or "main"
        await self._wait_until_ready(target, default_branch)
        return ForkResult(repository=target, default_branch=default_branch, created=created)

    async def _existing_copy(self, template: RepositoryName, target: RepositoryName):
        repo = await self.github.get_repository(str(target))
        if repo is None:
            return None
        source = (repo.get("template_repository") or {}).get("full_name", "")
        if source.lower() != str(template).lower():
            raise ForkError(
                ForkError.Kind.NAME_TAKEN,
                f"{target} already exists and was not created from {template}",
            )
        return repo

    async def _generate(self, template: RepositoryName, target: RepositoryName) -> dict:
        source = await self.github.get_repository(str(template))
        if source is None:
            raise ForkError(ForkError.Kind.NOT_FOUND, f"No repository was found at {template}")
        if not source.get("is_template"):
            raise ForkError(
                ForkError.Kind.NOT_A_TEMPLATE,
                f"{template} is not a template repository, so it cannot be deployed",
            )

        try:
            repo = await self.github.generate_repository(
                str(template), target.owner, target.name
            )
        except NetworkError as exc:
            if exc.kind is NetworkError.Kind.RATE_LIMITED:
                raise ForkError(
                    ForkError.Kind.RATE_LIMITED,
                    "GitHub is rate limiting repository creation",
                    retry_after=exc.retry_after,
                ) from exc
            raise
        except ApiError as exc:
            if exc.status == 422:
                raise ForkError(
                    ForkError.Kind.ALREADY_FORKED, f"{target} already exists"
                ) from exc
            if exc.status in (401, 403, 404):
                raise ForkError(
                    ForkError.Kind.FORBIDDEN,
                    f"Not allowed to create {target} from {template}",
                ) from exc
            raise

        logger.info(f"Generated {target} from {template}")
        return repo

    async def _wait_until_ready(self, target: RepositoryName, branch: str) -> None:
        if await self.github.get_branch(str(target), branch) is not None:
            return
        for delay in self.poll_policy.delays():
            await self._sleep(delay)
            if await self.github.get_branch(str(target), branch) is not None:
                return
        raise ForkError(
            ForkError.Kind.TIMEOUT,
            f"{target} was created but its {branch} branch is not ready yet",
            fork=str(target),
        )
