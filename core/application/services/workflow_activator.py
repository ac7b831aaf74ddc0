"""
Workflow activator.

Enables the fork's deploy workflow and pins the created service id into its
fastly.toml. The commit is what triggers the first deploy run.
"""
import logging
from typing import Optional

import tomlkit

from core.application.interfaces import GitHubAPI
from core.domain.errors import WorkflowError
from core.domain.value_objects import RepositoryName
from quickdeploy_sdk.errors import ApiError
from quickdeploy_sdk.github.client import RepositoryFile

logger = logging.getLogger(__name__)

COMMIT_MESSAGE = "Service provisioning via Quick Deploy"


def pin_service_id(manifest_text: str, service_id: str) -> Optional[str]:
    """Return the manifest with ``service_id`` set, or None if it already is."""
    document = tomlkit.parse(manifest_text)
    if document.get("service_id") == service_id:
        return None
    document["service_id"] = service_id
    return tomlkit.dumps(document)


class WorkflowActivator:
    """Turns a provisioned fork into an auto-deploying one."""

    def __init__(
        self,
        github: GitHubAPI,
        workflow_id: str = "deploy.yml",
        manifest_path: str = "fastly.toml",
    ):
        self.github = github
        self.workflow_id = workflow_id
        self.manifest_path = manifest_path

    async def activate(self, repository: RepositoryName, service_id: str) -> None:
        nwo = str(repository)
        try:
            await self._enable(nwo)
            await self._pin(nwo, service_id)
        except ApiError as exc:
            if exc.status in (401, 403):
                raise WorkflowError(
                    WorkflowError.Kind.PERMISSION_DENIED,
                    f"Not allowed to manage workflows on {nwo}",
                ) from exc
            raise

    async def _enable(self, nwo: str) -> None:
        workflow = await self.github.get_workflow(nwo, self.workflow_id)
        if workflow is None:
            raise WorkflowError(
                WorkflowError.Kind.NOT_FOUND,
                f"{nwo} has no {self.workflow_id} workflow to enable",
            )
        if workflow.get("state") == "active":
            return
        await self.github.enable_workflow(nwo, self.workflow_id)
        logger.info(f"Enabled {self.workflow_id} on {nwo}")

    async def _pin(self, nwo: str, service_id: str) -> None:
        file: Optional[RepositoryFile] = await self.github.get_file(nwo, self.manifest_path)
        if file is None:
            raise WorkflowError(
                WorkflowError.Kind.NOT_FOUND, f"{nwo} no longer has {self.manifest_path}"
            )
        updated = pin_service_id(file.content, service_id)
        if updated is None:
            return
        await self.github.put_file(nwo, file, updated, COMMIT_MESSAGE)
        logger.info(f"Pinned service {service_id} in {nwo}/{self.manifest_path}")
