"""
Deployment State Enum.

States of the provisioning state machine, in pipeline order.
"""
from enum import Enum


class DeploymentState(str, Enum):
    """Orchestrator states."""

    AUTHORIZING = "authorizing"
    FORKING = "forking"
    PARSING_MANIFEST = "parsing_manifest"
    CREATING_SERVICE = "creating_service"
    CONFIGURING_RESOURCES = "configuring_resources"
    INJECTING_SECRET = "injecting_secret"
    ENABLING_WORKFLOW = "enabling_workflow"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentState.COMPLETE, DeploymentState.FAILED)
