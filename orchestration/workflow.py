"""Workflow definitions - RetryPolicy and the fixed provisioning pipeline."""

from dataclasses import dataclass
from typing import Optional

from core.domain.enums import DeploymentState

# Non-terminal states in execution order; Checkpoint.last_completed indexes this.
PIPELINE: tuple[DeploymentState, ...] = (
    DeploymentState.AUTHORIZING,
    DeploymentState.FORKING,
    DeploymentState.PARSING_MANIFEST,
    DeploymentState.CREATING_SERVICE,
    DeploymentState.CONFIGURING_RESOURCES,
    DeploymentState.INJECTING_SECRET,
    DeploymentState.ENABLING_WORKFLOW,
)


def pipeline_index(state: DeploymentState) -> int:
    return PIPELINE.index(state)


@dataclass
class RetryPolicy:
    """Retry policy for provisioning steps."""

    max_attempts: int = 3
    backoff_seconds: float = 0.0
    backoff_factor: float = 2.0
    max_backoff_seconds: float = 8.0

    def delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Sleep before retrying after failed ``attempt`` (1-based)."""
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.max_backoff_seconds)
        delay = self.backoff_seconds * (self.backoff_factor ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)
