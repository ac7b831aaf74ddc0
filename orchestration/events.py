"""Deployment progress events published by the orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

DEPLOYMENT_STARTED = "deployment.started"
STEP_STARTED = "deployment.step.started"
STEP_SUCCEEDED = "deployment.step.succeeded"
STEP_FAILED = "deployment.step.failed"
DEPLOYMENT_FINISHED = "deployment.finished"


@dataclass(frozen=True)
class EventMetadata:
    """Where the deployment stood when the event was raised."""

    repository: str
    state: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Event:
    name: str
    payload: dict[str, object]
    metadata: EventMetadata

    @property
    def step(self) -> Optional[str]:
        """Step label for ``deployment.step.*`` events."""
        value = self.payload.get("step")
        return str(value) if value is not None else None

    def matches(self, pattern: str) -> bool:
        """``*`` matches everything, ``prefix.*`` matches a family of names."""
        if pattern == "*" or pattern == self.name:
            return True
        return pattern.endswith(".*") and self.name.startswith(pattern[:-1])
