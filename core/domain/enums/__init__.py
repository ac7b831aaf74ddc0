from .deployment_state import DeploymentState
from .step_kind import StepKind

__all__ = ["DeploymentState", "StepKind"]
