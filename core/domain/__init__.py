"""Domain layer - manifest entities, value objects, enums and errors."""

from .entities import BackendSpec, DictionaryItemSpec, DictionarySpec, InputKind, Manifest
from .enums import DeploymentState, StepKind
from .value_objects import Credential, RepositoryName

__all__ = [
    "BackendSpec",
    "Credential",
    "DeploymentState",
    "DictionaryItemSpec",
    "DictionarySpec",
    "InputKind",
    "Manifest",
    "RepositoryName",
    "StepKind",
]
