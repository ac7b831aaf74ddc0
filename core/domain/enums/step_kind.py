"""
Step Kind Enum.

Tags of the closed ProvisioningStep variant.
"""
from enum import Enum


class StepKind(str, Enum):
    """Provisioning step tags."""

    AUTHORIZE = "authorize"
    FORK = "fork"
    PARSE_MANIFEST = "parse_manifest"
    CREATE_SERVICE = "create_service"
    CONFIGURE_BACKEND = "configure_backend"
    CONFIGURE_DICTIONARY = "configure_dictionary"
    INJECT_SECRET = "inject_secret"
    ENABLE_WORKFLOW = "enable_workflow"
