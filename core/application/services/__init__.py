"""Application services - one per provisioning component."""
from .manifest_parser import ManifestParser
from .oauth_broker import OAuthBroker
from .repo_forker import ForkPollPolicy, ForkResult, RepoForker
from .secret_injector import SecretInjector
from .service_provisioner import ServiceInfo, ServiceProvisioner
from .workflow_activator import WorkflowActivator

__all__ = [
    "ForkPollPolicy",
    "ForkResult",
    "ManifestParser",
    "OAuthBroker",
    "RepoForker",
    "SecretInjector",
    "ServiceInfo",
    "ServiceProvisioner",
    "WorkflowActivator",
]
