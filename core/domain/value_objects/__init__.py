"""Domain value objects."""

from quickdeploy_sdk.credentials import Credential

from .repository_name import RepositoryName

__all__ = ["Credential", "RepositoryName"]
