"""Async REST adapters for GitHub and Fastly used by Quick Deploy."""

from quickdeploy_sdk.errors import ApiError, NetworkError, QuickDeployError

__all__ = ["ApiError", "NetworkError", "QuickDeployError"]
