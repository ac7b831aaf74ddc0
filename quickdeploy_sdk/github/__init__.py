from quickdeploy_sdk.github.client import GitHubClient, RepositoryFile

__all__ = ["GitHubClient", "RepositoryFile"]
