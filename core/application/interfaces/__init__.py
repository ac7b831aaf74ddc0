"""Application layer interfaces."""
from typing import Any, Optional, Protocol

from quickdeploy_sdk.github.client import RepositoryFile


class GitHubAPI(Protocol):
    """
    Contract for the source-control provider operations.

    Implemented by ``quickdeploy_sdk.github.GitHubClient``; tests use fakes.
    """

    def authorize_url(self, state: str) -> str:
        ...

    async def exchange_code(self, code: str) -> dict[str, Any]:
        ...

    async def get_user(self) -> dict[str, Any]:
        ...

    async def get_repository(self, nwo: str) -> Optional[dict[str, Any]]:
        ...

    async def generate_repository(
        self, template_nwo: str, owner: str, name: str
    ) -> dict[str, Any]:
        ...

    async def get_branch(self, nwo: str, branch: str) -> Optional[dict[str, Any]]:
        ...

    async def get_file(self, nwo: str, path: str) -> Optional[RepositoryFile]:
        ...

    async def put_file(
        self, nwo: str, file: RepositoryFile, content: str, message: str
    ) -> None:
        ...

    async def get_public_key(self, nwo: str) -> tuple[str, str]:
        ...

    async def put_secret(
        self, nwo: str, name: str, encrypted_value: str, key_id: str
    ) -> None:
        ...

    async def get_workflow(self, nwo: str, workflow_id: str) -> Optional[dict[str, Any]]:
        ...

    async def enable_workflow(self, nwo: str, workflow_id: str) -> None:
        ...


class FastlyAPI(Protocol):
    """
    Contract for the deployment platform operations.

    Implemented by ``quickdeploy_sdk.fastly.FastlyClient``; tests use fakes.
    """

    async def get_current_user(self) -> dict[str, Any]:
        ...

    async def find_service(self, name: str) -> Optional[dict[str, Any]]:
        ...

    async def create_service(self, name: str, service_type: str = "wasm") -> dict[str, Any]:
        ...

    async def get_domain(self, service_id: str, version: int, name: str) -> Optional[dict[str, Any]]:
        ...

    async def create_domain(self, service_id: str, version: int, name: str) -> dict[str, Any]:
        ...

    async def get_backend(self, service_id: str, version: int, name: str) -> Optional[dict[str, Any]]:
        ...

    async def create_backend(
        self, service_id: str, version: int, name: str, address: str, port: int
    ) -> dict[str, Any]:
        ...

    async def get_dictionary(self, service_id: str, version: int, name: str) -> Optional[dict[str, Any]]:
        ...

    async def create_dictionary(self, service_id: str, version: int, name: str) -> dict[str, Any]:
        ...

    async def upsert_dictionary_item(
        self, service_id: str, dictionary_id: str, key: str, value: str
    ) -> None:
        ...
