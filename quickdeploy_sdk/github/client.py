"""
GitHub REST adapter.

Covers the OAuth code exchange, template generation, repository contents,
Actions secrets and workflow enablement. All calls go through ``BaseApiClient``
so timeouts and rate limits surface as ``NetworkError``.
"""
import base64
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

import aiohttp

from quickdeploy_sdk.credentials import Credential
from quickdeploy_sdk.http import BaseApiClient

ACCEPT = "application/vnd.github+json"
OAUTH_SCOPES = "repo workflow"


@dataclass(frozen=True)
class RepositoryFile:
    """A decoded file from the contents API."""

    path: str
    content: str
    sha: str


class GitHubClient(BaseApiClient):
    """Async GitHub API client."""

    service_name = "GitHub"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        api_url: str = "https://api.github.com",
        oauth_url: str = "https://github.com",
        client_id: str = "",
        client_secret: str = "",
        user_agent: str = "Quick Deploy",
        timeout_seconds: float = 10.0,
        credential: Optional[Credential] = None,
    ) -> None:
        super().__init__(session, api_url, timeout_seconds)
        self._oauth_url = oauth_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._user_agent = user_agent
        self._credential = credential

    def with_credential(self, credential: Optional[Credential]) -> "GitHubClient":
        """Return a client sharing this session but acting as another user."""
        clone = GitHubClient(
            self._session,
            api_url=self._base_url,
            oauth_url=self._oauth_url,
            client_id=self._client_id,
            client_secret=self._client_secret,
            user_agent=self._user_agent,
            credential=credential,
        )
        clone._timeout = self._timeout
        return clone

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": self._user_agent, "Accept": ACCEPT}
        if self._credential is not None:
            headers["Authorization"] = self._credential.use(lambda raw: f"token {raw}")
        return headers

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def authorize_url(self, state: str) -> str:
        query = urlencode(
            {"client_id": self._client_id, "scope": OAUTH_SCOPES, "state": state}
        )
        return f"{self._oauth_url}/login/oauth/authorize?{query}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """Exchange an authorization code; returns the raw token payload."""
        reply = await self._request(
            "POST",
            "/login/oauth/access_token",
            url=f"{self._oauth_url}/login/oauth/access_token",
            json={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "code": code,
            },
            headers={"Accept": "application/json"},
        )
        return reply.body if isinstance(reply.body, dict) else {}

    # ------------------------------------------------------------------
    # Users and repositories
    # ------------------------------------------------------------------

    async def get_user(self) -> dict[str, Any]:
        reply = await self._request("GET", "/user")
        return reply.body

    async def get_repository(self, nwo: str) -> Optional[dict[str, Any]]:
        reply = await self._request("GET", f"/repos/{nwo}", allow_not_found=True)
        return reply.body if reply else None

    async def generate_repository(
        self, template_nwo: str, owner: str, name: str
    ) -> dict[str, Any]:
        reply = await self._request(
            "POST",
            f"/repos/{template_nwo}/generate",
            json={"owner": owner, "name": name, "include_all_branches": False},
            expected=(201,),
        )
        return reply.body

    async def get_branch(self, nwo: str, branch: str) -> Optional[dict[str, Any]]:
        reply = await self._request(
            "GET", f"/repos/{nwo}/branches/{branch}", allow_not_found=True
        )
        return reply.body if reply else None

    # ------------------------------------------------------------------
    # Contents
    # ------------------------------------------------------------------

    async def get_file(self, nwo: str, path: str) -> Optional[RepositoryFile]:
        reply = await self._request(
            "GET", f"/repos/{nwo}/contents/{path}", allow_not_found=True
        )
        if reply is None:
            return None
        raw = reply.body["content"].replace("\n", "")
        return RepositoryFile(
            path=reply.body["path"],
            content=base64.b64decode(raw).decode("utf-8"),
            sha=reply.body["sha"],
        )

    async def put_file(
        self, nwo: str, file: RepositoryFile, content: str, message: str
    ) -> None:
        await self._request(
            "PUT",
            f"/repos/{nwo}/contents/{file.path}",
            json={
                "message": message,
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "sha": file.sha,
            },
            expected=(200, 201),
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def get_public_key(self, nwo: str) -> tuple[str, str]:
        """Return (key_id, base64 key) for the repository's Actions secrets."""
        reply = await self._request("GET", f"/repos/{nwo}/actions/secrets/public-key")
        return reply.body["key_id"], reply.body["key"]

    async def put_secret(
        self, nwo: str, name: str, encrypted_value: str, key_id: str
    ) -> None:
        await self._request(
            "PUT",
            f"/repos/{nwo}/actions/secrets/{name}",
            json={"encrypted_value": encrypted_value, "key_id": key_id},
            expected=(201, 204),
        )

    async def get_workflow(self, nwo: str, workflow_id: str) -> Optional[dict[str, Any]]:
        reply = await self._request(
            "GET", f"/repos/{nwo}/actions/workflows/{workflow_id}", allow_not_found=True
        )
        return reply.body if reply else None

    async def enable_workflow(self, nwo: str, workflow_id: str) -> None:
        await self._request(
            "PUT",
            f"/repos/{nwo}/actions/workflows/{workflow_id}/enable",
            expected=(204,),
        )
