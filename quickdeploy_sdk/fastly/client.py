"""
Fastly API adapter.

Service, domain, backend, dictionary and dictionary-item endpoints used to
provision a Compute service. Resources hang off a service version; new
services start with an editable version 1.
"""
from typing import Any, Optional
from urllib.parse import quote

import aiohttp

from quickdeploy_sdk.credentials import Credential
from quickdeploy_sdk.http import BaseApiClient


class FastlyClient(BaseApiClient):
    """Async Fastly API client."""

    service_name = "Fastly"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        api_url: str = "https://api.fastly.com",
        user_agent: str = "Quick Deploy",
        timeout_seconds: float = 10.0,
        credential: Optional[Credential] = None,
    ) -> None:
        super().__init__(session, api_url, timeout_seconds)
        self._user_agent = user_agent
        self._credential = credential

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": self._user_agent, "Accept": "application/json"}
        if self._credential is not None:
            headers["Fastly-Key"] = self._credential.use(str)
        return headers

    async def get_current_user(self) -> dict[str, Any]:
        reply = await self._request("GET", "/current_user")
        return reply.body

    # ------------------------------------------------------------------
    # Services and domains
    # ------------------------------------------------------------------

    async def find_service(self, name: str) -> Optional[dict[str, Any]]:
        reply = await self._request(
            "GET", "/service/search", params={"name": name}, allow_not_found=True
        )
        return reply.body if reply else None

    async def create_service(self, name: str, service_type: str = "wasm") -> dict[str, Any]:
        reply = await self._request(
            "POST", "/service", json={"name": name, "type": service_type}
        )
        return reply.body

    async def get_domain(self, service_id: str, version: int, name: str) -> Optional[dict[str, Any]]:
        reply = await self._request(
            "GET",
            f"/service/{service_id}/version/{version}/domain/{quote(name, safe='')}",
            allow_not_found=True,
        )
        return reply.body if reply else None

    async def create_domain(self, service_id: str, version: int, name: str) -> dict[str, Any]:
        reply = await self._request(
            "POST", f"/service/{service_id}/version/{version}/domain", json={"name": name}
        )
        return reply.body

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------

    async def get_backend(self, service_id: str, version: int, name: str) -> Optional[dict[str, Any]]:
        reply = await self._request(
            "GET",
            f"/service/{service_id}/version/{version}/backend/{quote(name, safe='')}",
            allow_not_found=True,
        )
        return reply.body if reply else None

    async def create_backend(
        self, service_id: str, version: int, name: str, address: str, port: int
    ) -> dict[str, Any]:
        reply = await self._request(
            "POST",
            f"/service/{service_id}/version/{version}/backend",
            json={"name": name, "address": address, "port": port},
        )
        return reply.body

    # ------------------------------------------------------------------
    # Dictionaries
    # ------------------------------------------------------------------

    async def get_dictionary(self, service_id: str, version: int, name: str) -> Optional[dict[str, Any]]:
        reply = await self._request(
            "GET",
            f"/service/{service_id}/version/{version}/dictionary/{quote(name, safe='')}",
            allow_not_found=True,
        )
        return reply.body if reply else None

    async def create_dictionary(self, service_id: str, version: int, name: str) -> dict[str, Any]:
        reply = await self._request(
            "POST",
            f"/service/{service_id}/version/{version}/dictionary",
            json={"name": name},
        )
        return reply.body

    async def upsert_dictionary_item(
        self, service_id: str, dictionary_id: str, key: str, value: str
    ) -> None:
        await self._request(
            "PUT",
            f"/service/{service_id}/dictionary/{dictionary_id}/item/{quote(key, safe='')}",
            json={"item_value": value},
        )
