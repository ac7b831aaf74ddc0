"""
Shared aiohttp base client.

Maps transport failures and throttling replies onto ``NetworkError`` so every
adapter honours the same timeout and rate-limit contract.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import aiohttp

from quickdeploy_sdk.errors import ApiError, NetworkError
from quickdeploy_sdk.logging import get_logger

logger = get_logger("quickdeploy_sdk.http")


@dataclass
class ApiResponse:
    """Decoded upstream reply."""

    status: int
    body: Any
    headers: Mapping[str, str] = field(default_factory=dict)


class BaseApiClient:
    """
    Minimal JSON-over-HTTP client bound to one base URL.

    The session is owned by the caller; one session is opened per inbound
    request and shared by both adapters.
    """

    service_name = "upstream"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _headers(self) -> dict[str, str]:
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        params: Optional[Mapping[str, str]] = None,
        expected: Iterable[int] = (200,),
        allow_not_found: bool = False,
        headers: Optional[Mapping[str, str]] = None,
        url: Optional[str] = None,
    ) -> Optional[ApiResponse]:
        """
        Send one request and return the decoded reply.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            json: Optional JSON body
            params: Optional query parameters
            expected: Status codes treated as success
            allow_not_found: Return None on 404 instead of raising
            headers: Extra headers merged over the client defaults
            url: Absolute URL overriding base URL + path

        Returns:
            ApiResponse, or None for an allowed 404

        Raises:
            NetworkError: timeout, connection failure, throttling or 5xx
            ApiError: any other unexpected status
        """
        target = url or f"{self._base_url}{path}"
        merged = self._headers()
        if headers:
            merged.update(headers)

        try:
            async with self._session.request(
                method,
                target,
                json=json,
                params=params,
                headers=merged,
                timeout=self._timeout,
            ) as response:
                body = await self._decode(response)
                reply = ApiResponse(
                    status=response.status, body=body, headers=dict(response.headers)
                )
        except asyncio.TimeoutError as exc:
            raise NetworkError(
                NetworkError.Kind.TIMEOUT,
                f"{self.service_name} did not answer {method} {path} in time",
            ) from exc
        except aiohttp.ClientConnectionError as exc:
            raise NetworkError(
                NetworkError.Kind.UPSTREAM_UNAVAILABLE,
                f"Could not reach {self.service_name}: {exc}",
            ) from exc

        if reply.status == 404 and allow_not_found:
            return None

        self._raise_for_throttling(method, path, reply)

        if reply.status not in tuple(expected):
            raise ApiError(
                reply.status,
                f"{self.service_name} rejected {method} {path} "
                f"({reply.status}): {self._error_message(reply.body)}",
                body=reply.body,
            )
        return reply

    @staticmethod
    async def _decode(response: aiohttp.ClientResponse) -> Any:
        if response.status == 204:
            return None
        text = await response.text()
        if not text:
            return None
        if "json" in response.headers.get("Content-Type", ""):
            return await response.json(content_type=None)
        return text

    def _raise_for_throttling(self, method: str, path: str, reply: ApiResponse) -> None:
        headers = {k.lower(): v for k, v in reply.headers.items()}
        exhausted = reply.status == 403 and headers.get("x-ratelimit-remaining") == "0"
        if reply.status == 429 or exhausted:
            raise NetworkError(
                NetworkError.Kind.RATE_LIMITED,
                f"{self.service_name} rate limit reached on {method} {path}",
                retry_after=retry_after_seconds(headers),
            )
        if reply.status >= 500:
            raise NetworkError(
                NetworkError.Kind.UPSTREAM_UNAVAILABLE,
                f"{self.service_name} failed {method} {path} with {reply.status}",
            )

    @staticmethod
    def _error_message(body: Any) -> str:
        if isinstance(body, dict):
            for key in ("message", "msg", "detail", "error_description", "error"):
                if body.get(key):
                    return str(body[key])
        return str(body)[:200] if body else "no details"


def retry_after_seconds(headers: Mapping[str, str]) -> Optional[float]:
    """Read a retry hint from Retry-After or X-RateLimit-Reset (epoch seconds)."""
    value = headers.get("retry-after")
    if value:
        try:
            return max(float(value), 0.0)
        except ValueError:
            return None
    reset = headers.get("x-ratelimit-reset")
    if reset:
        try:
            return max(float(reset) - time.time(), 0.0)
        except ValueError:
            return None
    return None
