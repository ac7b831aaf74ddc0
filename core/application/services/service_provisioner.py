"""
Service provisioner.

Creates the Fastly service for a forked repository and realizes the
backends and dictionaries its manifest declares. Every create is preceded by a
lookup of the same logical name, so re-running after a partial failure reuses
what already exists.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass

from core.application.interfaces import FastlyAPI
from core.domain.entities.manifest import BackendSpec, DictionarySpec
from core.domain.errors import ProvisionError
from core.domain.value_objects import RepositoryName
from quickdeploy_sdk.errors import ApiError

logger = logging.getLogger(__name__)

_QUOTA_MARKERS = ("limit", "exceed", "quota", "maximum")


@dataclass(frozen=True)
class ServiceInfo:
    """Created (or found) Fastly service."""

    id: str
    version: int
    domain: str


def service_name(fork: RepositoryName) -> str:
    return f"{fork} via Quick Deploy"


class ServiceProvisioner:
    """Idempotent Fastly resource creation."""

    def __init__(
        self,
        fastly: FastlyAPI,
        domain_suffix: str = "edgecompute.app",
        service_type: str = "wasm",
    ):
        self.fastly = fastly
        self.domain_suffix = domain_suffix
        self.service_type = service_type

    async def create_service(self, fork: RepositoryName) -> ServiceInfo:
        name = service_name(fork)
        with _translate(f"service {name!r}"):
            service = await self.fastly.find_service(name)
            if service is None:
                service = await self.fastly.create_service(name, self.service_type)
                logger.info(f"Created service {service['id']} for {fork}")
            else:
                logger.info(f"Reusing service {service['id']} for {fork}")

        info = ServiceInfo(
            id=service["id"],
            version=_draft_version(service),
            domain=f"{fork.slug}.{self.domain_suffix}",
        )

        with _translate(f"domain {info.domain!r}"):
            if await self.fastly.get_domain(info.id, info.version, info.domain) is None:
                await self.fastly.create_domain(info.id, info.version, info.domain)
                logger.info(f"Created domain {info.domain}")
        return info

    async def configure_backend(self, service: ServiceInfo, spec: BackendSpec) -> str:
        """Ensure ``spec`` exists on the service; returns the backend name."""
        with _translate(f"backend {spec.name!r}", backend=True):
            existing = await self.fastly.get_backend(service.id, service.version, spec.name)
            if existing is None:
                await self.fastly.create_backend(
                    service.id, service.version, spec.name, spec.address, spec.port
                )
                logger.info(f"Created backend {spec.name} -> {spec.address}:{spec.port}")
        return spec.name

    async def configure_dictionary(self, service: ServiceInfo, spec: DictionarySpec) -> str:
        """Ensure the dictionary exists on the service; returns its id."""
        with _translate(f"dictionary {spec.name!r}"):
            existing = await self.fastly.get_dictionary(service.id, service.version, spec.name)
            if existing is None:
                existing = await self.fastly.create_dictionary(
                    service.id, service.version, spec.name
                )
                logger.info(f"Created dictionary {spec.name}")
        return existing["id"]

    async def set_dictionary_item(
        self, service: ServiceInfo, dictionary_id: str, key: str, value: str
    ) -> None:
        # value may be a secret: never include it in messages
        with _translate(f"dictionary item {key!r}"):
            await self.fastly.upsert_dictionary_item(service.id, dictionary_id, key, value)


def _draft_version(service: dict) -> int:
    versions = service.get("versions") or []
    numbers = [v.get("number") for v in versions if isinstance(v, dict)]
    numbers = [n for n in numbers if isinstance(n, int)]
    return min(numbers) if numbers else 1


def _error_detail(exc: ApiError) -> str:
    body = exc.body
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("msg") or body.get("message") or exc.message)
    return exc.message


@contextmanager
def _translate(resource: str, backend: bool = False):
    """Map Fastly ApiError replies onto ProvisionError for one resource."""
    try:
        yield
    except ApiError as exc:
        detail = _error_detail(exc)
        if exc.status == 409:
            kind = ProvisionError.Kind.CONFLICT
        elif exc.status in (401, 403):
            kind = ProvisionError.Kind.UNAUTHORIZED
        elif exc.status == 400 and any(m in detail.lower() for m in _QUOTA_MARKERS):
            kind = ProvisionError.Kind.QUOTA_EXCEEDED
        elif exc.status == 400 and backend:
            kind = ProvisionError.Kind.INVALID_HOST
        else:
            kind = ProvisionError.Kind.INVALID_REQUEST
        raise ProvisionError(kind, f"Fastly refused {resource}: {detail}") from exc
