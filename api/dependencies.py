"""
FastAPI Dependencies.

Provides dependency injection for the orchestrator and its security helpers.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import aiohttp
from dotenv import load_dotenv

# Load environment variables ONCE before any settings objects are created
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

from core.infrastructure.security import CheckpointCodec, CredentialVault
from core.settings import AppSettings, get_app_settings
from orchestration import InMemoryEventBus, Orchestrator, create_default_orchestrator

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

_http_session: Optional[aiohttp.ClientSession] = None
_event_bus: Optional[InMemoryEventBus] = None
_orchestrator: Optional[Orchestrator] = None
_codec: Optional[CheckpointCodec] = None
_vault: Optional[CredentialVault] = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_settings() -> AppSettings:
    return get_app_settings()


async def get_http_session() -> aiohttp.ClientSession:
    global _http_session
    if _http_session is None or _http_session.closed:
        _http_session = aiohttp.ClientSession()
        logger.info("Created shared aiohttp session")
    return _http_session


def get_event_bus() -> InMemoryEventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = InMemoryEventBus()
        logger.info("Created InMemoryEventBus instance")
    return _event_bus


def get_checkpoint_codec() -> CheckpointCodec:
    global _codec
    if _codec is None:
        security = get_settings().security
        _codec = CheckpointCodec(security.secret_key, security.checkpoint_max_age_seconds)
    return _codec


def get_credential_vault() -> CredentialVault:
    global _vault
    if _vault is None:
        _vault = CredentialVault(get_settings().security.secret_key)
    return _vault


async def get_orchestrator() -> Orchestrator:
    global _orchestrator
    if _orchestrator is None:
        session = await get_http_session()
        _orchestrator = create_default_orchestrator(get_settings(), session, get_event_bus())
        logger.info("Created Orchestrator with GitHub and Fastly clients")
    return _orchestrator


# =============================================================================
# SHUTDOWN / RESET
# =============================================================================

async def close_http_session() -> None:
    global _http_session
    if _http_session is not None and not _http_session.closed:
        await _http_session.close()
        logger.info("Closed shared aiohttp session")
    _http_session = None


def reset_dependencies():
    global _http_session, _event_bus, _orchestrator, _codec, _vault

    _http_session = None
    _event_bus = None
    _orchestrator = None
    _codec = None
    _vault = None
    get_app_settings.cache_clear()

    logger.info("Dependencies reset")
