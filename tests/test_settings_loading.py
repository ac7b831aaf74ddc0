"""
Test settings loading from the environment.

Every key documented in .env.example must map onto exactly one settings
field, and the sample values must load without a ValidationError.
"""
from __future__ import annotations

from pathlib import Path
import re

import pytest
from pydantic import ValidationError

# Import api.dependencies so dotenv loads exactly once (canonical location).
import api.dependencies  # noqa: F401

from core.settings import SecuritySettings, get_app_settings

ENV_EXAMPLE = Path(__file__).resolve().parents[1] / ".env.example"


def _parse_env(env_path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in env_path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#") or "=" not in s:
            continue
        k, v = s.split("=", 1)
        k = k.strip()
        if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", k):
            values.setdefault(k, v.strip())
    return values


def _collect_alias_map(model) -> dict[str, str]:
    """Return map: ENV_ALIAS -> field_name for a Pydantic model."""
    return {
        field.alias: field_name
        for field_name, field in type(model).model_fields.items()
        if field.alias
    }


@pytest.fixture
def example_env(monkeypatch):
    values = _parse_env(ENV_EXAMPLE)
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    get_app_settings.cache_clear()
    yield values
    get_app_settings.cache_clear()


def test_every_env_key_is_mapped_and_non_none(example_env):
    settings = get_app_settings()
    modules = {
        "github": settings.github,
        "fastly": settings.fastly,
        "orchestration": settings.orchestration,
        "security": settings.security,
    }

    alias_to_locator: dict[str, tuple[str, str]] = {}
    for module_name, model in modules.items():
        for alias, field_name in _collect_alias_map(model).items():
            if alias in alias_to_locator:
                pytest.fail(f"Duplicate env alias mapped twice: {alias}")
            alias_to_locator[alias] = (module_name, field_name)

    missing = [k for k in example_env if k not in alias_to_locator]
    assert not missing, f"Unmapped env keys: {missing}"

    undocumented = [k for k in alias_to_locator if k not in example_env]
    assert not undocumented, f"Settings missing from .env.example: {undocumented}"

    for env_key in example_env:
        module_name, field_name = alias_to_locator[env_key]
        assert getattr(modules[module_name], field_name) is not None


def test_env_values_are_typed(example_env, monkeypatch):
    monkeypatch.setenv("QUICKDEPLOY_STEP_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("QUICKDEPLOY_REQUEST_BUDGET_SECONDS", "25.5")

    settings = get_app_settings()

    assert settings.orchestration.step_max_attempts == 5
    assert settings.orchestration.request_budget_seconds == 25.5
    assert settings.github.client_id == example_env["GITHUB_CLIENT_ID"]
    assert settings.security.github_cookie.startswith("__Secure-")


def test_short_secret_key_is_rejected(example_env, monkeypatch):
    monkeypatch.setenv("QUICKDEPLOY_SECRET_KEY", "too-short")

    with pytest.raises(ValidationError):
        get_app_settings()


def test_settings_accept_field_names():
    security = SecuritySettings(secret_key="x" * 32, checkpoint_max_age_seconds=60)

    assert security.checkpoint_max_age_seconds == 60
