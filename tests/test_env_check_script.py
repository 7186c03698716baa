"""Tests for the pre-deploy configuration check script."""

from __future__ import annotations

from pathlib import Path

import pytest

from scripts import check_env
from session_service.clients import LocalStore, StoreUnavailableError

MANAGED_ENV_KEYS = [
    "APP_ENV",
    "FRONTEND_BASE_URL",
    "OAUTH_AUTHORIZE_URL",
    "OAUTH_CLIENT_ID",
    "OAUTH_CLIENT_SECRET",
    "OAUTH_REDIRECT_URI",
    "OAUTH_TOKEN_URL",
    "SESSION_STORE_URL",
    "TOKEN_ENCRYPTION_SECRET",
]

BASE_ENV = {
    "OAUTH_CLIENT_ID": "abc",
    "OAUTH_CLIENT_SECRET": "secret",
    "OAUTH_REDIRECT_URI": "https://example.com/api/auth/callback",
}


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


@pytest.fixture(autouse=True)
def _clear_managed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in MANAGED_ENV_KEYS:
        # setenv first so keys loaded from the .env file are undone at teardown.
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)


class UnreachableStore(LocalStore):
    async def set(self, key, value, ttl_seconds=None):
        raise StoreUnavailableError("connection refused")


class ForgetfulStore(LocalStore):
    async def get(self, key):
        return None


@pytest.mark.parametrize("command", ["check", "ping-store"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"

    exit_code = check_env.main([command, "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_check_passes_for_development_settings(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, **BASE_ENV)

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_OK


def test_validation_failure_for_missing_required_values(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    _write_env(
        env_file,
        OAUTH_CLIENT_ID="abc",
        OAUTH_REDIRECT_URI="https://example.com/api/auth/callback",
    )

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_validation_failure_for_unsupported_store_url(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, **BASE_ENV, SESSION_STORE_URL="memcached://cache:11211")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_production_requires_https_token_endpoint(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _write_env(
        env_file,
        **BASE_ENV,
        APP_ENV="production",
        TOKEN_ENCRYPTION_SECRET="dedicated",
        OAUTH_TOKEN_URL="http://oauth.internal/token",
    )

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert "OAUTH_TOKEN_URL" in capsys.readouterr().err


def test_production_requires_dedicated_encryption_secret(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, **BASE_ENV, APP_ENV="production")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert "TOKEN_ENCRYPTION_SECRET" in capsys.readouterr().err


def test_production_settings_pass_policy(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    _write_env(
        env_file,
        **BASE_ENV,
        APP_ENV="production",
        TOKEN_ENCRYPTION_SECRET="dedicated",
        FRONTEND_BASE_URL="https://app.example.com",
    )

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_OK


def test_ping_store_round_trips_through_local_store(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, **BASE_ENV)

    exit_code = check_env.main(["ping-store", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_OK


@pytest.mark.parametrize("store_cls", [UnreachableStore, ForgetfulStore])
def test_ping_store_reports_broken_store(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, store_cls
) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, **BASE_ENV)
    monkeypatch.setattr(check_env, "build_key_value_store", lambda settings: store_cls())

    exit_code = check_env.main(["ping-store", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_STORE_ERROR
