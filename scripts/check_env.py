"""Pre-deploy checks for the session service configuration.

Two commands are available:

``check``
    Loads ``AppSettings`` from the given ``.env`` file, resolves the session
    store backend and applies the production policy (HTTPS provider endpoints
    and redirect URI, a dedicated token encryption secret).

``ping-store``
    Runs ``check`` and then writes, reads back and deletes a short-lived key
    through the configured session store, so a wrong Redis URL or DynamoDB
    table is caught before the first login fails.

Example usages::

    python -m scripts.check_env check --env-file /opt/session-service/.env
    python -m scripts.check_env ping-store --env-file /opt/session-service/.env
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from pathlib import Path
from typing import List

from pydantic import ValidationError

from session_service.clients import KeyValueStore, StoreUnavailableError
from session_service.core.config import AppSettings, MisconfiguredError, _load_env_file
from session_service.dependencies import build_key_value_store

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORE_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path) -> AppSettings:
    """Load settings after exporting the supplied env file."""
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _policy_problems(settings: AppSettings) -> List[str]:
    """Return human readable reasons the settings are unsafe to deploy."""
    if not settings.is_production:
        return []

    problems = []
    endpoints = {
        "OAUTH_AUTHORIZE_URL": settings.oauth.authorize_url,
        "OAUTH_TOKEN_URL": settings.oauth.token_url,
        "OAUTH_REDIRECT_URI": settings.oauth.redirect_uri,
        "FRONTEND_BASE_URL": settings.frontend_base_url,
    }
    for name, url in endpoints.items():
        if url is not None and url.scheme != "https":
            problems.append(f"{name} must use https in production (got {url}).")

    if not settings.security.token_encryption_secret:
        problems.append(
            "TOKEN_ENCRYPTION_SECRET must be set in production; "
            "sessions would otherwise be sealed with the OAuth client secret."
        )
    return problems


async def _round_trip(store: KeyValueStore, key_prefix: str) -> bool:
    key = f"{key_prefix}healthcheck:{uuid.uuid4().hex}"
    marker = uuid.uuid4().hex.encode("ascii")
    try:
        await store.set(key, marker, ttl_seconds=30)
        echoed = await store.get(key)
        await store.delete(key)
    finally:
        close = getattr(store, "close", None)
        if close is not None:
            await close()
    return echoed == marker


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate session service settings before deploying."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("check", "Validate settings and the production policy."),
        ("ping-store", "Validate settings and round-trip a key through the store."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args.env_file)
        store = build_key_value_store(settings.session)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except MisconfiguredError as exc:
        print(f"Settings validation failed: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    problems = _policy_problems(settings)
    if problems:
        print("Production policy violations:", file=sys.stderr)
        for problem in problems:
            print(f"  - {problem}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    if args.command == "check":
        print("Settings OK.")
        return EXIT_OK

    try:
        matched = asyncio.run(_round_trip(store, settings.session.key_prefix))
    except StoreUnavailableError as exc:
        print(f"Session store unreachable: {exc}", file=sys.stderr)
        return EXIT_STORE_ERROR
    if not matched:
        print("Session store returned a different value than was written.", file=sys.stderr)
        return EXIT_STORE_ERROR

    print(f"Session store OK ({type(store).__name__}).")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
