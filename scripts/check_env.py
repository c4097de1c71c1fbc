"""Pre-flight checks for a consent backend deployment.

Commands:

``check``
    Load ``AppSettings`` from the given ``.env`` file and report missing or
    malformed values (Webflow credentials, storage backend selection).
``record`` / ``verify``
    Store, then later compare, a SHA256 baseline of the ``.env`` file so an
    unexpected edit is caught before the service restarts with new secrets.
``probe``
    Open the configured key-value backend and list a single key, proving the
    SQLite file or DynamoDB table is reachable with the current credentials.

Example usages::

    python -m scripts.check_env record --env-file /opt/consent-backend/.env \
        --hash-file /opt/consent-backend/.env.sha256

    python -m scripts.check_env verify --env-file /opt/consent-backend/.env \
        --hash-file /opt/consent-backend/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from cmp_backend.clients import DynamoDBKVStore, SQLiteKVStore
from cmp_backend.core.config import AppSettings, _load_env_file
from cmp_backend.core.errors import StoreUnavailable
from cmp_backend.core.logging import configure_logging

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_STORE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Populate the environment from ``env_file`` and build the settings."""
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    if settings.storage.backend == "dynamodb" and not settings.storage.dynamodb_table_name:
        raise ValueError("KV_BACKEND=dynamodb requires DYNAMODB_TABLE_NAME.")
    return settings


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Baseline for {env_file} written to {hash_file}")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"No baseline at {hash_file}; run the 'record' command first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment file matches its baseline.")
        return EXIT_OK

    print(
        f"{env_file} changed since the baseline was recorded "
        f"(expected {expected}, found {actual}).",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _probe_store(settings: AppSettings) -> int:
    storage = settings.storage
    try:
        if storage.backend == "dynamodb":
            store = DynamoDBKVStore(storage)
        else:
            store = SQLiteKVStore(storage.sqlite_path)
        store.list(limit=1)
    except StoreUnavailable as exc:
        print(f"{storage.backend} store unreachable: {exc.__cause__!r}", file=sys.stderr)
        return EXIT_STORE_ERROR
    print(f"{storage.backend} store reachable.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate consent backend settings and storage."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_env_file(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Environment file to validate (default: ./.env).",
        )

    for name, help_text in (
        ("record", "Validate settings and write the checksum baseline."),
        ("verify", "Validate settings and compare against the checksum baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        add_env_file(subparser)
        subparser.add_argument("--hash-file", required=True, type=Path)

    add_env_file(subparsers.add_parser("check", help="Validate settings only."))
    add_env_file(
        subparsers.add_parser("probe", help="Validate settings and reach the KV store.")
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            f"Settings validation failed:\n{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except ValueError as exc:
        print(f"Settings validation failed: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    configure_logging(settings.log_level)

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
        "probe": lambda: _probe_store(settings),
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
