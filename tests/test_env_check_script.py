"""Tests for the deployment pre-flight script."""

from __future__ import annotations

from pathlib import Path

import pytest

from scripts import check_env

MANAGED_ENV_KEYS = [
    "WEBFLOW_CLIENT_ID",
    "WEBFLOW_CLIENT_SECRET",
    "KV_BACKEND",
    "KV_SQLITE_PATH",
    "DYNAMODB_TABLE_NAME",
]


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_managed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so teardown also drops values the script loads from the file.
    for key in MANAGED_ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def _run(command: str, env_file: Path, hash_file: Path | None = None) -> int:
    argv = [command, "--env-file", str(env_file)]
    if hash_file is not None:
        argv.extend(["--hash-file", str(hash_file)])
    return check_env.main(argv)


@pytest.mark.parametrize("command", ["record", "verify", "check", "probe"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256" if command in {"record", "verify"} else None

    assert _run(command, env_file, hash_file) == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_changed_secret(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, WEBFLOW_CLIENT_ID="abc", WEBFLOW_CLIENT_SECRET="secret")

    assert _run("record", env_file, hash_file) == check_env.EXIT_OK
    assert hash_file.read_text(encoding="utf-8").strip()

    _clear_managed_env(monkeypatch)
    assert _run("verify", env_file, hash_file) == check_env.EXIT_OK

    _write_env(env_file, WEBFLOW_CLIENT_ID="abc", WEBFLOW_CLIENT_SECRET="rotated")
    _clear_managed_env(monkeypatch)
    assert _run("verify", env_file, hash_file) == check_env.EXIT_CHECKSUM_ERROR


def test_verify_without_baseline_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    _clear_managed_env(monkeypatch)
    _write_env(env_file, WEBFLOW_CLIENT_ID="abc", WEBFLOW_CLIENT_SECRET="secret")

    assert _run("verify", env_file, tmp_path / "missing.sha256") == check_env.EXIT_RUNTIME_ERROR


def test_validation_failure_for_missing_client_secret(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, WEBFLOW_CLIENT_ID="abc")

    assert _run("check", env_file) == check_env.EXIT_VALIDATION_ERROR


def test_dynamodb_backend_requires_table_name(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(
        env_file,
        WEBFLOW_CLIENT_ID="abc",
        WEBFLOW_CLIENT_SECRET="secret",
        KV_BACKEND="dynamodb",
    )

    assert _run("check", env_file) == check_env.EXIT_VALIDATION_ERROR


def test_probe_reaches_sqlite_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(
        env_file,
        WEBFLOW_CLIENT_ID="abc",
        WEBFLOW_CLIENT_SECRET="secret",
        KV_SQLITE_PATH=str(tmp_path / "probe" / "kv.db"),
    )

    assert _run("probe", env_file) == check_env.EXIT_OK
    assert (tmp_path / "probe" / "kv.db").exists()
