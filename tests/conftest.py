"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from cmp_backend.clients import SQLiteKVStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def kv_store(tmp_path) -> SQLiteKVStore:
    """Fresh SQLite key-value store per test."""
    return SQLiteKVStore(str(tmp_path / "kv.db"))
