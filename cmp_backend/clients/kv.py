"""Key-value store contract shared by the storage backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol


@dataclass(slots=True)
class KVListPage:
    """One page of key names returned by ``KeyValueStore.list``."""

    keys: list[str] = field(default_factory=list)
    cursor: Optional[str] = None
    list_complete: bool = True


class KeyValueStore(Protocol):
    """String-valued store with expiring writes and cursor pagination."""

    def get(self, key: str) -> Optional[str]:
        ...

    def put(
        self, key: str, value: str, *, expiration_ttl: Optional[int] = None
    ) -> None:
        ...

    def list(
        self,
        *,
        prefix: str = "",
        cursor: Optional[str] = None,
        limit: int = 100,
    ) -> KVListPage:
        ...

    def delete(self, key: str) -> None:
        ...


__all__ = ["KVListPage", "KeyValueStore"]
