"""
Key-value store backed by a DynamoDB table.

The table uses ``key`` as its hash key, stores the payload in ``value`` and
relies on DynamoDB TTL over the numeric ``expires_at`` attribute. TTL deletion
is lazy, so expired items are also filtered on read.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from cmp_backend.clients.kv import KVListPage
from cmp_backend.core.config import StorageSettings
from cmp_backend.core.errors import StoreUnavailable


def _is_live(item: Dict[str, Any], now: float) -> bool:
    expires_at = item.get("expires_at")
    return expires_at is None or float(expires_at) > now


class DynamoDBKVStore:
    """Simple CRUD and scan operations over a DynamoDB key-value table."""

    def __init__(self, settings: StorageSettings, *, table: Any = None) -> None:
        self._settings = settings
        if table is None:
            if not settings.dynamodb_table_name:
                raise ValueError("DYNAMODB_TABLE_NAME must be set for the dynamodb backend.")
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    def get(self, key: str) -> Optional[str]:
        """Retrieve a live value by key."""
        try:
            response = self._table.get_item(Key={"key": key})
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable() from exc
        item = response.get("Item")
        if not item or not _is_live(item, time.time()):
            return None
        return item["value"]

    def put(
        self, key: str, value: str, *, expiration_ttl: Optional[int] = None
    ) -> None:
        """Put a value, optionally expiring after ``expiration_ttl`` seconds."""
        item: Dict[str, Any] = {"key": key, "value": value}
        if expiration_ttl:
            item["expires_at"] = int(time.time()) + int(expiration_ttl)
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable() from exc

    def list(
        self,
        *,
        prefix: str = "",
        cursor: Optional[str] = None,
        limit: int = 100,
    ) -> KVListPage:
        """Scan one page of key names, resuming from ``cursor`` when given."""
        kwargs: Dict[str, Any] = {
            "Limit": limit,
            "ProjectionExpression": "#k, expires_at",
            "ExpressionAttributeNames": {"#k": "key"},
        }
        if prefix:
            kwargs["FilterExpression"] = Attr("key").begins_with(prefix)
        if cursor:
            kwargs["ExclusiveStartKey"] = {"key": cursor}

        try:
            response = self._table.scan(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable() from exc

        now = time.time()
        keys = [item["key"] for item in response.get("Items", []) if _is_live(item, now)]
        last_key = response.get("LastEvaluatedKey")
        if last_key:
            return KVListPage(keys=keys, cursor=last_key["key"], list_complete=False)
        return KVListPage(keys=keys, cursor=None, list_complete=True)

    def delete(self, key: str) -> None:
        try:
            self._table.delete_item(Key={"key": key})
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable() from exc


__all__ = ["DynamoDBKVStore"]
