"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBKVStore
from .kv import KeyValueStore, KVListPage
from .sqlite_store import SQLiteKVStore
from .webflow import WebflowOAuthClient, WebflowSite

__all__ = [
    "DynamoDBKVStore",
    "KVListPage",
    "KeyValueStore",
    "SQLiteKVStore",
    "WebflowOAuthClient",
    "WebflowSite",
]
