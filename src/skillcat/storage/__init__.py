"""Storage helpers."""

from .blobs import BlobStore
from .catalog import CatalogStore
from .db import create_db_engine, init_db
from .kv import KeyValueStore, SqlKeyValueStore

__all__ = ["BlobStore", "CatalogStore", "KeyValueStore", "SqlKeyValueStore", "create_db_engine", "init_db"]
