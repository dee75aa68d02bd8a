"""Persistence layer - key/value medium and the document store."""

from .kv import FileKeyValueStore, KeyValueStore
from .store import DocumentStore, compute_hash

__all__ = ["DocumentStore", "FileKeyValueStore", "KeyValueStore", "compute_hash"]
