"""Persistence layer - abstractions and local implementations."""

from docsign.persistence.abstractions import (
    IDocumentStore,
    IKeyValueStore,
    StorageError,
    StorageWriteError,
)
from docsign.persistence.local import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    LocalDocumentStore,
)

__all__ = [
    "IDocumentStore",
    "IKeyValueStore",
    "StorageError",
    "StorageWriteError",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "LocalDocumentStore",
]
