"""Filesystem and in-memory persistence backends."""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from docsign.persistence.abstractions import (
    IDocumentStore,
    IKeyValueStore,
    StorageError,
    StorageWriteError,
)
from docsign.utils.logger import logger


def _atomic_write(path: Path, content: bytes) -> None:
    """Write to a temp file in the same directory, then rename over the target."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class InMemoryKeyValueStore(IKeyValueStore):
    """Dictionary-backed key-value store (tests, ephemeral hosts)."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(IKeyValueStore):
    """Key-value store persisted as one JSON object in a file.

    Every write replaces the whole file atomically. A file that is not a JSON
    object reads as empty; before the next write replaces it, it is moved
    aside to ``<name>.corrupt``.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.corrupt")

    def _read(self) -> Optional[dict[str, str]]:
        """Parsed file content; None when the file exists but is not a JSON object."""
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Key-value file {self.path} is not valid JSON: {e}")
            return None
        if not isinstance(data, dict):
            logger.error(f"Key-value file {self.path} does not hold a JSON object")
            return None
        return data

    def _load(self) -> dict[str, str]:
        try:
            data = self._read()
        except OSError as e:
            logger.error(f"Failed to read key-value file {self.path}: {e}")
            return {}
        return data if data is not None else {}

    def _load_for_write(self) -> dict[str, str]:
        try:
            data = self._read()
            if data is None:
                os.replace(self.path, self.backup_path)
                logger.warning(f"Moved unreadable key-value file {self.path} to {self.backup_path}")
                return {}
        except OSError as e:
            logger.error(f"Refusing to overwrite unreadable key-value file {self.path}: {e}")
            raise StorageWriteError(f"Key-value file unreadable: {e}") from e
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load_for_write()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._load_for_write()
        if key in data:
            del data[key]
            self._write(data)

    def _write(self, data: dict[str, str]) -> None:
        try:
            _atomic_write(self.path, json.dumps(data, ensure_ascii=False).encode("utf-8"))
        except OSError as e:
            logger.error(f"Failed to write key-value file {self.path}: {e}")
            raise StorageWriteError(f"Key-value write failed: {e}") from e


class LocalDocumentStore(IDocumentStore):
    """Documents stored as files in one directory, with a JSON metadata sidecar."""

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir)

    def _path(self, locator: str) -> Path:
        name = Path(locator).name
        if not name or name != locator:
            raise StorageError(f"Invalid document locator: {locator!r}")
        return self.base_dir / name

    def _meta_path(self, locator: str) -> Path:
        return self._path(locator).with_name(f"{locator}.meta.json")

    def fetch(self, locator: str) -> bytes:
        path = self._path(locator)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise StorageError(f"Document not found: {locator}") from e
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            raise StorageError(f"Document read failed: {e}") from e

    def store(
        self,
        locator: str,
        content: bytes,
        content_type: str = "application/pdf",
        metadata: dict[str, str] | None = None,
    ) -> str:
        path = self._path(locator)
        meta_path = self._meta_path(locator)
        previous_meta: Optional[bytes] = None
        try:
            # The document replace is the last fallible step
            if metadata is not None:
                previous_meta = meta_path.read_bytes() if meta_path.exists() else b""
                _atomic_write(
                    meta_path,
                    json.dumps({"content_type": content_type, **metadata}).encode("utf-8"),
                )
            _atomic_write(path, content)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            if previous_meta is not None:
                self._restore_metadata(meta_path, previous_meta)
            raise StorageWriteError(f"Document write failed: {e}") from e
        logger.info(f"Stored {locator} ({len(content)} bytes) in {self.base_dir}")
        return locator

    @staticmethod
    def _restore_metadata(meta_path: Path, previous: bytes) -> None:
        """Put back the sidecar that was there before a failed store."""
        try:
            if previous:
                _atomic_write(meta_path, previous)
            else:
                meta_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not restore metadata {meta_path}: {e}")

    def delete(self, locator: str) -> None:
        try:
            self._path(locator).unlink(missing_ok=True)
            self._meta_path(locator).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Document delete failed: {e}") from e

    def exists(self, locator: str) -> bool:
        return self._path(locator).is_file()

    def metadata(self, locator: str) -> dict[str, str]:
        meta_path = self._meta_path(locator)
        if not meta_path.exists():
            return {}
        try:
            return json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable metadata for {locator}: {e}")
            return {}
