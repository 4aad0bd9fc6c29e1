"""Most-recently-used history of captured signatures."""

import json
import secrets
import string
import time
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from docsign.config import settings
from docsign.models.signature import SignatureRecord
from docsign.persistence.abstractions import IKeyValueStore, StorageWriteError
from docsign.utils.logger import logger
from docsign.utils.validators import validate_data_url

_ID_ALPHABET = string.ascii_lowercase + string.digits


class InvalidSignatureError(Exception):
    """Raised when a signature payload is not an image data URL."""

    pass


class UnknownSignatureError(KeyError):
    """Raised when a history record id is not in the history."""

    pass


def _new_record_id(timestamp_ms: int) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"sig_{timestamp_ms}_{suffix}"


class SignatureHistoryStore:
    """Newest-first list of saved signatures, capped at ``capacity``.

    The backing key-value store is the source of truth: every read loads it
    and every mutation writes the full list back synchronously. A failed
    write raises :class:`StorageWriteError` and leaves the stored history as
    it was.
    """

    def __init__(
        self,
        kv_store: IKeyValueStore,
        key: Optional[str] = None,
        capacity: Optional[int] = None,
    ):
        self._kv = kv_store
        self.key = key or settings.signature_history_key
        self.capacity = capacity or settings.signature_history_capacity

    def list(self) -> List[SignatureRecord]:
        """Saved signatures, most recent first."""
        raw = self._kv.get(self.key)
        if not raw:
            return []

        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to load signatures: {e}")
            return []
        if not isinstance(entries, list):
            logger.error("Failed to load signatures: stored value is not a list")
            return []

        records: List[SignatureRecord] = []
        for entry in entries:
            try:
                records.append(SignatureRecord.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed signature entry: {e}")
        return records

    def get(self, record_id: str) -> Optional[SignatureRecord]:
        for record in self.list():
            if record.id == record_id:
                return record
        return None

    def add(self, data_url: str) -> SignatureRecord:
        """Save a new signature at the front, evicting the oldest beyond capacity."""
        if not validate_data_url(data_url):
            raise InvalidSignatureError("Signature must be a base64 image data URL")

        timestamp = int(time.time() * 1000)
        record = SignatureRecord(id=_new_record_id(timestamp), data_url=data_url, timestamp=timestamp)
        records = [record, *self.list()][: self.capacity]
        self._persist(records)
        logger.info(f"Saved signature {record.id} ({len(records)} in history)")
        return record

    def promote(self, record_id: str) -> Optional[SignatureRecord]:
        """Move a record to the front; id, timestamp and image are unchanged."""
        records = self.list()
        selected = next((r for r in records if r.id == record_id), None)
        if selected is None:
            return None
        if records[0].id == record_id:
            return selected

        reordered = [selected, *(r for r in records if r.id != record_id)]
        self._persist(reordered)
        return selected

    def remove(self, record_id: str) -> bool:
        """Delete a record; an unknown id is a no-op."""
        records = self.list()
        filtered = [r for r in records if r.id != record_id]
        if len(filtered) == len(records):
            return False
        self._persist(filtered)
        logger.info(f"Deleted signature {record_id}")
        return True

    def clear(self) -> None:
        try:
            self._kv.delete(self.key)
        except StorageWriteError:
            raise
        except Exception as e:
            logger.error(f"Failed to clear signatures: {e}")
            raise StorageWriteError(f"Failed to clear signature history: {e}") from e

    def _persist(self, records: List[SignatureRecord]) -> None:
        payload = json.dumps([r.to_json_dict() for r in records])
        try:
            self._kv.set(self.key, payload)
        except StorageWriteError:
            raise
        except Exception as e:
            logger.error(f"Failed to save signatures: {e}")
            raise StorageWriteError(f"Failed to save signature history: {e}") from e
