"""
contribround/protocol/storage.py

Persistent key-value storage for engine state.

Provides:
1. Storage backends - Memory (ephemeral) and local disk (survives restarts)
2. StateStore - journaled view over a backend, used by every protocol
   component as its get/insert/remove/contains map

Writes made while a transaction is open are buffered in the journal and only
reach the backend on commit(); rollback() discards them. Outside a
transaction writes go straight through.
"""

import json
import time
import logging
import hashlib
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from abc import ABC, abstractmethod

from ..errors import StorageError
from ..transactions import Transactional

logger = logging.getLogger("contribround.protocol.storage")


# ============================================================================
# CONSTANTS
# ============================================================================

# Key prefixes
MEMBER_PREFIX = "member:"
CONTRIBUTOR_PREFIX = "contributor:"
ROUND_PREFIX = "round:"

# Singleton keys
ROUND_ID_KEY = "meta:round_id"
CONTRIBUTOR_SET_KEY = "meta:contributors"

# Default storage path
DEFAULT_STORAGE_DIR = Path.home() / ".contribround" / "state"

# Journal marker for keys removed inside a transaction
_DELETED = object()


# ============================================================================
# STORAGE BACKENDS
# ============================================================================

class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get a value by key."""
        pass

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a value."""
        pass

    @abstractmethod
    def list_keys(self, prefix: str = "") -> List[str]:
        """List keys with optional prefix filter."""
        pass


class MemoryBackend(StorageBackend):
    """In-memory storage backend."""

    def __init__(self):
        self._data: Dict[str, str] = {}  # key -> JSON text

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, value: Any) -> None:
        # Stored as JSON so callers never share mutable state with the backend
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> bool:
        if key in self._data:
            del self._data[key]
            return True
        return False

    def list_keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]


class FileBackend(StorageBackend):
    """Local file storage backend, one JSON file per key."""

    def __init__(self, storage_dir: Optional[Path] = None):
        self.storage_dir = Path(storage_dir) if storage_dir else DEFAULT_STORAGE_DIR
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._metadata_file = self.storage_dir / "metadata.json"
        self._metadata: Dict[str, dict] = self._load_metadata()

    def _load_metadata(self) -> Dict[str, dict]:
        """Load metadata from disk."""
        if not self._metadata_file.exists():
            return {}
        try:
            with open(self._metadata_file, "r") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load metadata: {e}")
            raise StorageError(f"Corrupt metadata in {self._metadata_file}: {e}")

    def _save_metadata(self) -> None:
        """Save metadata to disk (write-then-rename)."""
        tmp = self._metadata_file.with_suffix(".tmp")
        try:
            with open(tmp, "w") as f:
                json.dump(self._metadata, f)
            tmp.replace(self._metadata_file)
        except OSError as e:
            logger.error(f"Failed to save metadata: {e}")
            raise StorageError(f"Failed to save metadata: {e}")

    def _key_to_path(self, key: str) -> Path:
        """Convert key to file path."""
        # Use hash to avoid filesystem issues with special chars
        hash_name = hashlib.sha256(key.encode()).hexdigest()[:32]
        return self.storage_dir / f"{hash_name}.json"

    def get(self, key: str) -> Optional[Any]:
        if key not in self._metadata:
            return None

        path = self._key_to_path(key)
        try:
            return json.loads(path.read_text())
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read {key}: {e}")
            raise StorageError(f"Failed to read {key}: {e}")

    def put(self, key: str, value: Any) -> None:
        path = self._key_to_path(key)
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(json.dumps(value))
            tmp.replace(path)
        except OSError as e:
            logger.error(f"Failed to write {key}: {e}")
            raise StorageError(f"Failed to write {key}: {e}")

        self._metadata[key] = {
            "path": path.name,
            "updated_at": time.time(),
        }
        self._save_metadata()

    def delete(self, key: str) -> bool:
        if key not in self._metadata:
            return False

        path = self._key_to_path(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete {key}: {e}")
            raise StorageError(f"Failed to delete {key}: {e}")

        del self._metadata[key]
        self._save_metadata()
        return True

    def list_keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._metadata if key.startswith(prefix)]


# ============================================================================
# STATE STORE
# ============================================================================

class StateStore(Transactional):
    """
    Journaled key-value map shared by the protocol components.

    Usage:
        store = StateStore(FileBackend(Path("./state")))

        store.begin()
        store.insert("member:alice", "admin")
        store.commit()      # or store.rollback()

        store.get("member:alice")  # -> "admin"
    """

    def __init__(self, backend: Optional[StorageBackend] = None):
        self.backend = backend or MemoryBackend()
        self._journal: Optional[Dict[str, Any]] = None

    @property
    def in_transaction(self) -> bool:
        return self._journal is not None

    def get(self, key: str, default: Any = None) -> Any:
        if self._journal is not None and key in self._journal:
            value = self._journal[key]
            return default if value is _DELETED else _copy(value)
        value = self.backend.get(key)
        return default if value is None else value

    def contains(self, key: str) -> bool:
        if self._journal is not None and key in self._journal:
            return self._journal[key] is not _DELETED
        return self.backend.get(key) is not None

    def insert(self, key: str, value: Any) -> None:
        if self._journal is not None:
            self._journal[key] = _copy(value)
        else:
            self.backend.put(key, value)

    def remove(self, key: str) -> bool:
        existed = self.contains(key)
        if self._journal is not None:
            self._journal[key] = _DELETED
        elif existed:
            self.backend.delete(key)
        return existed

    def keys(self, prefix: str = "") -> List[str]:
        result = set(self.backend.list_keys(prefix))
        if self._journal is not None:
            for key, value in self._journal.items():
                if not key.startswith(prefix):
                    continue
                if value is _DELETED:
                    result.discard(key)
                else:
                    result.add(key)
        return sorted(result)

    def begin(self) -> None:
        if self._journal is not None:
            raise StorageError("Transaction already open")
        self._journal = {}

    def commit(self) -> None:
        if self._journal is None:
            raise StorageError("No open transaction")
        journal, self._journal = self._journal, None
        # Backend values before the commit, restored if any write fails
        previous: List[Tuple[str, Any]] = []
        try:
            for key, value in journal.items():
                previous.append((key, self.backend.get(key)))
                if value is _DELETED:
                    self.backend.delete(key)
                else:
                    self.backend.put(key, value)
        except Exception as e:
            logger.error(f"Commit failed after {len(previous)} of {len(journal)} changes: {e}")
            self._restore(previous)
            raise
        if journal:
            logger.debug(f"Committed {len(journal)} state changes")

    def rollback(self) -> None:
        if self._journal is None:
            return
        discarded = len(self._journal)
        self._journal = None
        if discarded:
            logger.debug(f"Rolled back {discarded} state changes")

    def _restore(self, previous: List[Tuple[str, Any]]) -> None:
        for key, value in reversed(previous):
            if value is None:
                self.backend.delete(key)
            else:
                self.backend.put(key, value)


def _copy(value: Any) -> Any:
    """Detach a JSON-compatible value from its caller."""
    return json.loads(json.dumps(value))
