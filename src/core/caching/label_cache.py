import diskcache
import os
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.app_settings import (
    DEFAULT_LABEL_CACHE_DIR,
    DEFAULT_LABEL_CACHE_SIZE_LIMIT_MB,
)
from core.errors import PersistenceIOError

logger = logging.getLogger(__name__)

_LABEL_PREFIX = "label"
_SESSION_PREFIX = "session"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LabelCache:
    """
    Disk-based store for per-session culling labels and session records.

    Layout (all keys are strings):
      ``label:<session_id>:<filename>`` -> "rejected"
      ``session:<session_id>``          -> dict with folder_path,
                                           last_selected_index, total_files,
                                           last_opened, created_at

    Reads log and fall back to defaults; writes raise PersistenceIOError so
    callers can treat them as per-request failures.
    """

    def __init__(
        self,
        cache_dir: str = DEFAULT_LABEL_CACHE_DIR,
        size_limit_mb: int = DEFAULT_LABEL_CACHE_SIZE_LIMIT_MB,
    ):
        init_start_time = time.perf_counter()
        logger.info(
            f"Initializing Label cache: {cache_dir} (Size Limit: {size_limit_mb:.2f} MB)"
        )
        os.makedirs(cache_dir, exist_ok=True)
        self._cache_dir = cache_dir
        size_limit_bytes = size_limit_mb * 1024 * 1024
        self._cache = diskcache.Cache(
            directory=cache_dir, size_limit=size_limit_bytes, disk_min_file_size=0
        )
        logger.debug(
            f"Label cache initialized in {time.perf_counter() - init_start_time:.4f}s"
        )

    @staticmethod
    def _label_key(session_id: str, filename: str) -> str:
        return f"{_LABEL_PREFIX}:{session_id}:{filename}"

    @staticmethod
    def _session_key(session_id: str) -> str:
        return f"{_SESSION_PREFIX}:{session_id}"

    # --- Labels ---
    def get_label(self, session_id: str, filename: str) -> Optional[str]:
        key = self._label_key(session_id, filename)
        try:
            value = self._cache.get(key)
            if value is None or isinstance(value, str):
                return value
            logger.warning(
                f"Invalid item type in Label cache for key '{key}': {type(value)}"
            )
            return None
        except Exception as e:
            logger.error(
                f"Error reading from Label cache for key '{key}': {e}", exc_info=True
            )
            return None

    def set_label(self, session_id: str, filename: str, label: Optional[str]) -> None:
        """Store ``label`` for a file; ``None`` removes the entry (adopted)."""
        key = self._label_key(session_id, filename)
        try:
            if label is None:
                self._cache.delete(key)
            else:
                self._cache.set(key, label)
        except Exception as e:
            logger.error(
                f"Error writing to Label cache for key '{key}': {e}", exc_info=True
            )
            raise PersistenceIOError(f"Failed to store label for {filename}: {e}") from e

    def get_all_labels(self, session_id: str) -> Dict[str, str]:
        """Return ``{filename: label}`` for every labeled file of a session."""
        prefix = f"{_LABEL_PREFIX}:{session_id}:"
        labels: Dict[str, str] = {}
        try:
            for key in self._cache.iterkeys():
                if isinstance(key, str) and key.startswith(prefix):
                    value = self._cache.get(key)
                    if isinstance(value, str):
                        labels[key[len(prefix) :]] = value
        except Exception as e:
            logger.error(
                f"Error listing labels for session {session_id}: {e}", exc_info=True
            )
        return labels

    def clear_labels(self, session_id: Optional[str] = None) -> int:
        """Delete labels of one session, or of every session when None."""
        prefix = (
            f"{_LABEL_PREFIX}:{session_id}:" if session_id else f"{_LABEL_PREFIX}:"
        )
        removed = 0
        try:
            for key in list(self._cache.iterkeys()):
                if isinstance(key, str) and key.startswith(prefix):
                    if self._cache.delete(key):
                        removed += 1
            logger.info(f"Cleared {removed} labels from Label cache.")
        except Exception as e:
            logger.error(f"Error clearing labels: {e}", exc_info=True)
        return removed

    # --- Sessions ---
    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        key = self._session_key(session_id)
        try:
            value = self._cache.get(key)
            return dict(value) if isinstance(value, dict) else None
        except Exception as e:
            logger.error(
                f"Error reading session '{session_id}': {e}", exc_info=True
            )
            return None

    def upsert_session(
        self, session_id: str, folder_path: str, total_files: int
    ) -> Dict[str, Any]:
        """Create the session record or refresh last_opened/total_files."""
        now = _now()
        record = self.get_session(session_id) or {
            "folder_path": folder_path,
            "last_selected_index": 0,
            "created_at": now,
        }
        record["folder_path"] = folder_path
        record["total_files"] = total_files
        record["last_opened"] = now
        self._write_session(session_id, record)
        return record

    def update_last_selected_index(self, session_id: str, index: int) -> None:
        record = self.get_session(session_id)
        if record is None:
            raise PersistenceIOError(f"Session record missing: {session_id}")
        record["last_selected_index"] = index
        record["last_opened"] = _now()
        self._write_session(session_id, record)

    def _write_session(self, session_id: str, record: Dict[str, Any]) -> None:
        key = self._session_key(session_id)
        try:
            self._cache.set(key, record)
        except Exception as e:
            logger.error(f"Error writing session '{session_id}': {e}", exc_info=True)
            raise PersistenceIOError(f"Failed to store session {session_id}: {e}") from e

    # --- Maintenance ---
    def volume(self) -> int:
        """Returns the current disk usage of the cache in bytes."""
        try:
            return self._cache.volume()
        except Exception as e:
            logger.error(f"Error getting Label cache volume: {e}", exc_info=True)
            return 0

    def close(self) -> None:
        try:
            self._cache.close()
            logger.debug("Label cache closed.")
        except Exception:
            logger.error("Error closing Label cache.", exc_info=True)

    def __del__(self):
        self.close()
