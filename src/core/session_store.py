"""
Session Store
Reference persistence backend: scans a folder for photos and keeps labels and
the last cursor position per folder in a disk cache.
"""

import asyncio
import hashlib
import logging
import os
import time
from datetime import datetime, timezone
from typing import List, Optional, Set

from core.app_settings import (
    DEFAULT_THUMBNAIL_CACHE_ROOT,
    RAW_EXTENSIONS,
    SUPPORTED_EXTENSIONS,
)
from core.caching.label_cache import LabelCache
from core.errors import (
    FolderNotFoundError,
    ItemNotFoundError,
    NoActiveSessionError,
    PersistenceIOError,
)
from core.file_exporter import FileExporter
from core.models import ExportMode, ExportResult, Item, Label, OpenFolderResult

logger = logging.getLogger(__name__)


def generate_session_id(folder_path: str) -> str:
    """Stable session id for a folder: first 16 bytes of its SHA-256, hex encoded."""
    digest = hashlib.sha256(folder_path.encode("utf-8")).digest()
    return digest[:16].hex()


def scan_folder(folder_path: str) -> List[Item]:
    """Return supported image files directly inside ``folder_path``, sorted by name.

    Raises:
        FolderNotFoundError: if the path is not a directory.
        PersistenceIOError: if the directory cannot be listed.
    """
    if not os.path.isdir(folder_path):
        raise FolderNotFoundError(folder_path)

    items: List[Item] = []
    try:
        with os.scandir(folder_path) as entries:
            for entry in entries:
                if not entry.is_file():
                    continue
                ext = os.path.splitext(entry.name)[1].lower()
                if ext not in SUPPORTED_EXTENSIONS:
                    continue
                stat = entry.stat()
                items.append(
                    Item(
                        id=entry.name,
                        path=os.path.normpath(entry.path),
                        size_bytes=stat.st_size,
                        modified_at=datetime.fromtimestamp(
                            stat.st_mtime, tz=timezone.utc
                        ).isoformat(),
                        is_raw=ext in RAW_EXTENSIONS,
                    )
                )
    except OSError as e:
        logger.error(f"Failed to scan folder {folder_path}: {e}", exc_info=True)
        raise PersistenceIOError(f"Failed to scan folder {folder_path}: {e}") from e

    items.sort(key=lambda item: item.id)
    return items


class SessionStore:
    """Disk-backed implementation of ``core.persistence.PersistenceBackend``.

    Only one folder is active at a time; ``set_label`` and
    ``save_selected_index`` apply to the most recently opened folder.
    Blocking disk work runs in a worker thread via ``asyncio.to_thread``.
    """

    def __init__(
        self,
        label_cache: Optional[LabelCache] = None,
        thumbnail_cache_root: str = DEFAULT_THUMBNAIL_CACHE_ROOT,
    ):
        self.label_cache = label_cache or LabelCache()
        self.thumbnail_cache_root = thumbnail_cache_root
        self._session_id: Optional[str] = None
        self._folder_path: Optional[str] = None
        self._known_ids: Set[str] = set()

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def folder_path(self) -> Optional[str]:
        return self._folder_path

    def _require_session(self) -> str:
        if self._session_id is None:
            raise NoActiveSessionError()
        return self._session_id

    # --- Open ---
    def _open_folder_sync(self, folder_path: str) -> OpenFolderResult:
        start_time = time.perf_counter()
        items = scan_folder(folder_path)
        session_id = generate_session_id(folder_path)
        record = self.label_cache.upsert_session(session_id, folder_path, len(items))

        stored = self.label_cache.get_all_labels(session_id)
        existing_labels = {
            filename: Label.from_persisted(value) for filename, value in stored.items()
        }

        cache_location = os.path.join(self.thumbnail_cache_root, session_id)
        try:
            os.makedirs(cache_location, exist_ok=True)
        except OSError as e:
            raise PersistenceIOError(
                f"Failed to create cache directory {cache_location}: {e}"
            ) from e

        self._session_id = session_id
        self._folder_path = folder_path
        self._known_ids = {item.id for item in items}

        logger.info(
            f"Opened folder {folder_path} ({len(items)} images, "
            f"{len(existing_labels)} stored labels) in "
            f"{time.perf_counter() - start_time:.4f}s"
        )
        return OpenFolderResult(
            session_id=session_id,
            items=items,
            existing_labels=existing_labels,
            last_selected_index=int(record.get("last_selected_index", 0)),
            cache_location=cache_location,
        )

    async def open_folder(self, path: str) -> OpenFolderResult:
        folder_path = os.path.normpath(os.path.abspath(path))
        return await asyncio.to_thread(self._open_folder_sync, folder_path)

    # --- Labels / selection ---
    async def set_label(self, item_id: str, label: Optional[str]) -> None:
        session_id = self._require_session()
        if item_id not in self._known_ids:
            raise ItemNotFoundError(item_id)
        await asyncio.to_thread(self.label_cache.set_label, session_id, item_id, label)

    async def save_selected_index(self, index: int) -> None:
        session_id = self._require_session()
        await asyncio.to_thread(
            self.label_cache.update_last_selected_index, session_id, index
        )

    def clear_all_labels(self) -> int:
        """Remove every stored label of every session."""
        return self.label_cache.clear_labels()

    # --- Export ---
    def _export_sync(
        self, source_path: str, dest_path: str, mode: ExportMode
    ) -> ExportResult:
        session_id = self._require_session()
        rejected = {
            filename
            for filename, value in self.label_cache.get_all_labels(session_id).items()
            if Label.from_persisted(value) is Label.REJECTED
        }
        items = scan_folder(source_path)
        to_export = [item.path for item in items if item.id not in rejected]
        return FileExporter.export_files(
            to_export,
            dest_path,
            mode,
            total=len(items),
            skipped=len(items) - len(to_export),
        )

    async def export_selection(
        self, source_path: str, dest_path: str, mode: ExportMode = ExportMode.COPY
    ) -> ExportResult:
        """Copy or move every non-rejected file of ``source_path`` to ``dest_path``."""
        return await asyncio.to_thread(self._export_sync, source_path, dest_path, mode)
