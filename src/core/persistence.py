from __future__ import annotations
from typing import Optional, Protocol

from core.models import ExportMode, ExportResult, OpenFolderResult


class PersistenceBackend(Protocol):
    """Contract the culling core requires from durable storage.

    Every call is a coroutine. Failures are raised as ``core.errors``
    exceptions; callers of ``set_label`` treat a raised exception as the
    outcome for that single id.
    """

    async def open_folder(self, path: str) -> OpenFolderResult: ...

    async def set_label(self, item_id: str, label: Optional[str]) -> None: ...

    async def save_selected_index(self, index: int) -> None: ...

    async def export_selection(
        self, source_path: str, dest_path: str, mode: ExportMode
    ) -> ExportResult: ...
