import asyncio
from typing import Dict, Iterable, List, Optional

import pytest
from PyQt6.QtCore import QCoreApplication

from core.errors import PersistenceIOError
from core.models import ExportMode, ExportResult, Item, Label, OpenFolderResult


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    return app


def make_items(count: int, prefix: str = "img") -> List[Item]:
    return [
        Item(id=f"{prefix}_{i:03d}.jpg", path=f"/photos/{prefix}_{i:03d}.jpg")
        for i in range(count)
    ]


class FakePersistence:
    """In-memory persistence double that records every call."""

    def __init__(
        self,
        items: Optional[List[Item]] = None,
        labels: Optional[Dict[str, Label]] = None,
        last_selected_index: int = 0,
        fail_ids: Iterable[str] = (),
        open_error: Optional[Exception] = None,
    ):
        self.items = items or []
        self.labels = dict(labels or {})
        self.last_selected_index = last_selected_index
        self.fail_ids = set(fail_ids)
        self.open_error = open_error
        self.set_label_calls = []
        self.saved_indices = []
        self.export_calls = []

    async def open_folder(self, path: str) -> OpenFolderResult:
        await asyncio.sleep(0)
        if self.open_error is not None:
            raise self.open_error
        return OpenFolderResult(
            session_id="0123456789abcdef0123456789abcdef",
            items=[Item(id=i.id, path=i.path) for i in self.items],
            existing_labels=dict(self.labels),
            last_selected_index=self.last_selected_index,
            cache_location="/tmp/thumbs",
        )

    async def set_label(self, item_id: str, label: Optional[str]) -> None:
        self.set_label_calls.append((item_id, label))
        await asyncio.sleep(0)
        if item_id in self.fail_ids:
            raise PersistenceIOError(f"disk full: {item_id}")
        if label is None:
            self.labels.pop(item_id, None)
        else:
            self.labels[item_id] = Label.from_persisted(label)

    async def save_selected_index(self, index: int) -> None:
        self.saved_indices.append(index)

    async def export_selection(
        self, source_path: str, dest_path: str, mode: ExportMode
    ) -> ExportResult:
        self.export_calls.append((source_path, dest_path, mode))
        kept = [i for i in self.items if self.labels.get(i.id) is not Label.REJECTED]
        return ExportResult(
            copied=len(kept), total=len(self.items), skipped=len(self.items) - len(kept)
        )


@pytest.fixture
def items():
    return make_items(5)
