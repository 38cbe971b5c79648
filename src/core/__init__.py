# Core logic package

from .models import (
    BatchResult,
    ExportMode,
    ExportResult,
    FilterMode,
    Item,
    Label,
    OpenFolderResult,
    ThumbnailResult,
    ViewMode,
)
from .collection_store import CollectionStore
from .session_store import SessionStore, generate_session_id, scan_folder

__all__ = [
    # models
    "BatchResult",
    "ExportMode",
    "ExportResult",
    "FilterMode",
    "Item",
    "Label",
    "OpenFolderResult",
    "ThumbnailResult",
    "ViewMode",
    # collection_store
    "CollectionStore",
    # session_store (reference persistence backend)
    "SessionStore",
    "generate_session_id",
    "scan_folder",
]
