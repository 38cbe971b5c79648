from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Label(Enum):
    """Culling label of a single item.

    ADOPTED is the unlabeled state; only REJECTED is written to persistence.
    """

    REJECTED = "rejected"
    ADOPTED = "adopted"

    def inverted(self) -> "Label":
        return Label.ADOPTED if self is Label.REJECTED else Label.REJECTED

    def to_persisted(self) -> Optional[str]:
        """Value handed to ``set_label``: ``"rejected"`` or ``None``."""
        return "rejected" if self is Label.REJECTED else None

    @classmethod
    def from_persisted(cls, value: Optional[str]) -> "Label":
        if isinstance(value, str) and value.lower() == "rejected":
            return cls.REJECTED
        return cls.ADOPTED


class FilterMode(Enum):
    ALL = "all"
    ADOPTED_ONLY = "adopted"
    REJECTED_ONLY = "rejected"

    def matches(self, label: Label) -> bool:
        if self is FilterMode.ADOPTED_ONLY:
            return label is Label.ADOPTED
        if self is FilterMode.REJECTED_ONLY:
            return label is Label.REJECTED
        return True

    @classmethod
    def from_string(cls, value: str) -> "FilterMode":
        """Convert string to FilterMode, defaulting to ALL."""
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            return cls.ALL


class ViewMode(Enum):
    GRID = "grid"
    DETAIL = "detail"
    COMPARE = "compare"
    GALLERY = "gallery"

    @property
    def min_items(self) -> int:
        """Minimum filtered-view length required to enter this mode."""
        if self is ViewMode.COMPARE:
            return 2
        if self in (ViewMode.DETAIL, ViewMode.GALLERY):
            return 1
        return 0


class ExportMode(Enum):
    COPY = "copy"
    MOVE = "move"

    @classmethod
    def from_string(cls, value: str) -> "ExportMode":
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            return cls.COPY


@dataclass
class Item:
    """One photo of the collection. ``id`` is the filename and never changes."""

    id: str
    path: str
    size_bytes: int = 0
    modified_at: str = ""
    is_raw: bool = False
    label: Label = Label.ADOPTED
    thumbnail_ready: bool = False
    thumbnail_ref: Optional[str] = None


@dataclass
class BatchResult:
    success: bool
    success_count: int = 0
    failed_count: int = 0
    failed_ids: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, success: bool) -> "BatchResult":
        return cls(success=success)


@dataclass
class OpenFolderResult:
    session_id: str
    items: List[Item]
    existing_labels: Dict[str, Label]
    last_selected_index: int
    cache_location: str


@dataclass
class ExportResult:
    copied: int
    total: int
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class ThumbnailResult:
    id: str
    success: bool
    thumbnail_ref: Optional[str] = None
    error: Optional[str] = None
