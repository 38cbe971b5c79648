from __future__ import annotations
import logging
from typing import List, Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from core.app_settings import GRID_OVERSCAN_ROWS

logger = logging.getLogger(__name__)


class VirtualWindow(QObject):
    """Virtualized grid window over the filtered view.

    Pure geometry: maps scroll offset, column count and row height to the
    contiguous range of rows (and flat item indices) that must be
    materialized. No per-item state is kept outside that range.
    """

    layout_changed = pyqtSignal()  # row metrics changed
    scrolled = pyqtSignal(int)  # new scroll offset

    def __init__(
        self,
        item_count: int = 0,
        columns: int = 1,
        row_height: int = 1,
        viewport_height: int = 0,
        overscan_rows: int = GRID_OVERSCAN_ROWS,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._item_count = max(0, item_count)
        self._columns = max(1, columns)
        self._row_height = max(1, row_height)
        self._viewport_height = max(0, viewport_height)
        self._overscan = max(0, overscan_rows)
        self._scroll_offset = 0

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    @property
    def item_count(self) -> int:
        return self._item_count

    @property
    def columns(self) -> int:
        return self._columns

    @property
    def row_height(self) -> int:
        return self._row_height

    @property
    def viewport_height(self) -> int:
        return self._viewport_height

    @property
    def scroll_offset(self) -> int:
        return self._scroll_offset

    @property
    def row_count(self) -> int:
        if self._item_count <= 0:
            return 0
        return (self._item_count + self._columns - 1) // self._columns

    @property
    def total_height(self) -> int:
        return self.row_count * self._row_height

    @property
    def max_scroll_offset(self) -> int:
        return max(0, self.total_height - self._viewport_height)

    def row_of(self, index: int) -> int:
        return index // self._columns

    # ------------------------------------------------------------------
    # Setters (each re-measures and clamps the scroll offset)
    # ------------------------------------------------------------------

    def _remeasure(self):
        clamped = max(0, min(self._scroll_offset, self.max_scroll_offset))
        if clamped != self._scroll_offset:
            self._scroll_offset = clamped
            self.scrolled.emit(clamped)
        self.layout_changed.emit()

    def set_item_count(self, count: int):
        count = max(0, count)
        if count == self._item_count:
            return
        self._item_count = count
        self._remeasure()

    def set_columns(self, columns: int):
        columns = max(1, columns)
        if columns == self._columns:
            return
        logger.debug(f"Grid columns: {self._columns} -> {columns}")
        self._columns = columns
        self._remeasure()

    def set_row_height(self, row_height: int):
        row_height = max(1, row_height)
        if row_height == self._row_height:
            return
        self._row_height = row_height
        self._remeasure()

    def set_viewport_height(self, height: int):
        height = max(0, height)
        if height == self._viewport_height:
            return
        self._viewport_height = height
        self._remeasure()

    def set_scroll_offset(self, offset: int) -> int:
        offset = max(0, min(offset, self.max_scroll_offset))
        if offset != self._scroll_offset:
            self._scroll_offset = offset
            self.scrolled.emit(offset)
        return self._scroll_offset

    # ------------------------------------------------------------------
    # Ranges
    # ------------------------------------------------------------------

    def visible_rows(self) -> Tuple[int, int]:
        """First and last row intersecting the viewport, inclusive. (0, -1) when empty."""
        rows = self.row_count
        if rows == 0:
            return 0, -1
        first = self._scroll_offset // self._row_height
        bottom = self._scroll_offset + max(self._viewport_height, 1) - 1
        last = min(rows - 1, bottom // self._row_height)
        return min(first, rows - 1), last

    def materialized_rows(self) -> Tuple[int, int]:
        """Visible rows extended by the overscan margin, inclusive."""
        first, last = self.visible_rows()
        if last < first:
            return 0, -1
        return (
            max(0, first - self._overscan),
            min(self.row_count - 1, last + self._overscan),
        )

    def row_items(self, row: int) -> List[int]:
        """Item indices on ``row``; the last row may be short."""
        if not 0 <= row < self.row_count:
            return []
        start = row * self._columns
        return list(range(start, min(start + self._columns, self._item_count)))

    def materialized_indices(self) -> range:
        """Contiguous flat index range to render."""
        first, last = self.materialized_rows()
        if last < first:
            return range(0)
        return range(
            first * self._columns,
            min(self._item_count, (last + 1) * self._columns),
        )

    def scroll_to_index(self, index: int) -> int:
        """Scroll minimally so the row holding ``index`` is fully visible."""
        if not 0 <= index < self._item_count:
            return self._scroll_offset
        top = self.row_of(index) * self._row_height
        bottom = top + self._row_height
        current = self._scroll_offset
        if current <= top and bottom <= current + self._viewport_height:
            return current
        if top < current or self._row_height >= self._viewport_height:
            return self.set_scroll_offset(top)
        return self.set_scroll_offset(bottom - self._viewport_height)
