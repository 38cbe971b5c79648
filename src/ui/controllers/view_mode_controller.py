from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from core.models import ViewMode
from ui.controllers.selection_controller import SelectionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparePair:
    left: int
    right: int


def compare_entry_pair(state: SelectionState, length: int) -> Optional[Tuple[int, int]]:
    """Pick the (left, right) indices shown when entering Compare mode.

    With two or more multi-selected items the two lowest indices are paired.
    Otherwise the cursor is paired with the next item, wrapping to 0 from the
    last one.
    """
    if length < 2:
        return None
    selected = sorted(i for i in state.multi_select if 0 <= i < length)
    if len(selected) >= 2:
        return selected[0], selected[1]
    if not 0 <= state.primary_index < length:
        return None
    primary = state.primary_index
    return primary, (primary + 1) % length


class ViewModeController(QObject):
    """Grid / Detail / Compare / Gallery state machine with entry preconditions."""

    view_mode_changed = pyqtSignal(object)  # ViewMode
    compare_pair_changed = pyqtSignal(object)  # ComparePair or None

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._mode = ViewMode.GRID
        self._compare: Optional[ComparePair] = None

    @property
    def mode(self) -> ViewMode:
        return self._mode

    @property
    def compare_pair(self) -> Optional[ComparePair]:
        return self._compare

    def _set_mode(self, mode: ViewMode):
        if mode is self._mode:
            return
        logger.debug(f"View mode: {self._mode.value} -> {mode.value}")
        self._mode = mode
        self.view_mode_changed.emit(mode)

    def _set_compare(self, pair: Optional[ComparePair]):
        if pair == self._compare:
            return
        self._compare = pair
        self.compare_pair_changed.emit(pair)

    def can_enter(self, mode: ViewMode, length: int) -> bool:
        return length >= mode.min_items

    def enter(self, mode: ViewMode, length: int, selection: SelectionState) -> bool:
        """Switch to ``mode`` if its precondition holds; silently refuse otherwise."""
        if not self.can_enter(mode, length):
            logger.debug(
                f"Cannot enter {mode.value}: needs {mode.min_items} item(s), have {length}"
            )
            return False
        if mode is ViewMode.COMPARE:
            pair = compare_entry_pair(selection, length)
            if pair is None:
                logger.debug("Cannot enter compare: no cursor to pair")
                return False
            self._set_compare(ComparePair(*pair))
        else:
            self._set_compare(None)
        self._set_mode(mode)
        return True

    def exit_to_grid(self):
        self._set_compare(None)
        self._set_mode(ViewMode.GRID)

    def close_gallery(self) -> bool:
        """Explicit gallery close; Escape alone never leaves the gallery."""
        if self._mode is not ViewMode.GALLERY:
            return False
        self.exit_to_grid()
        return True

    # --- Compare pair maintenance ---
    def sync_compare_left(self, primary_index: int):
        """Left pane always mirrors the selection cursor."""
        if self._compare is None or self._compare.left == primary_index:
            return
        self._set_compare(ComparePair(primary_index, self._compare.right))

    def move_compare_right(self, delta: int, length: int) -> bool:
        if self._mode is not ViewMode.COMPARE or self._compare is None:
            return False
        target = self._compare.right + delta
        if not 0 <= target < length:
            return False
        self._set_compare(ComparePair(self._compare.left, target))
        return True

    def revalidate(
        self, length: int, primary_index: int, compare_right: Optional[int] = None
    ):
        """Fall back to Grid when the current mode's precondition no longer holds.

        ``compare_right`` is the right pane's index already carried into the
        new view; without it the old index is clamped.
        """
        if not self.can_enter(self._mode, length):
            logger.info(
                f"{self._mode.value} view no longer valid with {length} item(s); returning to grid"
            )
            self.exit_to_grid()
            return
        if self._compare is not None:
            right = self._compare.right if compare_right is None else compare_right
            right = max(0, min(right, length - 1))
            left = primary_index if primary_index >= 0 else 0
            self._set_compare(ComparePair(left, right))
